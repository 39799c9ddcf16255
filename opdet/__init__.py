__version__ = "0.1.0"

from . import common
from . import dtypes
from . import errors
from .errors import *

from . import config
from .config import DetectorConfig, VerbosityLevel

from . import plugin
from . import sinks

from . import plugins
from .plugins import *

from . import context
