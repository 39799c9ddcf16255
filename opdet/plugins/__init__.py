from . import input
from .input import *

from . import library
from .library import *

from . import detection
from .detection import *
