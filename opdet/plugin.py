import numpy as np
import strax
import logging

from .config import DetectorConfig

export, __all__ = strax.exporter()

logging.basicConfig(handlers=[logging.StreamHandler()])


@export
class OpdetBasePlugin:
    """Base plugin for opdet plugins."""

    __version__ = "0.0.0"

    provides = None
    dtype = None

    def __init__(self, config=None, run_id="00000"):
        self.config = config if config is not None else DetectorConfig()
        self.run_id = run_id
        self.setup()

    def __getattr__(self, name):
        # Config options are available as plugin attributes
        config = self.__dict__.get("config")
        if config is not None and hasattr(config, name):
            return getattr(config, name)
        raise AttributeError(f"{self.__class__.__name__} has no attribute {name}")

    def infer_dtype(self):
        return self.dtype

    def dtype_for(self, data_type):
        dtype = self.infer_dtype()
        if isinstance(dtype, dict):
            return np.dtype(dtype[data_type])
        if data_type != self.provides:
            raise ValueError(f"{self.__class__.__name__} does not provide {data_type}!")
        return np.dtype(dtype)

    @property
    def lineage(self):
        return {self.__class__.__name__: (self.__version__, self.config.lineage())}

    def setup(self):
        self.config.validate()

        log = logging.getLogger(f"{self.__class__.__name__}")
        self.log = log

        if self.debug:
            log.setLevel("DEBUG")
            log.debug(f"Running {self.__class__.__name__} version {self.__version__} in debug mode")
        else:
            log.setLevel("INFO")

        if self.deterministic_seed:

            if self.user_defined_random_seed is not None:
                log.warning(
                    "deterministic_seed is set to True. "
                    "The provided user_defined_random_seed will not be used!"
                )

            hash_string = strax.deterministic_hash((self.run_id, self.lineage))
            self.seed = int(hash_string.encode().hex(), 16)
            self.rng = np.random.default_rng(seed=self.seed)
            log.debug(f"Generating random numbers from deterministic seed {self.seed}")
        else:

            if self.user_defined_random_seed is not None:
                self.seed = self.user_defined_random_seed
                self.rng = np.random.default_rng(self.user_defined_random_seed)
                log.info(
                    "Generating random numbers with user "
                    f"defined seed {self.user_defined_random_seed}"
                )
            else:
                self.seed = None
                self.rng = np.random.default_rng()
                log.debug("Generating random numbers with seed pulled from OS")
