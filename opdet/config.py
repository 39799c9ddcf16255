import json
import math
from dataclasses import dataclass, asdict, fields, replace
from enum import IntEnum
from typing import Optional

from immutabledict import immutabledict

from .errors import ConfigurationError
from .common import DEFAULT_BUCKET_WIDTH


class VerbosityLevel(IntEnum):
    """Amount of diagnostic output. Has no influence on the results."""

    QUIET = 0  # Nothing
    BASIC = 1  # Size of the photon collection per event, missing inputs
    EVENTS = 2  # Totals per event
    DETAILED = 3  # Totals per channel and every single photon decision


# Options which do not change the simulated data and are therefore
# not part of the lineage used for the deterministic seed
UNTRACKED_OPTIONS = ("debug", "verbosity", "input_file", "library_file")


@dataclass
class DetectorConfig:
    """Configuration of the optical detector photon counting."""

    verbosity: int = VerbosityLevel.QUIET
    debug: bool = False

    # Label of the module which produced the photon collection
    input_module: str = "largeant"
    input_file: Optional[str] = None

    # Output switches, turn off what is not needed to save time
    make_all_photons: bool = True
    make_detected_photons: bool = True
    make_opdet_channels: bool = True
    make_opdet_events: bool = True

    quantum_efficiency: float = 1.0
    wavelength_cut_low: float = -math.inf  # [nm]
    wavelength_cut_high: float = math.inf  # [nm]

    deterministic_seed: bool = True
    user_defined_random_seed: Optional[int] = None

    # Compact (time bucketed) photon representation
    compact_photons: bool = False
    bucket_width: float = DEFAULT_BUCKET_WIDTH

    # Visibility library building
    build_library: bool = False
    library_file: Optional[str] = None

    @classmethod
    def from_json(cls, file_name, **overrides) -> "DetectorConfig":
        """Load the configuration from a json file. Keyword arguments
        overwrite values from the file."""
        with open(file_name, "r") as file:
            config = json.load(file)
        config.update(overrides)
        return cls.from_dict(config)

    @classmethod
    def from_dict(cls, config) -> "DetectorConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(config) - known
        if unknown:
            raise ConfigurationError(f"Unknown config options {sorted(unknown)}!")
        return cls(**config)

    def updated(self, **kwargs) -> "DetectorConfig":
        unknown = set(kwargs) - {f.name for f in fields(self)}
        if unknown:
            raise ConfigurationError(f"Unknown config options {sorted(unknown)}!")
        return replace(self, **kwargs)

    @property
    def make_outputs(self):
        return immutabledict(
            all_photons=self.make_all_photons,
            detected_photons=self.make_detected_photons,
            opdet_channels=self.make_opdet_channels,
            opdet_events=self.make_opdet_events,
        )

    def lineage(self):
        """Tracked options, these define the simulated data."""
        config = asdict(self)
        for option in UNTRACKED_OPTIONS:
            config.pop(option)
        return config

    def validate(self):
        """Check the configuration before any event is processed."""

        if not 0 <= self.quantum_efficiency <= 1:
            raise ConfigurationError(
                f"Quantum efficiency must be in [0, 1], got {self.quantum_efficiency}!"
            )

        if not self.wavelength_cut_low < self.wavelength_cut_high:
            raise ConfigurationError(
                "Lower wavelength cut must be below the upper cut, got "
                f"[{self.wavelength_cut_low}, {self.wavelength_cut_high})!"
            )

        if not self.input_module:
            raise ConfigurationError("An input module label is required!")

        if not self.bucket_width > 0:
            raise ConfigurationError(f"Bucket width must be positive, got {self.bucket_width}!")

        if self.verbosity not in set(VerbosityLevel):
            raise ConfigurationError(f"Verbosity must be between 0 and 3, got {self.verbosity}!")

        if self.user_defined_random_seed is not None and not (
            isinstance(self.user_defined_random_seed, int) and self.user_defined_random_seed > 0
        ):
            raise ConfigurationError("user_defined_random_seed must be a positive integer!")

        return self
