import numpy as np
import strax

from ..common import detection_mask
from ..config import VerbosityLevel
from ..dtypes import (
    photon_detail_fields,
    channel_tally_fields,
    event_tally_fields,
    library_entry_fields,
)
from ..errors import ConfigurationError, RepresentationMismatchError
from ..plugin import OpdetBasePlugin
from ..sinks import ArraySink, build_sinks
from .input import ItemizedPhotons, BucketedPhotons, iterate_channels
from .library import VisibilityLibraryAccumulator

export, __all__ = strax.exporter()
__all__.append("DetectionEngine")


@export
class ChannelTally:
    def __init__(self, channel, count_all=0, count_detected=0):
        self.channel = channel
        self.count_all = count_all
        self.count_detected = count_detected

    def __repr__(self):
        return (
            f"ChannelTally(channel={self.channel}, count_all={self.count_all}, "
            f"count_detected={self.count_detected})"
        )


@export
class EventTally:
    def __init__(self, event_id, count_all=0, count_detected=0):
        self.event_id = event_id
        self.count_all = count_all
        self.count_detected = count_detected

    def __repr__(self):
        return (
            f"EventTally(event_id={self.event_id}, count_all={self.count_all}, "
            f"count_detected={self.count_detected})"
        )


@export
class DetectionSampler:
    """Decides which photons are detected by an optical channel.

    Every photon consumes exactly one uniform random number, also when its
    wavelength is outside of the sensitive range. This keeps the random
    number sequence independent of the wavelength cuts.
    """

    def __init__(self, rng, quantum_efficiency, wavelength_cut_low, wavelength_cut_high):
        if not 0 <= quantum_efficiency <= 1:
            raise ConfigurationError(
                f"Quantum efficiency must be in [0, 1], got {quantum_efficiency}!"
            )
        if not wavelength_cut_low < wavelength_cut_high:
            raise ConfigurationError("Lower wavelength cut must be below the upper cut!")

        self.rng = rng
        self.quantum_efficiency = float(quantum_efficiency)
        self.wavelength_cut_low = float(wavelength_cut_low)
        self.wavelength_cut_high = float(wavelength_cut_high)
        self.n_draws = 0

    def sample(self, wavelength):
        return bool(self.sample_many(np.array([wavelength], dtype=np.float64))[0])

    def sample_many(self, wavelengths):
        """One draw per photon, in the order of the wavelengths."""
        wavelengths = np.asarray(wavelengths, dtype=np.float64)
        uniform = self.rng.random(len(wavelengths))
        self.n_draws += len(wavelengths)
        return detection_mask(
            uniform,
            wavelengths,
            self.quantum_efficiency,
            self.wavelength_cut_low,
            self.wavelength_cut_high,
        )


def _photon_details(event_id, channel, wavelengths, times):
    result = np.zeros(len(wavelengths), dtype=photon_detail_fields)
    result["event_id"] = event_id
    result["channel"] = channel
    result["wavelength"] = wavelengths
    result["t"] = times
    return result


@export
class ChannelAggregator:
    """Counts all and detected photons of the channels of one event.

    Per photon records are only built if the corresponding sink is given.
    """

    def __init__(self, event_id, all_photons=None, detected_photons=None, opdet_channels=None):
        self.event_id = event_id
        self.all_photons = all_photons
        self.detected_photons = detected_photons
        self.opdet_channels = opdet_channels

        self.channel = None
        self.count_all = 0
        self.count_detected = 0

    def reset(self, channel):
        self.channel = channel
        self.count_all = 0
        self.count_detected = 0

    def record_photon(self, wavelength, time, detected):
        self.record_photons(
            np.array([wavelength], dtype=np.float64),
            np.array([time], dtype=np.float64),
            np.array([detected], dtype=np.bool_),
        )

    def record_photons(self, wavelengths, times, detected):
        if self.channel is None:
            raise RuntimeError("Reset the aggregator to a channel before recording photons!")

        self.count_all += len(wavelengths)
        self.count_detected += int(np.count_nonzero(detected))

        if self.all_photons is not None and len(wavelengths):
            self.all_photons.write(_photon_details(self.event_id, self.channel, wavelengths, times))

        if self.detected_photons is not None and np.any(detected):
            self.detected_photons.write(
                _photon_details(
                    self.event_id, self.channel, wavelengths[detected], times[detected]
                )
            )

    def finalize(self):
        tally = ChannelTally(self.channel, self.count_all, self.count_detected)

        if self.opdet_channels is not None:
            result = np.zeros(1, dtype=channel_tally_fields)
            result["event_id"] = self.event_id
            result["channel"] = tally.channel
            result["count_all"] = tally.count_all
            result["count_detected"] = tally.count_detected
            self.opdet_channels.write(result)

        return tally


@export
class EventAggregator:
    """Sums the channel tallies of one event."""

    def __init__(self, event_id, opdet_events=None):
        self.tally = EventTally(event_id)
        self.opdet_events = opdet_events

    def add(self, channel_tally):
        self.tally.count_all += channel_tally.count_all
        self.tally.count_detected += channel_tally.count_detected

    def finalize(self):
        # Also events without any photons get a record
        if self.opdet_events is not None:
            result = np.zeros(1, dtype=event_tally_fields)
            result["event_id"] = self.tally.event_id
            result["count_all"] = self.tally.count_all
            result["count_detected"] = self.tally.count_detected
            self.opdet_events.write(result)

        return self.tally


@export
class PhotonCounter(OpdetBasePlugin):
    """Plugin to determine how many photons hit and how many are detected
    in each optical channel.

    A photon is detected if it passes the quantum efficiency sampling and
    its wavelength is inside the sensitive range. Results are written to up
    to four outputs: every photon hitting a channel, every detected photon,
    counts per channel and counts per event. In a library building job the
    fraction of produced photons hitting each channel is stored in the
    visibility library.
    """

    __version__ = "0.1.0"

    provides = (
        "all_photons",
        "detected_photons",
        "opdet_channels",
        "opdet_events",
        "visibility_library",
    )

    def __init__(self, config=None, run_id="00000", sinks=None, library=None, light_source=None):
        self._user_sinks = dict(sinks) if sinks else dict()
        self.library = library
        self.light_source = light_source
        super().__init__(config=config, run_id=run_id)

    def infer_dtype(self):
        dtype = dict()
        dtype["all_photons"] = photon_detail_fields
        dtype["detected_photons"] = photon_detail_fields
        dtype["opdet_channels"] = channel_tally_fields
        dtype["opdet_events"] = event_tally_fields
        dtype["visibility_library"] = library_entry_fields
        return dtype

    def setup(self):
        super().setup()

        self.sampler = DetectionSampler(
            self.rng,
            self.quantum_efficiency,
            self.wavelength_cut_low,
            self.wavelength_cut_high,
        )

        self.sinks = build_sinks(self, self.make_outputs)
        for data_type, sink in self._user_sinks.items():
            if data_type not in self.provides:
                raise ConfigurationError(f"{self.__class__.__name__} does not provide {data_type}!")
            if data_type in self.sinks and self.sinks[data_type] is None:
                continue
            self.sinks[data_type] = sink

        if self.build_library:
            if self.light_source is None:
                raise ConfigurationError("A library building job needs a light source!")
            if self.library is None:
                self.library = VisibilityLibraryAccumulator(
                    library_file=self.library_file, log=self.log
                )
            if self.sinks.get("visibility_library") is None:
                self.sinks["visibility_library"] = ArraySink(
                    self.dtype_for("visibility_library")
                )
        else:
            self.sinks["visibility_library"] = None

        self._representation = BucketedPhotons if self.compact_photons else ItemizedPhotons

    def process(self, event_id, photons=None):
        """Count the photons of one event.

        Args:
            event_id: ID of the event
            photons: ItemizedPhotons or BucketedPhotons matching the run
                configuration. None if the event has no photon collection,
                then only an empty event record is written.
        """
        event_aggregator = EventAggregator(event_id, self.sinks["opdet_events"])

        if photons is None:
            if self.verbosity >= VerbosityLevel.BASIC:
                self.log.info(
                    f"No photon collection from {self.input_module} for event {event_id}, "
                    "writing an empty event record"
                )
            event_aggregator.finalize()
            return

        if not isinstance(photons, self._representation):
            raise RepresentationMismatchError(
                f"Run is configured for {self._representation.kind} photons "
                f"but event {event_id} provides {type(photons).__name__}!"
            )

        if self.verbosity >= VerbosityLevel.BASIC:
            self.log.info(f"Found photon collection of size {len(photons)} for event {event_id}")

        if self.build_library:
            voxel_id, photons_produced = self.light_source.retrieve_light_production(event_id)

        channel_aggregator = ChannelAggregator(
            event_id,
            all_photons=self.sinks["all_photons"],
            detected_photons=self.sinks["detected_photons"],
            opdet_channels=self.sinks["opdet_channels"],
        )

        for channel, wavelengths, times in iterate_channels(photons, self.bucket_width):
            channel_aggregator.reset(channel)

            detected = self.sampler.sample_many(wavelengths)
            channel_aggregator.record_photons(wavelengths, times, detected)

            if self.verbosity >= VerbosityLevel.DETAILED:
                self._log_photons(event_id, channel, wavelengths, times, detected)

            channel_tally = channel_aggregator.finalize()

            if self.build_library:
                self.library.record(
                    voxel_id, channel, channel_tally.count_all, photons_produced
                )

            event_aggregator.add(channel_tally)

            if self.verbosity >= VerbosityLevel.DETAILED:
                self.log.info(
                    f"Event {event_id} channel {channel}: all {channel_tally.count_all} "
                    f"detected {channel_tally.count_detected}"
                )

        event_tally = event_aggregator.finalize()

        if self.verbosity >= VerbosityLevel.EVENTS:
            self.log.info(
                f"Event {event_id}: all {event_tally.count_all} "
                f"detected {event_tally.count_detected}"
            )

    def _log_photons(self, event_id, channel, wavelengths, times, detected):
        for wavelength, time, is_detected in zip(wavelengths, times, detected):
            self.log.info(
                f"Event {event_id} channel {channel}: photon at t={time} "
                f"with wavelength {wavelength:.2f} nm detected {int(is_detected)}"
            )

    def finalize_library(self):
        """Store the visibility library at the end of the run.

        Returns the library entries, None if this is no library building job.
        """
        if not self.build_library:
            self.log.debug("No library building job, nothing to store")
            return None
        return self.library.finalize(sink=self.sinks["visibility_library"])

    def output(self, data_type):
        """Everything written to an in memory output so far."""
        sink = self.sinks.get(data_type)
        if sink is None:
            raise ValueError(f"Output {data_type} is not enabled!")
        return sink.data


DetectionEngine = PhotonCounter
