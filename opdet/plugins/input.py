import numpy as np
import strax
import pandas as pd

from ..common import wavelength_from_energy, photons_from_buckets, dataframe_to_numpy
from ..dtypes import sim_photon_fields, csv_photon_fields, csv_bucketed_photon_fields
from ..errors import MissingInputError, RepresentationMismatchError

export, __all__ = strax.exporter()


@export
class ItemizedPhotons:
    """Photons of one event, stored one by one for each channel.

    Args:
        photons: dict mapping the channel to an array with the fields of
            sim_photon_fields. The order of the dict is the processing order.
    """

    kind = "itemized"

    def __init__(self, photons):
        self.photons = dict(photons)

    def __len__(self):
        return len(self.photons)


@export
class BucketedPhotonRecord:
    """Compact photons of one channel: number of photons per time bucket."""

    def __init__(self, channel, buckets):
        self.channel = int(channel)
        self.buckets = dict(buckets)

    def __repr__(self):
        return f"BucketedPhotonRecord(channel={self.channel}, buckets={self.buckets})"


@export
class BucketedPhotons:
    """Photons of one event in the compact, time bucketed representation."""

    kind = "bucketed"

    def __init__(self, records):
        self.records = list(records)

    def __len__(self):
        return len(self.records)


def _itemized_wavelengths(photons):
    names = photons.dtype.names
    if "wavelength" in names:
        wavelengths = photons["wavelength"].astype(np.float64)
        needs_conversion = np.isnan(wavelengths)
    else:
        wavelengths = np.zeros(len(photons), dtype=np.float64)
        needs_conversion = np.ones(len(photons), dtype=np.bool_)

    if np.any(needs_conversion):
        wavelengths[needs_conversion] = wavelength_from_energy(
            photons["energy"][needs_conversion]
        )
    return wavelengths


def _merge_bucketed_records(records):
    # One entry per channel, in order of first appearance
    channels = dict()
    for record in records:
        buckets = channels.setdefault(record.channel, dict())
        for bucket, count in record.buckets.items():
            buckets[int(bucket)] = buckets.get(int(bucket), 0) + int(count)
    return channels


@export
def iterate_channels(photons, bucket_width):
    """Bring both photon representations into the same shape.

    Yields (channel, wavelengths, times) for every channel in input order.
    Bucketed photons are expanded photon by photon, so the detection loop
    is the same for both representations. Bucketed records of the same
    channel are merged, the channel keeps its first position.
    """
    if isinstance(photons, ItemizedPhotons):
        for channel, channel_photons in photons.photons.items():
            channel_photons = np.asarray(channel_photons)
            wavelengths = _itemized_wavelengths(channel_photons)
            times = channel_photons["t"].astype(np.float64)
            yield int(channel), wavelengths, times

    elif isinstance(photons, BucketedPhotons):
        for channel, channel_buckets in _merge_bucketed_records(photons.records).items():
            buckets = np.fromiter(channel_buckets.keys(), dtype=np.int64, count=len(channel_buckets))
            counts = np.fromiter(channel_buckets.values(), dtype=np.int64, count=len(channel_buckets))
            wavelengths, times = photons_from_buckets(buckets, counts, bucket_width)
            yield channel, wavelengths, times

    else:
        raise TypeError(f"Unknown photon representation {type(photons)}!")


@export
class PhotonInputProvider:
    """Hands out the photons of each event.

    Exactly one of the two representations has to be given, both are dicts
    keyed by the event id.

    Args:
        itemized: {event_id: {channel: photon array}}
        bucketed: {event_id: {channel: {bucket: count}}}
        event_ids: Events which should be processed even if they have no
            photons at all.
    """

    def __init__(self, itemized=None, bucketed=None, event_ids=None, input_module="largeant"):
        if (itemized is None) == (bucketed is None):
            raise RepresentationMismatchError(
                "Provide either itemized or bucketed photons for a run, not both or neither!"
            )

        self.compact = bucketed is not None
        self.input_module = input_module
        self._events = dict(bucketed if self.compact else itemized)

        all_event_ids = set(self._events)
        if event_ids is not None:
            all_event_ids |= set(int(e) for e in event_ids)
        self.event_ids = sorted(all_event_ids)

    def __len__(self):
        return len(self.event_ids)

    def __contains__(self, event_id):
        return event_id in self._events

    def get(self, event_id):
        """Photons of an event.

        Raises MissingInputError if the event has no photon collection.
        """
        if event_id not in self._events:
            raise MissingInputError(event_id, self.input_module)

        event = self._events[event_id]
        if self.compact:
            return BucketedPhotons(
                [BucketedPhotonRecord(channel, buckets) for channel, buckets in event.items()]
            )
        return ItemizedPhotons(event)


@export
class csv_photon_loader:
    """Class to load photons hitting the optical channels from a CSV file.

    Itemized files need the columns eventid, channel, energy and t, with an
    optional wavelength column. Compact files need the columns eventid,
    channel, bucket and count.
    """

    def __init__(self, input_file, compact=False, event_ids=None, input_module="largeant", log=None):
        self.input_file = input_file
        self.compact = compact
        self.event_ids = event_ids
        self.input_module = input_module
        self.log = log

        _fields = csv_bucketed_photon_fields if compact else csv_photon_fields
        self.dtype = _fields
        self.columns = list(np.dtype(_fields).names)
        if not compact:
            self.columns.remove("wavelength")

    def load(self):
        if self.log is not None:
            self.log.debug(f"Load photons from {self.input_file}")
        df = pd.read_csv(self.input_file)

        missing_columns = set(self.columns) - set(df.columns)
        if missing_columns:
            raise ValueError(f"Not all needed columns provided! {missing_columns} are missing.")

        if self.compact:
            events = self.__group_bucketed(df)
            return PhotonInputProvider(
                bucketed=events, event_ids=self.event_ids, input_module=self.input_module
            )

        if "wavelength" not in df.columns:
            df["wavelength"] = np.nan
        events = self.__group_itemized(df)
        return PhotonInputProvider(
            itemized=events, event_ids=self.event_ids, input_module=self.input_module
        )

    def __group_itemized(self, df):
        events = dict()
        for event_id, event_df in df.groupby("eventid", sort=False):
            events[int(event_id)] = {
                int(channel): dataframe_to_numpy(channel_df, sim_photon_fields)
                for channel, channel_df in event_df.groupby("channel", sort=False)
            }
        return events

    def __group_bucketed(self, df):
        events = dict()
        for event_id, event_df in df.groupby("eventid", sort=False):
            channels = dict()
            for channel, channel_df in event_df.groupby("channel", sort=False):
                buckets = dict()
                for bucket, count in zip(channel_df["bucket"].values, channel_df["count"].values):
                    buckets[int(bucket)] = buckets.get(int(bucket), 0) + int(count)
                channels[int(channel)] = buckets
            events[int(event_id)] = channels
        return events
