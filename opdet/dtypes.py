import numpy as np


sim_photon_fields = [
    (("Photon energy", "energy"), np.float64),
    (("Precomputed photon wavelength, NaN if it has to be derived from the energy [nm]", "wavelength"), np.float64),
    (("Arrival time of the photon", "t"), np.float64),
]


csv_photon_fields = [
    (("Event ID", "eventid"), np.int32),
    (("Optical channel hit by the photon", "channel"), np.int32),
] + sim_photon_fields


csv_bucketed_photon_fields = [
    (("Event ID", "eventid"), np.int32),
    (("Optical channel hit by the photons", "channel"), np.int32),
    (("Index of the time bucket", "bucket"), np.int64),
    (("Number of photons in the time bucket", "count"), np.int64),
]


photon_detail_fields = [
    (("Event ID", "event_id"), np.int32),
    (("Optical channel of the photon", "channel"), np.int32),
    (("Photon wavelength [nm]", "wavelength"), np.float32),
    (("Arrival time of the photon", "t"), np.float32),
]


channel_tally_fields = [
    (("Event ID", "event_id"), np.int32),
    (("Optical channel", "channel"), np.int32),
    (("Number of photons hitting the channel", "count_all"), np.int64),
    (("Number of detected photons in the channel", "count_detected"), np.int64),
]


event_tally_fields = [
    (("Event ID", "event_id"), np.int32),
    (("Number of photons hitting any channel", "count_all"), np.int64),
    (("Number of detected photons in all channels", "count_detected"), np.int64),
]


library_entry_fields = [
    (("ID of the voxel the photons were produced in", "voxel"), np.int32),
    (("Optical channel", "channel"), np.int32),
    (("Fraction of produced photons reaching the channel", "efficiency"), np.float32),
]
