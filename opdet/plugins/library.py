from collections import defaultdict

import numba
import numpy as np
import strax

from ..dtypes import library_entry_fields

export, __all__ = strax.exporter()


@numba.njit()
def _voxel_id(position, lower, upper, n_steps):
    """Index of the voxel containing position, -1 if outside of the grid."""
    voxel = 0
    stride = 1
    for axis in range(3):
        if position[axis] < lower[axis] or position[axis] >= upper[axis]:
            return -1
        fraction = (position[axis] - lower[axis]) / (upper[axis] - lower[axis])
        index = int(fraction * n_steps[axis])
        voxel += index * stride
        stride *= n_steps[axis]
    return voxel


@export
class VoxelGrid:
    """Regular grid of voxels in which library photons are produced.

    Voxel ids run fastest along x, then y, then z.
    """

    def __init__(self, lower, upper, n_steps):
        self.lower = np.asarray(lower, dtype=np.float64)
        self.upper = np.asarray(upper, dtype=np.float64)
        self.n_steps = np.asarray(n_steps, dtype=np.int64)

        if self.lower.shape != (3,) or self.upper.shape != (3,) or self.n_steps.shape != (3,):
            raise ValueError("Voxel grid needs three dimensional boundaries and steps!")
        if np.any(self.upper <= self.lower) or np.any(self.n_steps < 1):
            raise ValueError("Voxel grid boundaries or number of steps are invalid!")

    @property
    def n_voxels(self):
        return int(np.prod(self.n_steps))

    @property
    def voxel_size(self):
        return (self.upper - self.lower) / self.n_steps

    def voxel_id(self, position):
        return _voxel_id(
            np.asarray(position, dtype=np.float64), self.lower, self.upper, self.n_steps
        )

    def voxel_indices(self, voxel_id):
        if not 0 <= voxel_id < self.n_voxels:
            raise ValueError(f"Voxel {voxel_id} is not part of the grid!")
        ix = voxel_id % self.n_steps[0]
        iy = (voxel_id // self.n_steps[0]) % self.n_steps[1]
        iz = voxel_id // (self.n_steps[0] * self.n_steps[1])
        return np.array([ix, iy, iz])

    def voxel_center(self, voxel_id):
        return self.lower + (self.voxel_indices(voxel_id) + 0.5) * self.voxel_size


@export
class VoxelLightSource:
    """Light source of a library building job.

    Every event is one isotropic point source placed in one voxel. Event i
    is placed in voxels[i % len(voxels)].

    Args:
        photons_per_voxel: Number of photons produced per event, either one
            number or an array indexed by the voxel id.
        voxels: Voxel ids to scan, defaults to all voxels of the grid.
        grid: VoxelGrid, needed to place the source.
    """

    def __init__(self, photons_per_voxel, voxels=None, grid=None):
        self.grid = grid
        if voxels is None:
            if grid is None:
                raise ValueError("Provide either a list of voxels or a voxel grid!")
            voxels = np.arange(grid.n_voxels)
        self.voxels = np.asarray(voxels, dtype=np.int64)
        if len(self.voxels) == 0:
            raise ValueError("The light source needs at least one voxel!")
        self.photons_per_voxel = photons_per_voxel

    def retrieve_light_production(self, event_id):
        """Returns (voxel_id, photons_produced) for an event."""
        voxel_id = int(self.voxels[event_id % len(self.voxels)])
        if np.ndim(self.photons_per_voxel) == 0:
            photons_produced = float(self.photons_per_voxel)
        else:
            photons_produced = float(self.photons_per_voxel[voxel_id])
        return voxel_id, photons_produced

    def source_position(self, event_id):
        if self.grid is None:
            raise ValueError("No voxel grid defined for this light source!")
        voxel_id, _ = self.retrieve_light_production(event_id)
        return self.grid.voxel_center(voxel_id)


@export
class VisibilityLibraryAccumulator:
    """Collects the fraction of produced photons reaching each channel.

    Raw sums of hits and produced photons are kept per (voxel, channel),
    so the same voxel seen in several events, or partial accumulators
    merged at the end, are combined by summing before dividing.
    """

    def __init__(self, library_file=None, log=None):
        self.library_file = library_file
        self.log = log
        self.finalized = False

        self._count_all = defaultdict(int)
        self._photons_produced = defaultdict(float)

    def __len__(self):
        return len(self._count_all)

    def record(self, voxel, channel, count_all, photons_produced):
        """Add the hits of one channel of one voxel event.

        Returns False and writes nothing if no photons were produced.
        """
        if self.finalized:
            raise RuntimeError("Visibility library was already finalized!")
        if not photons_produced > 0:
            return False

        key = (int(voxel), int(channel))
        self._count_all[key] += int(count_all)
        self._photons_produced[key] += float(photons_produced)
        return True

    def efficiency(self, voxel, channel):
        key = (int(voxel), int(channel))
        if key not in self._count_all:
            return None
        return float(np.clip(self._count_all[key] / self._photons_produced[key], 0, 1))

    def merge(self, other):
        """Add the raw sums of another accumulator to this one."""
        if self.finalized or other.finalized:
            raise RuntimeError("Can not merge finalized visibility libraries!")
        for key, count in other._count_all.items():
            self._count_all[key] += count
            self._photons_produced[key] += other._photons_produced[key]
        return self

    def entries(self):
        keys = sorted(self._count_all)
        result = np.zeros(len(keys), dtype=library_entry_fields)
        if not keys:
            return result

        voxel_channel = np.array(keys, dtype=np.int64)
        count_all = np.array([self._count_all[k] for k in keys], dtype=np.float64)
        photons_produced = np.array([self._photons_produced[k] for k in keys], dtype=np.float64)

        result["voxel"] = voxel_channel[:, 0]
        result["channel"] = voxel_channel[:, 1]
        result["efficiency"] = np.clip(count_all / photons_produced, 0, 1)
        return result

    def finalize(self, sink=None):
        """Write the library, this can only happen once per run."""
        if self.finalized:
            raise RuntimeError("Visibility library was already finalized!")
        self.finalized = True

        entries = self.entries()
        if sink is not None:
            sink.write(entries)
        if self.library_file is not None:
            np.save(self.library_file, entries)
            if self.log is not None:
                self.log.info(f"Stored visibility library with {len(entries)} entries")
        return entries


@export
class PhotonLibrary:
    """Lookup of the visibility of each channel from a voxel."""

    def __init__(self, entries, n_channels=None):
        entries = np.asarray(entries)
        if n_channels is None:
            n_channels = int(entries["channel"].max()) + 1 if len(entries) else 0
        self.n_channels = n_channels

        self._table = dict()
        for voxel in np.unique(entries["voxel"]):
            voxel_entries = entries[entries["voxel"] == voxel]
            visibilities = np.zeros(self.n_channels, dtype=np.float32)
            visibilities[voxel_entries["channel"]] = voxel_entries["efficiency"]
            self._table[int(voxel)] = visibilities

    @classmethod
    def from_file(cls, file_name, n_channels=None):
        return cls(np.load(file_name), n_channels=n_channels)

    def __contains__(self, voxel):
        return int(voxel) in self._table

    def get_counts(self, voxel):
        """Visibility of all channels, zero for voxels not in the library."""
        if int(voxel) not in self._table:
            return np.zeros(self.n_channels, dtype=np.float32)
        return self._table[int(voxel)].copy()

    def get_visibility(self, voxel, channel):
        if int(voxel) not in self._table or not 0 <= channel < self.n_channels:
            return 0.0
        return float(self._table[int(voxel)][channel])
