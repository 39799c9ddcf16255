
import numpy as np
import numba

# hbar*c in the unit convention of the photon simulation
HBARC = 0.000197

# Compact photons carry no spectral information, they all get this wavelength [nm]
BUCKETED_PHOTON_WAVELENGTH = 128.0

# Width of one time bucket of the compact photon representation
DEFAULT_BUCKET_WIDTH = 2


def wavelength_from_energy(energy):
    """Convert photon energies into wavelengths in nm.

    Args:
        energy: scalar or array of photon energies, must be > 0

    Returns:
        wavelength with the same shape as energy
    """
    energy = np.asarray(energy, dtype=np.float64)
    if np.any(~(energy > 0)):
        raise ValueError("Photon energies must be positive to compute a wavelength!")
    return (2.0 * np.pi) * HBARC / energy


@numba.njit()
def detection_mask(uniform, wavelengths, quantum_efficiency, wavelength_low, wavelength_high):
    """Decide for each photon if it is detected.

    A photon is detected if its uniform random number is below the quantum
    efficiency and its wavelength is strictly inside the sensitive range.
    One random number per photon has to be provided, also for photons
    outside of the wavelength range.
    """
    result = np.zeros(len(wavelengths), dtype=np.bool_)
    for i in range(len(wavelengths)):
        passes_qe = uniform[i] <= quantum_efficiency
        in_band = (wavelengths[i] > wavelength_low) and (wavelengths[i] < wavelength_high)
        result[i] = passes_qe and in_band
    return result


def photons_from_buckets(bucket_index, counts, bucket_width=DEFAULT_BUCKET_WIDTH):
    """Expand (bucket, count) pairs of one channel into per photon times and
    wavelengths.

    Buckets are expanded in ascending bucket order, every photon of a bucket
    gets the time bucket_index * bucket_width.
    """
    bucket_index = np.asarray(bucket_index, dtype=np.int64)
    counts = np.asarray(counts, dtype=np.int64)

    if np.any(counts < 0):
        raise ValueError("Photon counts in a time bucket can not be negative!")

    sort_idx = np.argsort(bucket_index, kind="stable")
    times = np.repeat(bucket_index[sort_idx] * bucket_width, counts[sort_idx]).astype(np.float64)
    wavelengths = np.full(len(times), BUCKETED_PHOTON_WAVELENGTH, dtype=np.float64)

    return wavelengths, times


def dataframe_to_numpy(df, dtype):
    """Copy the columns of a DataFrame into a structured array.

    Columns not in the dtype are ignored, fields missing in the DataFrame
    stay zero.
    """
    numpy_data = np.zeros(len(df), dtype=dtype)
    for field in numpy_data.dtype.names:
        if field in df.columns:
            numpy_data[field] = df[field].values
    return numpy_data
