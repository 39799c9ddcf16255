import numpy as np
import pandas as pd


class ArraySink:
    """In memory sink collecting records of a single data type.

    Records are written as structured arrays and concatenated on request.
    Any object with a ``write(records)`` method can be used instead, e.g.
    to persist the records to disk.
    """

    def __init__(self, dtype):
        self.dtype = np.dtype(dtype)
        self._chunks = []
        self._n_records = 0

    def write(self, records):
        if records.dtype != self.dtype:
            raise ValueError(f"Expected records of dtype {self.dtype}, got {records.dtype}")
        self._chunks.append(records)
        self._n_records += len(records)

    def __len__(self):
        return self._n_records

    @property
    def data(self):
        if not self._chunks:
            return np.zeros(0, dtype=self.dtype)
        return np.concatenate(self._chunks)

    def to_dataframe(self):
        data = self.data
        return pd.DataFrame({name: data[name] for name in data.dtype.names})


def build_sinks(plugin, make_outputs):
    """Create one ArraySink for every enabled output of a plugin.

    Disabled outputs get None, so the plugin can skip building their records.
    """
    sinks = dict()
    for data_type, enabled in make_outputs.items():
        sinks[data_type] = ArraySink(plugin.dtype_for(data_type)) if enabled else None
    return sinks
