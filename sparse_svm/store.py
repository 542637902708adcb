"""Arena storage for sparse feature runs.

Every sample of a :class:`~sparse_svm.dataset.Dataset` (and every support
vector of a :class:`~sparse_svm.model.Model`) keeps its non-zero features in
one shared :class:`FeatureStore`. A sample is then nothing more than a
:class:`SampleView`, an ``(offset, length)`` window into that store.

The store is allocated once with its final size, filled, and frozen. Views
are only handed out after freezing, so a view can never observe a
reallocation. Releasing the store invalidates all of its views at once.
"""

from __future__ import annotations

import dataclasses
from typing import Optional

import numpy as np

from .errors import AllocationError

FEATURE_DTYPE = np.dtype([("index", np.int32), ("value", np.float64)])


class FeatureStore:
    """A single contiguous allocation of ``(index, value)`` features.

    Parameters
    ----------
    size : int
        Total number of features the store holds. The size is fixed for the
        lifetime of the store.
    """

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError("size must be non-negative.")
        try:
            self._features: Optional[np.ndarray] = np.zeros(size, dtype=FEATURE_DTYPE)
        except MemoryError as exc:
            raise AllocationError(size) from exc
        self._frozen = False

    @classmethod
    def from_arrays(cls, indices: np.ndarray, values: np.ndarray) -> "FeatureStore":
        """Build and freeze a store holding ``indices``/``values`` back to back."""
        indices = np.asarray(indices)
        values = np.asarray(values, dtype=np.float64)
        if indices.shape != values.shape or indices.ndim != 1:
            raise ValueError("indices and values must be 1-D arrays of equal length.")
        store = cls(len(indices))
        store.fill(0, indices, values)
        store.freeze()
        return store

    def _array(self) -> np.ndarray:
        if self._features is None:
            raise ReferenceError("feature store has been released.")
        return self._features

    @property
    def size(self) -> int:
        return len(self._array())

    @property
    def features(self) -> np.ndarray:
        return self._array()

    @property
    def indices(self) -> np.ndarray:
        return self._array()["index"]

    @property
    def values(self) -> np.ndarray:
        return self._array()["value"]

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def released(self) -> bool:
        return self._features is None

    def fill(self, start: int, indices, values) -> None:
        """Copy one run into the store starting at ``start``."""
        if self._frozen:
            raise RuntimeError("feature store is frozen.")
        features = self._array()
        stop = start + len(indices)
        if start < 0 or stop > len(features):
            raise IndexError(f"run [{start}, {stop}) exceeds store of size {len(features)}.")
        features["index"][start:stop] = indices
        features["value"][start:stop] = values

    def freeze(self) -> None:
        """Make the store read-only. Views may be issued from now on."""
        self._array().flags.writeable = False
        self._frozen = True

    def view(self, offset: int, length: int) -> "SampleView":
        if not self._frozen:
            raise RuntimeError("views can only be taken from a frozen store.")
        if offset < 0 or length < 0 or offset + length > self.size:
            raise IndexError(f"view ({offset}, {length}) outside store of size {self.size}.")
        return SampleView(self, offset, length)

    def release(self) -> None:
        """Drop the buffer. All views on this store become invalid."""
        self._features = None

    def __len__(self) -> int:
        return self.size

    def __repr__(self) -> str:
        if self.released:
            return "FeatureStore(released)"
        return f"FeatureStore(size={self.size}, frozen={self._frozen})"


@dataclasses.dataclass(frozen=True)
class SampleView:
    """Borrowed window onto one sample's run inside a :class:`FeatureStore`.

    Indices within the run are strictly increasing. The view holds no data
    of its own; accessing it after the store was released raises
    :class:`ReferenceError`.
    """

    store: FeatureStore = dataclasses.field(repr=False, compare=False)
    offset: int
    length: int

    @property
    def indices(self) -> np.ndarray:
        return self.store.indices[self.offset:self.offset + self.length]

    @property
    def values(self) -> np.ndarray:
        return self.store.values[self.offset:self.offset + self.length]

    def squared_norm(self) -> float:
        values = self.values
        return float(np.dot(values, values))

    def to_dense(self, maxdim: int) -> np.ndarray:
        dense = np.zeros(maxdim, dtype=np.float64)
        dense[self.indices] = self.values
        return dense

    def __len__(self) -> int:
        return self.length
