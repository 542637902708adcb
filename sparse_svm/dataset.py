"""In-memory representation of a sparse dataset."""

from __future__ import annotations

from typing import Iterator, Optional, Sequence, Tuple, Union

import numpy as np

from .store import FeatureStore, SampleView

NORM_RTOL = 1e-9
NORM_ATOL = 1e-12


def run_offsets(lengths: np.ndarray) -> np.ndarray:
    """Start offset of every run given the run lengths."""
    offsets = np.zeros(len(lengths), dtype=np.int64)
    if len(lengths) > 1:
        np.cumsum(lengths[:-1], out=offsets[1:])
    return offsets


def squared_norms_of(store: FeatureStore, lengths: np.ndarray) -> np.ndarray:
    """Sum of ``value ** 2`` over every run of ``store``."""
    owners = np.repeat(np.arange(len(lengths)), lengths)
    values = store.values
    return np.bincount(owners, weights=values * values, minlength=len(lengths)).astype(np.float64)


def check_runs(indices: np.ndarray, lengths: np.ndarray, maxdim: int) -> None:
    """Raise ``ValueError`` unless every run is strictly increasing and inside ``[0, maxdim)``."""
    if len(indices) == 0:
        return
    if indices.min() < 0:
        raise ValueError("feature indices must be non-negative.")
    if indices.max() >= maxdim:
        raise ValueError(f"feature index {int(indices.max())} outside maxdim {maxdim}.")
    increasing = np.diff(indices.astype(np.int64)) > 0
    starts = run_offsets(lengths)[lengths > 0]
    # A run boundary may decrease.
    increasing[starts[starts > 0] - 1] = True
    if not increasing.all():
        raise ValueError("feature indices must be strictly increasing within a sample.")


def _readonly(array: np.ndarray) -> np.ndarray:
    array.flags.writeable = False
    return array


class Dataset:
    """A collection of samples sharing one :class:`FeatureStore`.

    The dataset exclusively owns ``store``. Each entry of :attr:`samples` is a
    :class:`SampleView` borrowing a contiguous run from it; runs follow each
    other in sample order without gaps or overlap.

    In dense mode (``sparse=False``) each run holds exactly ``maxdim``
    features with indices ``0 .. maxdim - 1``, so every consumer can treat
    dense and sparse data through the same view type.

    Parameters
    ----------
    store : FeatureStore
        Frozen store holding every run back to back. Ownership moves to the
        dataset.
    lengths : sequence of int
        Number of features of every sample.
    maxdim : int
        Dimensionality of the feature space. Every index is below it.
    targets : sequence of float, optional
        One label per sample for labeled datasets.
    sparse : bool, default=True
        Storage discipline of ``store``.
    squared_norms : sequence of float, optional
        Precomputed ``||x||^2`` per sample, checked against the store.
        Computed on first access when omitted.
    """

    def __init__(
        self,
        store: FeatureStore,
        lengths: Sequence[int],
        maxdim: int,
        targets: Optional[Sequence[float]] = None,
        sparse: bool = True,
        squared_norms: Optional[Sequence[float]] = None,
    ) -> None:
        if not store.frozen:
            raise ValueError("the feature store must be frozen before building a dataset.")
        lengths = np.array(lengths, dtype=np.int64).reshape(-1)
        if (lengths < 0).any():
            raise ValueError("sample lengths must be non-negative.")
        if int(lengths.sum()) != store.size:
            raise ValueError(
                f"sample lengths cover {int(lengths.sum())} features but the store holds {store.size}."
            )
        if maxdim < 0:
            raise ValueError("maxdim must be non-negative.")
        count = len(lengths)

        if targets is not None:
            targets = np.array(targets, dtype=np.float64).reshape(-1)
            if len(targets) != count:
                raise ValueError(f"got {len(targets)} targets for {count} samples.")
            targets = _readonly(targets)

        if squared_norms is not None:
            squared_norms = np.array(squared_norms, dtype=np.float64).reshape(-1)
            if len(squared_norms) != count:
                raise ValueError(f"got {len(squared_norms)} squared norms for {count} samples.")
            if not np.allclose(squared_norms, squared_norms_of(store, lengths), rtol=NORM_RTOL, atol=NORM_ATOL):
                raise ValueError("supplied squared norms do not match the samples.")
            squared_norms = _readonly(squared_norms)

        if sparse:
            check_runs(store.indices, lengths, maxdim)
        elif count and (
            (lengths != maxdim).any()
            or not (store.indices.reshape(count, maxdim) == np.arange(maxdim)).all()
        ):
            raise ValueError("dense samples must hold every index 0 .. maxdim - 1.")

        self._store: Optional[FeatureStore] = store
        self._lengths = _readonly(lengths)
        self._offsets = _readonly(run_offsets(lengths))
        self._targets = targets
        self._squared_norms = squared_norms
        self.maxdim = int(maxdim)
        self.sparse = bool(sparse)
        self._samples: Tuple[SampleView, ...] = tuple(
            store.view(int(offset), int(length)) for offset, length in zip(self._offsets, self._lengths)
        )

    @classmethod
    def from_dense(
        cls,
        X: np.ndarray,
        y: Optional[Sequence[float]] = None,
        sparse: bool = True,
    ) -> "Dataset":
        """Build a dataset from a ``(n_samples, n_features)`` matrix.

        Column ``j`` becomes feature index ``j``. In sparse mode zero entries
        are not stored.
        """
        X = np.atleast_2d(np.asarray(X, dtype=np.float64))
        n_samples, n_features = X.shape
        if sparse:
            rows, cols = np.nonzero(X)
            lengths = np.bincount(rows, minlength=n_samples)
            store = FeatureStore.from_arrays(cols, X[rows, cols])
        else:
            lengths = np.full(n_samples, n_features)
            store = FeatureStore.from_arrays(np.tile(np.arange(n_features), n_samples), X.reshape(-1))
        return cls(store, lengths, n_features, targets=y, sparse=sparse)

    @property
    def store(self) -> FeatureStore:
        if self._store is None:
            raise ReferenceError("dataset has been closed.")
        return self._store

    @property
    def labeled(self) -> bool:
        return self._targets is not None

    @property
    def targets(self) -> Optional[np.ndarray]:
        return self._targets

    @property
    def samples(self) -> Tuple[SampleView, ...]:
        return self._samples

    @property
    def lengths(self) -> np.ndarray:
        return self._lengths

    @property
    def offsets(self) -> np.ndarray:
        return self._offsets

    @property
    def count(self) -> int:
        return len(self._lengths)

    @property
    def squared_norms(self) -> np.ndarray:
        """Cached ``||x||^2`` of every sample."""
        if self._squared_norms is None:
            self._squared_norms = _readonly(squared_norms_of(self.store, self._lengths))
        return self._squared_norms

    def __len__(self) -> int:
        return self.count

    def __iter__(self) -> Iterator[SampleView]:
        return iter(self._samples)

    def __getitem__(self, item: int) -> SampleView:
        return self._samples[item]

    def to_dense(self) -> np.ndarray:
        """Return the samples as a ``(count, maxdim)`` matrix."""
        dense = np.zeros((self.count, self.maxdim), dtype=np.float64)
        rows = np.repeat(np.arange(self.count), self._lengths)
        dense[rows, self.store.indices] = self.store.values
        return dense

    def subset(self, rows: Union[Sequence[int], np.ndarray], keep_targets: bool = True) -> "Dataset":
        """Copy the selected samples into a new dataset with its own sparse store.

        Explicit zeros of dense samples are dropped so the copy is always
        sparse.
        """
        rows = np.asarray(rows, dtype=np.int64).reshape(-1)
        index_runs = []
        value_runs = []
        for row in rows:
            view = self._samples[row]
            keep = view.values != 0.0 if not self.sparse else slice(None)
            index_runs.append(view.indices[keep])
            value_runs.append(view.values[keep])
        lengths = [len(run) for run in index_runs]
        store = FeatureStore.from_arrays(
            np.concatenate(index_runs) if index_runs else np.zeros(0, dtype=np.int32),
            np.concatenate(value_runs) if value_runs else np.zeros(0, dtype=np.float64),
        )
        targets = self._targets[rows] if keep_targets and self.labeled else None
        norms = self.squared_norms[rows] if self.sparse else None
        return Dataset(store, lengths, self.maxdim, targets=targets, sparse=True, squared_norms=norms)

    def close(self) -> None:
        """Release the feature store. Views taken from this dataset become invalid."""
        self._samples = ()
        if self._store is not None:
            self._store.release()
            self._store = None

    @property
    def closed(self) -> bool:
        return self._store is None

    def __enter__(self) -> "Dataset":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Dataset):
            return NotImplemented
        return (
            self.sparse == other.sparse
            and self.maxdim == other.maxdim
            and _same_optional(self._targets, other._targets)
            and np.array_equal(self._lengths, other._lengths)
            and self.store.indices.tobytes() == other.store.indices.tobytes()
            and self.store.values.tobytes() == other.store.values.tobytes()
            and self.squared_norms.tobytes() == other.squared_norms.tobytes()
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"Dataset(count={self.count}, maxdim={self.maxdim}, labeled={self.labeled}, "
            f"sparse={self.sparse}, closed={self.closed})"
        )


def _same_optional(a: Optional[np.ndarray], b: Optional[np.ndarray]) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return a.tobytes() == b.tobytes()
