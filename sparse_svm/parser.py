"""Reader for datasets in the sparse (libsvm / svmlight) text format.

Each non-blank line holds one sample, with or without a leading label::

    +1 1:2.0 3:1.0
    1:2.0 3:1.0

Anything after a ``#`` is a comment, as in files written by svmlight tools.

Indices are kept exactly as written (``1``-based in the usual convention),
must be non-negative and strictly increasing within a line, and the
dataset's ``maxdim`` is ``max(index) + 1`` over the whole file.

The file is read twice through one handle: the first pass validates every
record and sizes the feature store, the second fills the store, which is
allocated exactly once.
"""

from __future__ import annotations

import logging
import math
import os
import re
from typing import IO, Iterator, List, Optional, Tuple, Union

import numpy as np

from .dataset import Dataset
from .errors import FileAccessError, ParseError
from .store import FeatureStore

LOGGER = logging.getLogger(__name__)

MAX_INDEX = np.iinfo(np.int32).max - 1

PathLike = Union[str, os.PathLike]
INDEX_PATTERN = re.compile(r"[+-]?[0-9]+")

Record = Tuple[int, Optional[float], List[int], List[float]]


def _index(token: str, lineno: int) -> int:
    if not INDEX_PATTERN.fullmatch(token):
        raise ParseError(lineno, f"invalid index {token!r}")
    return int(token)


def _real(token: str, lineno: int, what: str) -> float:
    # float() also accepts digit separators, nan and inf.
    if "_" in token:
        raise ParseError(lineno, f"invalid {what} {token!r}")
    try:
        value = float(token)
    except ValueError:
        raise ParseError(lineno, f"invalid {what} {token!r}") from None
    if not math.isfinite(value):
        raise ParseError(lineno, f"non-finite {what} {token!r}")
    return value


def parse_line(
    text: str, lineno: int, labeled: bool, maxdim: Optional[int] = None
) -> Tuple[Optional[float], List[int], List[float]]:
    """Split one record into its label and feature run.

    Raises
    ------
    ParseError
        If a token is malformed, an index is negative, out of order or not
        below a fixed ``maxdim``.
    """
    tokens = text.split()
    label = None
    if labeled:
        head = tokens.pop(0)
        if ":" in head:
            raise ParseError(lineno, f"expected a label, got feature {head!r}")
        label = _real(head, lineno, "label")

    indices: List[int] = []
    values: List[float] = []
    previous = -1
    for token in tokens:
        raw_index, sep, raw_value = token.partition(":")
        if not sep:
            raise ParseError(lineno, f"expected index:value, got {token!r}")
        index = _index(raw_index, lineno)
        value = _real(raw_value, lineno, "value")
        if index < 0 or index > MAX_INDEX:
            raise ParseError(lineno, f"index {index} out of range")
        if index <= previous:
            raise ParseError(lineno, f"index {index} does not follow {previous}")
        if maxdim is not None and index >= maxdim:
            raise ParseError(lineno, f"index {index} exceeds the fixed dimension {maxdim}")
        indices.append(index)
        values.append(value)
        previous = index
    return label, indices, values


def _records(handle: IO[bytes], labeled: bool, maxdim: Optional[int]) -> Iterator[Record]:
    for lineno, raw in enumerate(handle, start=1):
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(lineno, f"invalid UTF-8 at byte {exc.start}") from None
        text = text.split("#", 1)[0]
        if not text.strip():
            continue
        label, indices, values = parse_line(text, lineno, labeled, maxdim)
        yield lineno, label, indices, values


def _scan(handle: IO[bytes], labeled: bool, maxdim: Optional[int]) -> Tuple[int, int, int]:
    n_samples = 0
    n_features = 0
    max_index = -1
    for _, _, indices, _ in _records(handle, labeled, maxdim):
        n_samples += 1
        n_features += len(indices)
        if indices:
            max_index = max(max_index, indices[-1])
    return n_samples, n_features, max_index


def _fill(
    handle: IO[bytes], store: FeatureStore, n_samples: int, labeled: bool, sparse: bool, dim: int
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    lengths = np.zeros(n_samples, dtype=np.int64)
    targets = np.zeros(n_samples, dtype=np.float64) if labeled else None
    dense_indices = np.arange(dim)
    cursor = 0
    for row, (_, label, indices, values) in enumerate(_records(handle, labeled, dim)):
        if targets is not None:
            targets[row] = label
        if sparse:
            store.fill(cursor, indices, values)
            lengths[row] = len(indices)
        else:
            dense = np.zeros(dim, dtype=np.float64)
            dense[indices] = values
            store.fill(cursor, dense_indices, dense)
            lengths[row] = dim
        cursor += lengths[row]
    return lengths, targets


def read_dataset(
    path: PathLike, labeled: bool, sparse: bool = True, maxdim: Optional[int] = None
) -> Dataset:
    """Load a dataset from ``path``.

    Parameters
    ----------
    path : str or PathLike
        Text file in the sparse format.
    labeled : bool
        Whether every line starts with a label.
    sparse : bool, default=True
        Store only the listed features (``True``) or every index
        ``0 .. maxdim - 1`` per sample (``False``).
    maxdim : int, optional
        Fixed dimensionality, e.g. the ``maxdim`` of the model that will
        score this data. By default it is ``max(index) + 1``.

    Raises
    ------
    FileAccessError
        If ``path`` cannot be opened.
    ParseError
        On the first malformed line, or if the file holds no samples.
    """
    try:
        handle = open(path, "rb")
    except OSError as exc:
        raise FileAccessError(path, exc) from exc

    with handle:
        n_samples, n_features, max_index = _scan(handle, labeled, maxdim)
        if n_samples == 0:
            raise ParseError(0, f"no samples in {os.fspath(path)}")
        dim = maxdim if maxdim is not None else max_index + 1
        total = n_features if sparse else n_samples * dim
        LOGGER.debug("Scanned %s: %d samples, %d features, maxdim=%d", path, n_samples, n_features, dim)

        handle.seek(0)
        store = FeatureStore(total)
        try:
            lengths, targets = _fill(handle, store, n_samples, labeled, sparse, dim)
            store.freeze()
            dataset = Dataset(store, lengths, dim, targets=targets, sparse=sparse)
            # Cache the norms now rather than on the first kernel evaluation.
            dataset.squared_norms
        except BaseException:
            store.release()
            raise

    LOGGER.info(
        "Loaded %s: %d samples, %d stored features, maxdim=%d, labeled=%s, sparse=%s",
        path,
        dataset.count,
        total,
        dataset.maxdim,
        labeled,
        sparse,
    )
    return dataset


def read_train_file(path: PathLike, sparse: bool = True, maxdim: Optional[int] = None) -> Dataset:
    """Load a labeled dataset (``<label> <index>:<value> ...`` per line)."""
    return read_dataset(path, labeled=True, sparse=sparse, maxdim=maxdim)


def read_unlabeled_file(path: PathLike, sparse: bool = True, maxdim: Optional[int] = None) -> Dataset:
    """Load an unlabeled dataset (``<index>:<value> ...`` per line)."""
    return read_dataset(path, labeled=False, sparse=sparse, maxdim=maxdim)
