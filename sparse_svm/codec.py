"""Binary model files.

Layout (little endian)::

    b"SVMM"  uint32 version
    int32    kernel type (0 = linear, 1 = rbf)
    int64    number of hyperparameters, followed by that many float64
    int64    maxdim
    int64    number of support vectors n
    float64  bias
    float64  x n weights
    n times: (int32 index, float64 value) pairs closed by a (-1, 0.0)
             sentinel, then the float64 squared norm of that vector

Floating point fields are written as raw IEEE-754 doubles, so a stored model
reads back bit for bit.
"""

from __future__ import annotations

import io
import logging
import os
from typing import BinaryIO, List, Optional, Union

import numpy as np

from .config import KernelType
from .dataset import Dataset
from .errors import CorruptModelError, FileAccessError
from .model import Model
from .store import FeatureStore

LOGGER = logging.getLogger(__name__)

MAGIC = b"SVMM"
FORMAT_VERSION = 1
SENTINEL = -1
PAIR_DTYPE = np.dtype([("index", "<i4"), ("value", "<f8")])
NORM_DTYPE = np.dtype("<f8")


def _pack(value, dtype: str) -> bytes:
    return np.array([value], dtype=dtype).tobytes()


def store_model(model: Model, stream: BinaryIO) -> None:
    """Write ``model`` to an open binary stream."""
    support_vectors = model.support_vectors
    stream.write(MAGIC)
    stream.write(_pack(FORMAT_VERSION, "<u4"))
    stream.write(_pack(int(model.kernel_type), "<i4"))
    stream.write(_pack(len(model.kernel_hyper_params), "<i8"))
    stream.write(model.kernel_hyper_params.astype("<f8").tobytes())
    stream.write(_pack(model.maxdim, "<i8"))
    stream.write(_pack(model.n_support, "<i8"))
    stream.write(_pack(model.bias, "<f8"))
    stream.write(model.weights.astype("<f8").tobytes())

    norms = support_vectors.squared_norms
    for i, view in enumerate(support_vectors):
        run = np.zeros(len(view) + 1, dtype=PAIR_DTYPE)
        run["index"][:-1] = view.indices
        run["value"][:-1] = view.values
        run["index"][-1] = SENTINEL
        stream.write(run.tobytes())
        stream.write(_pack(norms[i], "<f8"))


class _Reader:
    """Reads typed fields and reports which one a short stream cut off."""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream
        self.remaining = self._measure()

    def _measure(self):
        try:
            if not self.stream.seekable():
                return None
            here = self.stream.tell()
            end = self.stream.seek(0, io.SEEK_END)
            self.stream.seek(here)
            return end - here
        except (AttributeError, OSError):
            return None

    def raw(self, size: int, field: str) -> bytes:
        if self.remaining is not None and size > self.remaining:
            raise CorruptModelError(f"stream ends before {field} ({size} bytes declared, {self.remaining} left)")
        data = self.stream.read(size)
        if len(data) != size:
            raise CorruptModelError(f"stream ends before {field}")
        if self.remaining is not None:
            self.remaining -= size
        return data

    def array(self, dtype, count: int, field: str) -> np.ndarray:
        dtype = np.dtype(dtype)
        return np.frombuffer(self.raw(dtype.itemsize * count, field), dtype=dtype, count=count)

    def scalar(self, dtype, field: str):
        return self.array(dtype, 1, field)[0]

    def count(self, field: str) -> int:
        value = int(self.scalar("<i8", field))
        if value < 0:
            raise CorruptModelError(f"negative {field} {value}")
        return value

    def rest(self) -> bytes:
        data = self.stream.read()
        self.remaining = 0
        return data


def _run_length(tail: bytes, start: int) -> Optional[int]:
    """Number of pairs from ``start`` up to the next sentinel, ``None`` if there is none."""
    available = (len(tail) - start) // PAIR_DTYPE.itemsize
    scanned = 0
    window = 64
    while scanned < available:
        count = min(window, available - scanned)
        pairs = np.frombuffer(tail, dtype=PAIR_DTYPE, count=count, offset=start + scanned * PAIR_DTYPE.itemsize)
        hits = np.flatnonzero(pairs["index"] == SENTINEL)
        if len(hits):
            return scanned + int(hits[0])
        scanned += count
        window *= 4
    return None


def read_model(stream: BinaryIO) -> Model:
    """Read a model written by :func:`store_model`.

    The returned model owns a freshly allocated feature store.

    Raises
    ------
    CorruptModelError
        If the stream is truncated, carries trailing data, names an unknown
        kernel or holds inconsistent support vectors.
    """
    reader = _Reader(stream)
    if reader.raw(len(MAGIC), "magic") != MAGIC:
        raise CorruptModelError("not a model file (bad magic)")
    version = int(reader.scalar("<u4", "version"))
    if version != FORMAT_VERSION:
        raise CorruptModelError(f"unsupported format version {version}")
    tag = int(reader.scalar("<i4", "kernel type"))
    try:
        kernel_type = KernelType(tag)
    except ValueError:
        raise CorruptModelError(f"unknown kernel type {tag}") from None

    hyper_params = reader.array("<f8", reader.count("hyperparameter count"), "kernel hyperparameters")
    maxdim = reader.count("maxdim")
    n_support = reader.count("support vector count")
    bias = float(reader.scalar("<f8", "bias"))
    weights = reader.array("<f8", n_support, "weights")

    # Runs are variable length, so the rest of the stream is scanned in memory.
    tail = reader.rest()
    cursor = 0
    runs: List[np.ndarray] = []
    lengths = np.zeros(n_support, dtype=np.int64)
    norms = np.zeros(n_support, dtype=np.float64)
    for i in range(n_support):
        length = _run_length(tail, cursor)
        if length is None:
            raise CorruptModelError(f"stream ends before the sentinel of support vector {i}")
        runs.append(np.frombuffer(tail, dtype=PAIR_DTYPE, count=length, offset=cursor))
        lengths[i] = length
        cursor += PAIR_DTYPE.itemsize * (length + 1)
        if cursor + NORM_DTYPE.itemsize > len(tail):
            raise CorruptModelError(f"stream ends before squared norm of support vector {i}")
        norms[i] = np.frombuffer(tail, dtype=NORM_DTYPE, count=1, offset=cursor)[0]
        cursor += NORM_DTYPE.itemsize
    if cursor != len(tail):
        raise CorruptModelError("trailing data after the last support vector")

    pairs = np.concatenate(runs) if runs else np.zeros(0, dtype=PAIR_DTYPE)
    store = FeatureStore.from_arrays(pairs["index"].astype(np.int32), pairs["value"])
    try:
        support_vectors = Dataset(store, lengths, maxdim, squared_norms=norms)
        return Model(kernel_type, hyper_params, support_vectors, weights, bias)
    except ValueError as exc:
        store.release()
        raise CorruptModelError(str(exc)) from exc


def save_model(model: Model, path: Union[str, os.PathLike]) -> None:
    try:
        handle = open(path, "wb")
    except OSError as exc:
        raise FileAccessError(path, exc) from exc
    with handle:
        store_model(model, handle)
    LOGGER.info("Stored %s model with %d support vectors to %s", model.kernel_type.name.lower(), model.n_support, path)


def load_model(path: Union[str, os.PathLike]) -> Model:
    try:
        handle = open(path, "rb")
    except OSError as exc:
        raise FileAccessError(path, exc) from exc
    with handle:
        model = read_model(handle)
    LOGGER.info("Loaded %s model with %d support vectors from %s", model.kernel_type.name.lower(), model.n_support, path)
    if model.n_support == 0:
        LOGGER.warning("Model %s has no support vectors; every sample scores the bias %r", path, model.bias)
    return model
