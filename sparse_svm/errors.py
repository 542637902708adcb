"""Exceptions raised while loading, storing and writing SVM data."""

from __future__ import annotations

import os
from typing import Optional, Union


class SparseSVMError(Exception):
    """Base class for every error raised by :mod:`sparse_svm`."""


class ParseError(SparseSVMError, ValueError):
    """A malformed record in a sparse-format dataset file.

    Parameters
    ----------
    line : int
        One-based physical line number of the offending record. ``0`` means
        the file as a whole is at fault (e.g. it holds no samples).
    reason : str
        Human readable description of the fault.
    """

    def __init__(self, line: int, reason: str) -> None:
        self.line = line
        self.reason = reason
        where = f"line {line}" if line > 0 else "input"
        super().__init__(f"{where}: {reason}")


class CorruptModelError(SparseSVMError, ValueError):
    """A model stream that is truncated or holds invalid content."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"corrupt model: {reason}")


class FileAccessError(SparseSVMError, OSError):
    """A file that could not be opened, read or written."""

    def __init__(self, path: Union[str, os.PathLike], cause: Optional[BaseException] = None) -> None:
        self.path = os.fspath(path)
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"cannot access {self.path}{detail}")


class AllocationError(SparseSVMError, MemoryError):
    """The feature store could not be allocated."""

    def __init__(self, requested: int) -> None:
        self.requested = requested
        super().__init__(f"cannot allocate a feature store of {requested} features")
