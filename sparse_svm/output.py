"""Prediction files: one real value per line, in sample order."""

from __future__ import annotations

import logging
import os
from typing import Iterable, Union

import numpy as np

from .errors import FileAccessError, ParseError

LOGGER = logging.getLogger(__name__)


def write_output(path: Union[str, os.PathLike], predictions: Iterable[float]) -> int:
    """Write ``predictions`` to ``path``, replacing any previous content.

    Values use the shortest representation that reads back to the same
    double (``0.87`` is written as ``0.87``). Returns the number of lines
    written.
    """
    lines = [f"{float(value)!r}\n" for value in predictions]
    try:
        with open(path, "w", encoding="utf-8") as handle:
            handle.writelines(lines)
    except OSError as exc:
        raise FileAccessError(path, exc) from exc
    LOGGER.info("Wrote %d predictions to %s", len(lines), path)
    return len(lines)


def read_output(path: Union[str, os.PathLike]) -> np.ndarray:
    """Read a file produced by :func:`write_output`."""
    try:
        with open(path, "r", encoding="utf-8") as handle:
            text = handle.read()
    except OSError as exc:
        raise FileAccessError(path, exc) from exc
    values = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        try:
            values.append(float(line))
        except ValueError:
            raise ParseError(lineno, f"invalid prediction {line!r}") from None
    return np.array(values, dtype=np.float64)
