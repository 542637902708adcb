"""Kernel functions over sparse sample views.

Kernels here take two :class:`~sparse_svm.store.SampleView` runs together
with their cached squared norms, so an RBF evaluation costs
``O(nnz(a) + nnz(b))`` instead of ``O(maxdim)``::

    K_linear(a, b) = dot(a, b)
    K_rbf(a, b)    = exp(-gamma * (||a||^2 + ||b||^2 - 2 dot(a, b)))
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Callable, Sequence

import numpy as np

from .config import DEFAULT_GAMMA, KernelType, TrainingProperties
from .store import SampleView

if TYPE_CHECKING:
    from .dataset import Dataset
    from .model import Model


def sparse_dot(a: SampleView, b: SampleView) -> float:
    """Dot product of two sorted sparse runs.

    Both runs are strictly increasing, so the matching indices are found by a
    single merge over the two index arrays. Indices present in only one
    operand contribute nothing.
    """
    if not len(a) or not len(b):
        return 0.0
    _, left, right = np.intersect1d(a.indices, b.indices, assume_unique=True, return_indices=True)
    return float(np.dot(a.values[left], b.values[right]))


class Kernel:
    """Factory for the kernels a model file can name.

    Parameters
    ----------
    kernel_type : KernelType or str
        ``LINEAR`` / ``"linear"`` or ``RBF`` / ``"rbf"``.
    gamma : float, optional
        Width of the RBF kernel. Ignored for the linear kernel.
    """

    def __init__(self, kernel_type=KernelType.LINEAR, gamma: float = DEFAULT_GAMMA) -> None:
        if isinstance(kernel_type, str):
            kernel_type = KernelType.parse(kernel_type)
        self.kernel_type = KernelType(kernel_type)
        if self.kernel_type == KernelType.LINEAR:
            self.kernel: Callable[[SampleView, SampleView, float, float], float] = self.linear_kernel
        else:
            if gamma <= 0:
                raise ValueError("gamma must be positive.")
            self.gamma = float(gamma)
            self.kernel = self.rbf_kernel

    @classmethod
    def from_hyper_params(cls, kernel_type: KernelType, hyper_params: Sequence[float]) -> "Kernel":
        if KernelType(kernel_type) == KernelType.RBF:
            return cls(kernel_type, gamma=float(hyper_params[0]))
        return cls(kernel_type)

    @classmethod
    def from_model(cls, model: "Model") -> "Kernel":
        return cls.from_hyper_params(model.kernel_type, model.kernel_hyper_params)

    @classmethod
    def from_properties(cls, props: TrainingProperties) -> "Kernel":
        return cls.from_hyper_params(props.kernel_type, props.kernel_hyper_param)

    def hyper_params(self) -> np.ndarray:
        if self.kernel_type == KernelType.RBF:
            return np.array([self.gamma])
        return np.zeros(0)

    def __call__(self, a: SampleView, b: SampleView, na: float, nb: float) -> float:
        return self.kernel(a, b, na, nb)

    @staticmethod
    def linear_kernel(a: SampleView, b: SampleView, na: float = 0.0, nb: float = 0.0) -> float:
        return sparse_dot(a, b)

    def rbf_kernel(self, a: SampleView, b: SampleView, na: float, nb: float) -> float:
        dist = na + nb - 2.0 * sparse_dot(a, b)
        # Cancellation can leave a tiny negative distance for near-identical samples.
        return float(np.exp(-self.gamma * max(dist, 0.0)))

    def row(self, sample: SampleView, norm: float, cols: "Dataset") -> np.ndarray:
        """Kernel values between one sample and every sample of ``cols``."""
        norms = cols.squared_norms
        return np.array([self.kernel(sample, other, norm, norms[j]) for j, other in enumerate(cols)])

    def matrix(self, rows: "Dataset", cols: "Dataset", threads: int = 1) -> np.ndarray:
        """Gram block ``K[i, j] = K(rows[i], cols[j])``.

        Both datasets are read-only once built, so rows are evaluated on a
        pool of ``threads`` workers without locking.
        """
        norms = rows.squared_norms
        if threads <= 1 or len(rows) < 2:
            result = [self.row(sample, norms[i], cols) for i, sample in enumerate(rows)]
        else:
            with ThreadPoolExecutor(max_workers=threads) as pool:
                result = list(pool.map(lambda i: self.row(rows[i], norms[i], cols), range(len(rows))))
        if not result:
            return np.zeros((len(rows), len(cols)))
        return np.vstack(result).reshape(len(rows), len(cols))

    def __repr__(self) -> str:
        if self.kernel_type == KernelType.RBF:
            return f"Kernel(rbf, gamma={self.gamma!r})"
        return "Kernel(linear)"
