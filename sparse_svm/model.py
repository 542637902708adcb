"""A trained kernel classifier."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .config import KernelType
from .dataset import Dataset
from .kernels import Kernel

__all__ = ["KernelType", "Model"]


@dataclass(eq=False)
class Model:
    """Kernel configuration, retained support vectors, their weights and the bias.

    The decision value of a sample ``x`` is
    ``sum_i weights[i] * K(support_vectors[i], x) + bias``. A model without
    support vectors is legal and scores every input as ``bias``.

    Parameters
    ----------
    kernel_type : KernelType
        Kernel used at training time.
    kernel_hyper_params : ndarray
        Kernel hyperparameters, ``[gamma]`` for RBF.
    support_vectors : Dataset
        Unlabeled sparse dataset owned by the model. Its ``maxdim`` is the
        training dimensionality and its squared norms are the cached norms
        of the support vectors.
    weights : ndarray
        One coefficient per support vector.
    bias : float
        Intercept of the decision function.
    """

    kernel_type: KernelType
    kernel_hyper_params: np.ndarray
    support_vectors: Dataset
    weights: np.ndarray
    bias: float

    def __post_init__(self) -> None:
        self.kernel_type = KernelType(self.kernel_type)
        self.kernel_hyper_params = np.array(self.kernel_hyper_params, dtype=np.float64).reshape(-1)
        self.weights = np.array(self.weights, dtype=np.float64).reshape(-1)
        self.bias = float(self.bias)
        if self.kernel_type == KernelType.RBF and len(self.kernel_hyper_params) < 1:
            raise ValueError("An RBF model needs a gamma hyperparameter.")
        if self.support_vectors.labeled or not self.support_vectors.sparse:
            raise ValueError("support vectors must be an unlabeled sparse dataset.")
        if len(self.weights) != len(self.support_vectors):
            raise ValueError(
                f"got {len(self.weights)} weights for {len(self.support_vectors)} support vectors."
            )

    @property
    def maxdim(self) -> int:
        return self.support_vectors.maxdim

    @property
    def n_support(self) -> int:
        return len(self.support_vectors)

    def kernel(self) -> Kernel:
        return Kernel.from_model(self)

    def close(self) -> None:
        """Release the support-vector store."""
        self.support_vectors.close()

    def __enter__(self) -> "Model":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Model):
            return NotImplemented
        return (
            self.kernel_type == other.kernel_type
            and self.kernel_hyper_params.tobytes() == other.kernel_hyper_params.tobytes()
            and np.float64(self.bias).tobytes() == np.float64(other.bias).tobytes()
            and self.weights.tobytes() == other.weights.tobytes()
            and self.support_vectors == other.support_vectors
        )

    __hash__ = None
