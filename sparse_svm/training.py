"""Reference trainer producing a :class:`~sparse_svm.model.Model` from a Dataset.

The soft-margin dual

.. math::

    \\max_\\alpha \\sum_i \\alpha_i - \\tfrac12 \\sum_{i,j} \\alpha_i \\alpha_j y_i y_j K(x_i, x_j),
    \\qquad 0 \\le \\alpha_i \\le C

is solved with projected gradient ascent on the Lagrange multipliers. The
Gram matrix is evaluated once through :class:`~sparse_svm.kernels.Kernel`,
which reuses the squared norms cached on the dataset.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from .config import DEFAULT_LEARNING_RATE, DEFAULT_MAX_ITERATIONS, TrainingProperties
from .dataset import Dataset
from .kernels import Kernel
from .model import Model

LOGGER = logging.getLogger(__name__)


class DualTrainer:
    """Soft-margin SVM trained on the dual objective.

    Parameters
    ----------
    props : TrainingProperties
        Kernel, noise power (``C = 1 / noise``), convergence tolerance
        ``eta`` and number of kernel workers.
    learning_rate : float, default=0.1
        Step size of the ascent on each ``alpha_i``.
    max_iterations : int, default=100
        Upper bound on passes over the training set.
    """

    def __init__(
        self,
        props: TrainingProperties,
        learning_rate: float = DEFAULT_LEARNING_RATE,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        if learning_rate <= 0:
            raise ValueError("learning_rate must be positive.")
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1.")
        self.props = props
        self.learning_rate = learning_rate
        self.max_iterations = max_iterations
        self.kernel = Kernel.from_properties(props)
        self.alphas: Optional[np.ndarray] = None
        self.b: float = 0.0
        self.n_iter_: int = 0

    @property
    def C(self) -> float:
        return self.props.C

    def fit(self, dataset: Dataset) -> Model:
        """Train on a labeled dataset (targets in ``{-1, +1}``) and return the model."""
        if not dataset.labeled:
            raise ValueError("training needs a labeled dataset.")
        y = dataset.targets
        n_samples = len(dataset)
        gram = self.kernel.matrix(dataset, dataset, threads=self.props.threads)

        self.alphas = np.zeros(n_samples)
        for iteration in range(self.max_iterations):
            largest_step = 0.0
            for i in range(n_samples):
                # Gradient of the dual objective with respect to alpha_i
                dL_dalpha = 1 - y[i] * np.dot(y * self.alphas, gram[:, i])
                updated = np.clip(self.alphas[i] + self.learning_rate * dL_dalpha, 0, self.C)
                largest_step = max(largest_step, abs(updated - self.alphas[i]))
                self.alphas[i] = updated
            self.n_iter_ = iteration + 1
            if largest_step < self.props.eta:
                break
        else:
            LOGGER.warning("Dual ascent stopped after %d iterations without reaching eta=%g", self.max_iterations, self.props.eta)

        self.b = self._compute_bias(gram, y)
        support = np.flatnonzero(self.alphas > 0)
        LOGGER.info(
            "Trained %s model: %d/%d support vectors after %d iterations, bias=%.6g",
            self.kernel.kernel_type.name.lower(),
            len(support),
            n_samples,
            self.n_iter_,
            self.b,
        )
        return Model(
            kernel_type=self.kernel.kernel_type,
            kernel_hyper_params=self.kernel.hyper_params(),
            support_vectors=dataset.subset(support, keep_targets=False),
            weights=self.alphas[support] * y[support],
            bias=self.b,
        )

    def _compute_bias(self, gram: np.ndarray, y: np.ndarray) -> float:
        """Average ``y_i - f(x_i)`` over margin vectors ``0 < alpha_i < C``.

        Falls back to zero when no multiplier lies strictly inside the box.
        """
        assert self.alphas is not None
        margin = np.flatnonzero((self.alphas > 0) & (self.alphas < self.C))
        if len(margin) == 0:
            return 0.0
        scores = gram[margin] @ (self.alphas * y)
        return float(np.mean(y[margin] - scores))


def train_model(
    dataset: Dataset,
    props: TrainingProperties,
    learning_rate: float = DEFAULT_LEARNING_RATE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> Model:
    return DualTrainer(props, learning_rate=learning_rate, max_iterations=max_iterations).fit(dataset)
