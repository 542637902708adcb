"""Scoring datasets with a trained model."""

from __future__ import annotations

import logging

import numpy as np

from .config import PredictProperties
from .dataset import Dataset
from .model import Model

LOGGER = logging.getLogger(__name__)


def decision_function(model: Model, dataset: Dataset, threads: int = 1) -> np.ndarray:
    """Return ``sum_i w_i K(sv_i, x) + b`` for every sample ``x`` of ``dataset``."""
    if model.n_support == 0:
        return np.full(len(dataset), model.bias)
    gram = model.kernel().matrix(dataset, model.support_vectors, threads=threads)
    return gram @ model.weights + model.bias


def predict(model: Model, dataset: Dataset, threads: int = 1) -> np.ndarray:
    return np.where(decision_function(model, dataset, threads) >= 0, 1.0, -1.0)


def accuracy(scores: np.ndarray, targets: np.ndarray) -> float:
    """Fraction of samples whose score sign matches the target sign."""
    labels = np.where(scores >= 0, 1.0, -1.0)
    return float(np.mean(labels == np.sign(targets)))


def run_prediction(model: Model, dataset: Dataset, props: PredictProperties) -> np.ndarray:
    """Score ``dataset`` and, for labeled test sets, log the accuracy."""
    if dataset.maxdim > model.maxdim:
        LOGGER.debug("Test data spans %d dimensions, model %d", dataset.maxdim, model.maxdim)
    scores = decision_function(model, dataset, threads=props.threads)
    if props.labels:
        if not dataset.labeled:
            raise ValueError("labels requested but the test set is unlabeled.")
        LOGGER.info("Accuracy on %d samples: %.4f", len(dataset), accuracy(scores, dataset.targets))
    return scores
