import io

import numpy as np
import pytest

from sparse_svm.codec import read_model, store_model
from sparse_svm.config import KernelType, PredictProperties, TrainingProperties
from sparse_svm.dataset import Dataset
from sparse_svm.model import Model
from sparse_svm.predict import accuracy, decision_function, predict, run_prediction
from sparse_svm.training import DualTrainer, train_model


@pytest.fixture
def separable() -> Dataset:
    X = np.array(
        [
            [0.0, 2.0, 2.0],
            [0.0, 3.0, 2.5],
            [0.0, 2.5, 3.0],
            [0.0, -2.0, -2.0],
            [0.0, -3.0, -2.5],
            [0.0, -2.5, -3.0],
        ]
    )
    return Dataset.from_dense(X, y=[1, 1, 1, -1, -1, -1])


@pytest.mark.parametrize("kernel_type", [KernelType.LINEAR, KernelType.RBF])
def test_trained_model_separates_training_data(separable, kernel_type) -> None:
    props = TrainingProperties(kernel_hyper_param=(0.5,), kernel_type=kernel_type, noise_param=(0.1,))
    model = train_model(separable, props)
    assert model.kernel_type == kernel_type
    assert 0 < model.n_support <= len(separable)
    assert model.maxdim == separable.maxdim
    assert not model.support_vectors.labeled
    np.testing.assert_array_equal(predict(model, separable), separable.targets)


def test_support_vectors_have_non_zero_weights(separable) -> None:
    trainer = DualTrainer(TrainingProperties(kernel_type=KernelType.LINEAR), max_iterations=50)
    model = trainer.fit(separable)
    assert trainer.n_iter_ <= 50
    assert np.all(model.weights != 0)
    support = np.flatnonzero(trainer.alphas > 0)
    np.testing.assert_array_equal(model.weights, trainer.alphas[support] * separable.targets[support])


def test_training_needs_labels(separable) -> None:
    unlabeled = separable.subset(range(len(separable)), keep_targets=False)
    with pytest.raises(ValueError):
        train_model(unlabeled, TrainingProperties())


def test_stored_model_scores_identically(separable) -> None:
    model = train_model(separable, TrainingProperties(kernel_hyper_param=(0.5,)))
    buffer = io.BytesIO()
    store_model(model, buffer)
    buffer.seek(0)
    loaded = read_model(buffer)
    assert loaded == model
    np.testing.assert_array_equal(decision_function(loaded, separable), decision_function(model, separable))


def test_model_without_support_vectors_scores_the_bias(separable) -> None:
    empty = Dataset.from_dense(np.zeros((0, 3)))
    model = Model(KernelType.RBF, [1.0], empty, weights=[], bias=-0.75)
    np.testing.assert_array_equal(decision_function(model, separable), np.full(len(separable), -0.75))


def test_decision_function_is_weighted_kernel_sum() -> None:
    support_vectors = Dataset.from_dense(np.array([[0.0, 1.0, 0.0], [0.0, 0.0, 2.0]]))
    model = Model(KernelType.LINEAR, [], support_vectors, weights=[2.0, -1.0], bias=0.5)
    data = Dataset.from_dense(np.array([[0.0, 3.0, 1.0], [0.0, 0.0, 0.0]]), sparse=False)
    np.testing.assert_allclose(decision_function(model, data, threads=2), [2.0 * 3.0 - 2.0 + 0.5, 0.5])


def test_run_prediction_checks_labels(separable, caplog) -> None:
    model = train_model(separable, TrainingProperties(kernel_type=KernelType.LINEAR))
    with caplog.at_level("INFO", logger="sparse_svm.predict"):
        scores = run_prediction(model, separable, PredictProperties(labels=True, threads=2))
    assert accuracy(scores, separable.targets) == 1.0
    assert "Accuracy on 6 samples" in caplog.text
    unlabeled = separable.subset(range(len(separable)), keep_targets=False)
    with pytest.raises(ValueError):
        run_prediction(model, unlabeled, PredictProperties(labels=True))
