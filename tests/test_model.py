import numpy as np
import pytest

from sparse_svm.config import KernelType
from sparse_svm.dataset import Dataset
from sparse_svm.kernels import Kernel
from sparse_svm.model import Model


def _support_vectors() -> Dataset:
    return Dataset.from_dense(np.array([[0.0, 1.0, 2.0], [3.0, 0.0, 0.0]]))


def test_parallel_sequences_are_enforced() -> None:
    with pytest.raises(ValueError):
        Model(KernelType.LINEAR, [], _support_vectors(), weights=[1.0], bias=0.0)


def test_support_vectors_must_be_unlabeled_and_sparse() -> None:
    X = np.array([[0.0, 1.0]])
    with pytest.raises(ValueError):
        Model(KernelType.LINEAR, [], Dataset.from_dense(X, y=[1.0]), weights=[1.0], bias=0.0)
    with pytest.raises(ValueError):
        Model(KernelType.LINEAR, [], Dataset.from_dense(X, sparse=False), weights=[1.0], bias=0.0)


def test_rbf_needs_gamma() -> None:
    with pytest.raises(ValueError):
        Model(KernelType.RBF, [], _support_vectors(), weights=[1.0, 2.0], bias=0.0)


def test_fields_are_normalised() -> None:
    model = Model(1, (0.5,), _support_vectors(), weights=[1, 2], bias=np.float32(0.25))
    assert model.kernel_type is KernelType.RBF
    assert model.weights.dtype == np.float64
    assert isinstance(model.bias, float)
    assert model.maxdim == 3
    assert model.n_support == 2
    kernel = model.kernel()
    assert isinstance(kernel, Kernel)
    assert kernel.gamma == 0.5


def test_close_releases_support_vectors() -> None:
    with Model(KernelType.LINEAR, [], _support_vectors(), weights=[1.0, 2.0], bias=0.0) as model:
        view = model.support_vectors[0]
    with pytest.raises(ReferenceError):
        view.indices
