"""Sparse datasets, trained kernel models and their file formats."""

from .codec import load_model, read_model, save_model, store_model
from .config import KernelType, PredictProperties, TrainingProperties
from .dataset import Dataset
from .errors import AllocationError, CorruptModelError, FileAccessError, ParseError, SparseSVMError
from .kernels import Kernel, sparse_dot
from .model import Model
from .output import read_output, write_output
from .parser import read_dataset, read_train_file, read_unlabeled_file
from .predict import decision_function, predict
from .store import FEATURE_DTYPE, FeatureStore, SampleView
from .training import DualTrainer, train_model

__all__ = [
    "AllocationError",
    "CorruptModelError",
    "Dataset",
    "DualTrainer",
    "FEATURE_DTYPE",
    "FeatureStore",
    "FileAccessError",
    "Kernel",
    "KernelType",
    "Model",
    "ParseError",
    "PredictProperties",
    "SampleView",
    "SparseSVMError",
    "TrainingProperties",
    "decision_function",
    "load_model",
    "predict",
    "read_dataset",
    "read_model",
    "read_output",
    "read_train_file",
    "read_unlabeled_file",
    "save_model",
    "sparse_dot",
    "store_model",
    "train_model",
    "write_output",
]
