"""Kernel tags and the parameter sets handed to the trainer and predictor."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple

DEFAULT_GAMMA = 1.0
DEFAULT_NOISE = 0.1
DEFAULT_ETA = 1e-3
DEFAULT_THREADS = 1
DEFAULT_MAX_ITERATIONS = 100
DEFAULT_LEARNING_RATE = 0.1


class KernelType(IntEnum):
    """Kernel tags as stored in model files."""

    LINEAR = 0
    RBF = 1

    @classmethod
    def parse(cls, name: str) -> "KernelType":
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown kernel_type: {name}") from None


@dataclass(frozen=True)
class TrainingProperties:
    """Parameters handed to the trainer.

    ``kernel_hyper_param`` holds the kernel hyperparameters (``(gamma,)`` for
    RBF), ``noise_param`` the noise power (its first entry sets the soft
    margin ``C = 1 / noise``), ``eta`` the convergence tolerance on the dual
    variables and ``threads`` the number of kernel workers.
    """

    kernel_hyper_param: Tuple[float, ...] = (DEFAULT_GAMMA,)
    kernel_type: KernelType = KernelType.RBF
    noise_param: Tuple[float, ...] = (DEFAULT_NOISE,)
    threads: int = DEFAULT_THREADS
    eta: float = DEFAULT_ETA

    def __post_init__(self) -> None:
        object.__setattr__(self, "kernel_type", KernelType(self.kernel_type))
        object.__setattr__(self, "kernel_hyper_param", tuple(float(v) for v in self.kernel_hyper_param))
        object.__setattr__(self, "noise_param", tuple(float(v) for v in self.noise_param))
        if self.kernel_type == KernelType.RBF and not self.kernel_hyper_param:
            raise ValueError("The RBF kernel needs a gamma hyperparameter.")
        if not self.noise_param or self.noise_param[0] <= 0:
            raise ValueError("noise_param must start with a positive noise power.")
        if self.threads < 1:
            raise ValueError("threads must be at least 1.")
        if self.eta <= 0:
            raise ValueError("eta must be positive.")

    @property
    def C(self) -> float:
        return 1.0 / self.noise_param[0]


@dataclass(frozen=True)
class PredictProperties:
    """Parameters handed to the predictor."""

    labels: bool = False
    threads: int = DEFAULT_THREADS

    def __post_init__(self) -> None:
        if self.threads < 1:
            raise ValueError("threads must be at least 1.")
