"""Command line driver: ``python -m sparse_svm {train,predict,info,demo}``."""

from __future__ import annotations

import argparse
import logging
import tempfile
from pathlib import Path
from typing import List, Optional

import numpy as np

from .codec import load_model, save_model
from .config import (
    DEFAULT_ETA,
    DEFAULT_GAMMA,
    DEFAULT_LEARNING_RATE,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_NOISE,
    DEFAULT_THREADS,
    KernelType,
    PredictProperties,
    TrainingProperties,
)
from .output import write_output
from .parser import read_dataset, read_train_file
from .predict import accuracy, run_prediction
from .training import train_model

LOGGER = logging.getLogger("sparse_svm")


def _train(args: argparse.Namespace) -> int:
    props = TrainingProperties(
        kernel_hyper_param=(args.gamma,),
        kernel_type=KernelType.parse(args.kernel),
        noise_param=(args.noise,),
        threads=args.threads,
        eta=args.eta,
    )
    with read_train_file(args.data, sparse=not args.dense) as dataset:
        model = train_model(dataset, props, learning_rate=args.learning_rate, max_iterations=args.iterations)
    with model:
        save_model(model, args.model)
    return 0


def _predict(args: argparse.Namespace) -> int:
    props = PredictProperties(labels=args.labels, threads=args.threads)
    with load_model(args.model) as model:
        with read_dataset(args.data, labeled=props.labels, sparse=not args.dense) as dataset:
            scores = run_prediction(model, dataset, props)
    write_output(args.output, scores)
    return 0


def _info(args: argparse.Namespace) -> int:
    with load_model(args.model) as model:
        print(f"kernel:          {model.kernel_type.name.lower()}")
        print(f"hyperparameters: {model.kernel_hyper_params.tolist()}")
        print(f"maxdim:          {model.maxdim}")
        print(f"support vectors: {model.n_support}")
        print(f"bias:            {model.bias!r}")
    return 0


def _demo(args: argparse.Namespace) -> int:
    """Train and score a synthetic problem end to end.

    Generates a toy binary classification dataset, writes it in the sparse
    text format, trains an RBF model, stores and reloads it, and prints the
    training accuracy.
    """
    from sklearn.datasets import dump_svmlight_file, make_classification

    X, y = make_classification(
        n_samples=60, n_features=4, n_informative=2, n_redundant=0, random_state=42
    )
    # Convert labels from {0, 1} to {-1, +1}
    y = np.where(y == 0, -1, 1)

    workdir = Path(args.workdir) if args.workdir else Path(tempfile.mkdtemp(prefix="sparse_svm_"))
    workdir.mkdir(parents=True, exist_ok=True)
    data_path = workdir / "train.svm"
    model_path = workdir / "model.bin"
    output_path = workdir / "predictions.txt"
    dump_svmlight_file(X, y, str(data_path), zero_based=False)

    props = TrainingProperties(kernel_hyper_param=(0.5,), kernel_type=KernelType.RBF, noise_param=(0.1,))
    with read_train_file(data_path) as dataset:
        with train_model(dataset, props) as model:
            save_model(model, model_path)
        with load_model(model_path) as reloaded:
            scores = run_prediction(reloaded, dataset, PredictProperties(labels=True))
        print(f"Dual SVM (RBF kernel) accuracy: {accuracy(scores, dataset.targets):.3f}")
    write_output(output_path, scores)
    print(f"Artifacts written to {workdir}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sparse_svm", description="Sparse kernel SVM data tools")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug details")
    sub = parser.add_subparsers(dest="command", required=True)

    train = sub.add_parser("train", help="Train a model on a labeled sparse dataset")
    train.add_argument("data", type=Path, help="Labeled dataset in sparse format")
    train.add_argument("model", type=Path, help="Where to store the model")
    train.add_argument("--kernel", choices=["linear", "rbf"], default="rbf")
    train.add_argument("--gamma", type=float, default=DEFAULT_GAMMA, help="RBF kernel width")
    train.add_argument("--noise", type=float, default=DEFAULT_NOISE, help="Noise power, C = 1 / noise")
    train.add_argument("--eta", type=float, default=DEFAULT_ETA, help="Convergence tolerance")
    train.add_argument("--threads", type=int, default=DEFAULT_THREADS)
    train.add_argument("--learning-rate", type=float, default=DEFAULT_LEARNING_RATE)
    train.add_argument("--iterations", type=int, default=DEFAULT_MAX_ITERATIONS)
    train.add_argument("--dense", action="store_true", help="Store samples densely")
    train.set_defaults(func=_train)

    pred = sub.add_parser("predict", help="Score a dataset with a stored model")
    pred.add_argument("data", type=Path, help="Dataset in sparse format")
    pred.add_argument("model", type=Path, help="Stored model")
    pred.add_argument("output", type=Path, help="Where to write one score per line")
    pred.add_argument("--labels", action="store_true", help="The dataset carries labels")
    pred.add_argument("--threads", type=int, default=DEFAULT_THREADS)
    pred.add_argument("--dense", action="store_true", help="Store samples densely")
    pred.set_defaults(func=_predict)

    info = sub.add_parser("info", help="Describe a stored model")
    info.add_argument("model", type=Path)
    info.set_defaults(func=_info)

    demo = sub.add_parser("demo", help="Run a demo on synthetic data")
    demo.add_argument("--workdir", type=str, default=None, help="Directory for generated files")
    demo.set_defaults(func=_demo)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
