"""
Command line interface for pypca-anomaly.

Trains a randomized PCA anomaly model from a data file, scores data files
against a saved model and prints model summaries.
"""

import argparse
import sys
import warnings
from pathlib import Path

import numpy as np

from . import (
    PcaModel,
    TrainerFactory,
    __version__,
    create_training_config,
    get_package_info,
    list_available_eigen_solvers,
    list_available_trainers,
)
from .data import ArrayDataSource
from .errors import PcaError, SkippedRowWarning
from .io_utils import open_data_file, write_scores
from .logging_utils import setup_logging


def _score_source(model: PcaModel, source) -> np.ndarray:
    """Score every row of a source; bad rows get NaN so line numbers stay aligned."""
    if isinstance(source, ArrayDataSource):
        features = np.asarray(source.features, dtype=np.float64)
        scores = np.full(features.shape[0], np.nan)
        good = np.all(np.isfinite(features), axis=1)
        if np.any(good):
            scores[good] = model.score_batch(features[good])
        return scores

    scores = []
    for sample in source:
        if sample.features is not None and sample.is_valid(model.dimension):
            scores.append(model.score(sample.features))
        else:
            scores.append(float("nan"))
    return np.array(scores, dtype=np.float64)


def _default_output_path(input_path: Path, suffix: str) -> Path:
    return input_path.with_name(f"{input_path.stem}{suffix}")


def _add_data_arguments(parser: argparse.ArgumentParser):
    parser.add_argument(
        "-d", "--delimiter", default=",", help="Column delimiter for text files (default: ',')"
    )
    parser.add_argument(
        "--skip-header", action="store_true", help="Ignore the first line of text files"
    )
    parser.add_argument(
        "--weight-column",
        type=int,
        default=None,
        help="Column holding the row weight (negative counts from the end)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pca-anomaly",
        description=f"pypca-anomaly v{__version__} - PCA anomaly detection with randomized SVD",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Train a rank-10 model on a CSV file
  pca-anomaly train data.csv --rank 10 -o model.pca

  # Reproducible training with a weight column and a text summary
  pca-anomaly train data.csv --seed 42 --weight-column -1 --summary model.txt

  # Score new rows (one score per line)
  pca-anomaly score model.pca new_data.csv -o scores.txt

  # Show the model content
  pca-anomaly summary model.pca
        """,
    )
    parser.add_argument(
        "--version", action="version", version=f"pypca-anomaly {__version__}"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--log-file", help="Also write log records to this file")
    parser.add_argument(
        "--list-solvers", action="store_true", help="List available eigensolvers and exit"
    )
    parser.add_argument(
        "--list-trainers", action="store_true", help="List registered trainer names and exit"
    )
    parser.add_argument(
        "--info", action="store_true", help="Show package information and exit"
    )

    subparsers = parser.add_subparsers(dest="command")

    # train
    train_parser = subparsers.add_parser("train", help="Train a model from a data file")
    train_parser.add_argument("input", help="Training data (.npy or delimited text)")
    train_parser.add_argument("-o", "--output", help="Model file (default: <input>.pca)")
    train_parser.add_argument(
        "--trainer", default="pcaAnomaly", help="Trainer name (default: pcaAnomaly)"
    )
    train_parser.add_argument(
        "-k", "--rank", type=int, default=20, help="Number of components (default: 20)"
    )
    train_parser.add_argument(
        "--oversampling", type=int, default=20, help="Oversampling parameter (default: 20)"
    )
    train_parser.add_argument(
        "--no-center", action="store_true", help="Do not center the data to zero mean"
    )
    train_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    train_parser.add_argument(
        "--solver",
        default="numpy",
        help="Eigensolver for the small matrix (default: numpy)",
    )
    train_parser.add_argument(
        "--chunk-size", type=int, default=4096, help="Rows per processing block (default: 4096)"
    )
    train_parser.add_argument("--summary", help="Also write a text summary to this file")
    _add_data_arguments(train_parser)

    # score
    score_parser = subparsers.add_parser("score", help="Score a data file against a model")
    score_parser.add_argument("model", help="Model file written by 'train'")
    score_parser.add_argument("input", help="Data to score (.npy or delimited text)")
    score_parser.add_argument(
        "-o", "--output", help="Score file (default: <input>_scores.txt)"
    )
    _add_data_arguments(score_parser)

    # summary
    summary_parser = subparsers.add_parser("summary", help="Print a model summary")
    summary_parser.add_argument("model", help="Model file written by 'train'")

    return parser


def _run_train(args) -> int:
    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file '{input_path}' not found", file=sys.stderr)
        return 1
    output_path = Path(args.output) if args.output else input_path.with_suffix(".pca")

    config = create_training_config(
        rank=args.rank,
        oversampling=args.oversampling,
        center=not args.no_center,
        seed=args.seed,
        eigen_solver=args.solver,
        chunk_size=args.chunk_size,
    )
    trainer = TrainerFactory.create_trainer(args.trainer, config=config)
    source = open_data_file(
        input_path,
        delimiter=args.delimiter,
        weight_column=args.weight_column,
        skip_header=args.skip_header,
    )

    if args.verbose:
        print(f"Input: {input_path}")
        print(f"Output: {output_path}")
        print(f"Rank: {config.rank}, oversampling: {config.oversampling}, center: {config.center}")

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", SkippedRowWarning)
        model = trainer.train(source)
    for warning in caught:
        print(f"Warning: {warning.message}", file=sys.stderr)

    model.save(output_path)
    if args.summary:
        with open(args.summary, "w", encoding="utf-8") as handle:
            model.save_text(handle)

    statistics = trainer.get_last_result().statistics
    print(f"Successfully trained '{input_path}' -> '{output_path}'")
    if args.verbose:
        for key in ("rows", "skipped_rows", "total_weight", "seed", "oversampled_rank", "elapsed_seconds"):
            print(f"  {key}: {statistics[key]}")
    return 0


def _run_score(args) -> int:
    model = PcaModel.load(args.model)
    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file '{input_path}' not found", file=sys.stderr)
        return 1
    output_path = (
        Path(args.output) if args.output else _default_output_path(input_path, "_scores.txt")
    )

    source = open_data_file(
        input_path,
        delimiter=args.delimiter,
        weight_column=args.weight_column,
        skip_header=args.skip_header,
    )
    scores = _score_source(model, source)
    write_scores(scores, output_path)

    num_bad = int(np.count_nonzero(np.isnan(scores)))
    if num_bad:
        print(f"Warning: {num_bad} rows could not be scored (written as nan)", file=sys.stderr)
    print(f"Successfully scored {len(scores)} rows '{input_path}' -> '{output_path}'")
    return 0


def _run_summary(args) -> int:
    model = PcaModel.load(args.model)
    model.save_text(sys.stdout)
    return 0


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # Handle information commands
    if args.list_solvers:
        print("Available eigensolvers:")
        for name in list_available_eigen_solvers():
            print(f"  {name}")
        return 0

    if args.list_trainers:
        print("Registered trainers:")
        for name in list_available_trainers():
            print(f"  {name}")
        return 0

    if args.info:
        print("pypca-anomaly information:")
        for key, value in get_package_info().items():
            print(f"  {key}: {value}")
        return 0

    if args.command is None:
        parser.error("A command is required (train, score or summary)")

    setup_logging(args.verbose, args.log_file)

    try:
        if args.command == "train":
            return _run_train(args)
        if args.command == "score":
            return _run_score(args)
        return _run_summary(args)
    except (PcaError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
