"""Imputation entry point: data.txt -> tap30.txt."""

import argparse
import os
from typing import Optional

from demandgrid.config import (
    CLUSTER_SETS,
    CORRUPTED_TIMESTAMPS,
    DEFAULT_CLUSTER_SET,
    EVALUATION_CONFIG,
    IMPUTER_CONFIG,
    N_TIMESTAMPS,
    PLOTS_DIR,
    RAW_DATA_PATH,
    SMOOTHER,
    SUBMISSION_PATH,
)
from demandgrid.features import SMOOTHERS
from demandgrid.pipeline import DemandImputationPipeline
from demandgrid.plots import plot_cluster_features, plot_holdout
from demandgrid.submission import write_submission


def parse_max_features(value: str):
    """mtry as an int count, a float share, or a named rule ("sqrt", "log2")."""
    if value in ("sqrt", "log2"):
        return value
    return float(value) if "." in value else int(value)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Impute missing demand cells and write the submission file.")
    parser.add_argument("--input", type=str, default=RAW_DATA_PATH, help="Path to the raw grid file.")
    parser.add_argument("--output", type=str, default=SUBMISSION_PATH, help="Submission file to write.")
    parser.add_argument(
        "--corrupted",
        nargs="*",
        type=int,
        default=CORRUPTED_TIMESTAMPS,
        help="Raw 1-based timestamps to exclude and fill with the sentinel.",
    )
    parser.add_argument(
        "--cluster-set",
        type=str,
        default=DEFAULT_CLUSTER_SET,
        choices=sorted(CLUSTER_SETS.keys()),
        help="Predefined cluster group used for the averaged feature columns.",
    )
    parser.add_argument("--smoother", type=str, default=SMOOTHER, choices=SMOOTHERS,
                        help="Gap filler for the cluster columns.")
    parser.add_argument("--n-estimators", type=int, default=IMPUTER_CONFIG["n_estimators"],
                        help="Trees per random forest.")
    parser.add_argument("--max-features", type=parse_max_features, default=IMPUTER_CONFIG["max_features"],
                        help="Candidate features per split (mtry).")
    parser.add_argument("--max-iter", type=int, default=IMPUTER_CONFIG["max_iter"],
                        help="Imputation rounds.")
    parser.add_argument("--parallelize", action="store_true", help="Grow each forest on all cores.")
    parser.add_argument("--evaluate", action="store_true",
                        help="Also score the imputer on a masked hold-out of observed cells.")
    parser.add_argument("--plots-dir", type=str, default=PLOTS_DIR, help="Directory for evaluation figures.")
    parser.add_argument("--no-length-check", action="store_true",
                        help=f"Accept files that do not hold exactly {N_TIMESTAMPS} grids.")
    return parser.parse_args()


def build_config(args: argparse.Namespace) -> dict:
    expected: Optional[int] = None if args.no_length_check else N_TIMESTAMPS
    return {
        "corrupted": args.corrupted,
        "cluster_set": args.cluster_set,
        "smoother": args.smoother,
        "expected_timestamps": expected,
        "imputer_config": {
            "n_estimators": args.n_estimators,
            "max_features": args.max_features,
            "max_iter": args.max_iter,
            "parallelize": args.parallelize,
            "random_state": IMPUTER_CONFIG["random_state"],
        },
    }


def main():
    args = parse_args()
    pipeline = DemandImputationPipeline(build_config(args))

    print("\n--- Step 1: Loading raw grids ---")
    raw = pipeline.load(args.input)

    print("\n--- Step 2: Filtering, reshaping and building cluster features ---")
    features = pipeline.prepare(raw)
    plot_cluster_features(features, pipeline.clusters,
                          path=os.path.join(args.plots_dir, "cluster_features.png"))

    if args.evaluate:
        print("\n--- Step 3: Masked hold-out evaluation ---")
        metrics, detail = pipeline.evaluate(fraction=EVALUATION_CONFIG["holdout_fraction"])
        for name, value in metrics.items():
            print(f"  {name}: {value}")
        plot_holdout(detail, metrics, path=os.path.join(args.plots_dir, "holdout_scatter.png"))

    print("\n--- Step 4: Imputing and writing the submission ---")
    records = pipeline.finish()
    write_submission(records, args.output)

    print(f"\nWrote {len(records):,} records to {args.output}.")


if __name__ == "__main__":
    main()
