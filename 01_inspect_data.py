"""Data inspection entry point: missingness, diagnostic plots, optional corruption proposal."""

import argparse
import os

from demandgrid.cleaning import detect_corrupted, filter_and_renumber
from demandgrid.config import (
    CORRUPTED_TIMESTAMPS,
    DETECTOR_CONFIG,
    HEADER_LINES,
    N_TIMESTAMPS,
    PLOTS_DIR,
    RAW_DATA_PATH,
)
from demandgrid.grid_io import missing_summary, read_grid_file
from demandgrid.plots import plot_hourly_heatmap, plot_timestamp_means
from demandgrid.reshaping import grids_to_wide, wide_to_long


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect the raw demand grids before imputation.")
    parser.add_argument(
        "--input",
        type=str,
        default=RAW_DATA_PATH,
        help="Path to the raw grid file.",
    )
    parser.add_argument(
        "--plots-dir",
        type=str,
        default=PLOTS_DIR,
        help="Directory for the diagnostic figures.",
    )
    parser.add_argument(
        "--corrupted",
        nargs="*",
        type=int,
        default=CORRUPTED_TIMESTAMPS,
        help="Raw 1-based timestamps already known to be corrupted (highlighted in plots).",
    )
    parser.add_argument(
        "--detect",
        action="store_true",
        help="Propose corrupted timestamps with the robust hour-of-day outlier score.",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=DETECTOR_CONFIG["threshold"],
        help="Robust z-score above which an hour is proposed as corrupted.",
    )
    parser.add_argument(
        "--no-length-check",
        action="store_true",
        help=f"Accept files that do not hold exactly {N_TIMESTAMPS} grids.",
    )
    return parser.parse_args()


def main():
    args = parse_args()

    print("\n--- Step 1: Loading raw grids ---")
    raw = read_grid_file(
        args.input,
        header_lines=HEADER_LINES,
        expected_timestamps=None if args.no_length_check else N_TIMESTAMPS,
    )
    summary = missing_summary(raw)
    print(f"Grids: {raw.n_timestamps}, shape {raw.shape}, missing cells: {raw.missing_count():,}")
    print(summary["missing"].describe().to_string())

    corrupted = list(args.corrupted)
    if args.detect:
        print("\n--- Step 2: Proposing corrupted timestamps ---")
        proposed = detect_corrupted(raw, threshold=args.threshold)
        print(f"Proposed: {proposed}")
        corrupted = sorted(set(corrupted) | set(proposed))

    print("\n--- Step 3: Writing diagnostic plots ---")
    plot_timestamp_means(raw, corrupted, path=os.path.join(args.plots_dir, "timestamp_means.png"))
    clean = filter_and_renumber(raw, corrupted)
    long = wide_to_long(grids_to_wide(clean, with_calendar=True))
    plot_hourly_heatmap(long, path=os.path.join(args.plots_dir, "day_hour_heatmap.png"))

    print(f"\nCorrupted timestamps: {corrupted}")
    print("Inspection complete.")


if __name__ == "__main__":
    main()
