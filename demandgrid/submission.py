"""
Purpose: Turning imputed wide rows back into grids and writing the submission.

Output format (tap30.txt):

    id,demand
    <timestamp0>:<row0>:<col0>,<value>

one line per cell that was missing in the raw input, ordered by raw timestamp
then row-major cell order, all indices 0-based. Retained hours take the rounded
imputed value; hours in the corrupted set are never estimated and emit the
sentinel instead.

Content
- round_half_up()
- rebuild()
- format_submission() / write_submission()
"""

import logging
import os
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from .cleaning import validate_corrupted
from .config import SENTINEL_VALUE, SUBMISSION_HEADER
from .errors import InvalidInput, ShapeMismatch
from .grid_io import GridSet
from .reshaping import wide_to_grids

logger = logging.getLogger(__name__)

SUBMISSION_COLUMNS = SUBMISSION_HEADER.split(",")


def round_half_up(values) -> np.ndarray:
    """Round to the nearest integer, .5 always going up (2.5 -> 3, -0.5 -> 0)."""
    x = np.asarray(values, dtype=float)
    # compare the fractional part; adding 0.5 first can itself round up
    return np.where(x - np.floor(x) >= 0.5, np.ceil(x), np.floor(x))


def rebuild(
    imputed_wide: pd.DataFrame,
    raw_grids: GridSet,
    corrupted: Iterable[int],
    sentinel: int = SENTINEL_VALUE,
) -> pd.DataFrame:
    """
    Map imputed rows back onto the raw timeline and list every originally missing cell.

    Parameters:
    -----------
    imputed_wide : clean wide table without gaps, timestamps 1..N
    raw_grids : raw GridSet as read from the file
    corrupted : raw 1-based timestamps that were removed before imputation
    sentinel : value written for missing cells of corrupted timestamps

    Returns:
    --------
    DataFrame with columns ["id", "demand"]
    """
    if raw_grids.is_clean:
        raise InvalidInput("rebuild() needs the raw grid set, not the filtered one.")
    corrupted = validate_corrupted(raw_grids, corrupted)
    dropped = set(corrupted)
    retained = np.array([i for i in raw_grids.timestamps if i not in dropped], dtype=int)

    imputed_wide = imputed_wide.sort_values("timestamp").reset_index(drop=True)
    expected_ts = np.arange(1, len(retained) + 1)
    if len(imputed_wide) != len(retained) or not np.array_equal(imputed_wide["timestamp"].to_numpy(), expected_ts):
        raise ShapeMismatch(
            f"Imputed table has {len(imputed_wide)} rows, expected timestamps 1..{len(retained)} "
            f"({raw_grids.n_timestamps} raw minus {len(corrupted)} corrupted)."
        )

    imputed = wide_to_grids(imputed_wide, shape=raw_grids.shape, generation="clean")
    # imputation output is continuous; counts are non-negative integers
    estimated = np.clip(round_half_up(imputed.values), 0, None)

    filled = np.array(raw_grids.values, dtype=float)
    filled[retained - 1] = estimated
    if corrupted:
        rows = np.asarray(corrupted) - 1
        filled[rows] = np.where(np.isnan(filled[rows]), float(sentinel), filled[rows])

    missing = raw_grids.missing_mask()
    if np.isnan(filled[missing]).any():
        raise ShapeMismatch("Some originally missing cells are still empty after reconstruction.")

    # argwhere walks (t, r, c) lexicographically: timestamp first, then row-major
    positions = np.argwhere(missing)
    ids = [f"{t}:{r}:{c}" for t, r, c in positions]
    demand = filled[missing].astype(int)
    records = pd.DataFrame({SUBMISSION_COLUMNS[0]: ids, SUBMISSION_COLUMNS[1]: demand})

    logger.info(f"Rebuilt {len(records):,} submission records "
                f"({int(missing[retained - 1].sum()):,} imputed, "
                f"{int(missing[np.asarray(corrupted, dtype=int) - 1].sum()):,} sentinel)")
    return records


def format_submission(records: pd.DataFrame) -> str:
    """Render submission records in the tap30.txt layout."""
    if list(records.columns) != SUBMISSION_COLUMNS:
        raise ShapeMismatch(f"Submission columns must be {SUBMISSION_COLUMNS}, got {list(records.columns)}.")
    return records.to_csv(index=False, header=True, lineterminator="\n")


def write_submission(records: pd.DataFrame, path: str) -> str:
    """Write tap30.txt and return its path."""
    text = format_submission(records)
    directory: Optional[str] = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w") as f:
        f.write(text)
    logger.info(f"Wrote {len(records):,} records to {path}")
    return path
