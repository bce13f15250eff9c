"""
Purpose: Dropping hours that carry injected values and renumbering the rest.

The corrupted set is an input. filter_and_renumber() never decides on its own
which hours are bad; detect_corrupted() is a separate, optional helper that
proposes such a set from a robust per-hour-of-day outlier score, for the
caller to review.

Content
- validate_corrupted()
- filter_and_renumber()
- timestamp_means()
- detect_corrupted()
"""

import logging
from typing import Iterable, List

import numpy as np
import pandas as pd

from .config import DETECTOR_CONFIG, HOURS_PER_DAY
from .errors import InvalidInput
from .grid_io import GridSet

logger = logging.getLogger(__name__)

# scales the MAD to a standard deviation under normality
MAD_SCALE = 1.4826


def validate_corrupted(grids: GridSet, corrupted: Iterable[int]) -> List[int]:
    """Return the corrupted set as sorted unique ints; every index must exist in the raw stack."""
    indices = sorted({int(i) for i in corrupted})
    out_of_range = [i for i in indices if not 1 <= i <= grids.n_timestamps]
    if out_of_range:
        raise InvalidInput(
            f"Corrupted timestamps {out_of_range} outside the raw range 1..{grids.n_timestamps}."
        )
    return indices


def filter_and_renumber(grids: GridSet, corrupted: Iterable[int]) -> GridSet:
    """
    Remove corrupted hours and renumber the survivors 1..N in their original order.

    Parameters:
    -----------
    grids : raw GridSet
    corrupted : raw 1-based timestamps to drop

    Returns:
    --------
    clean GridSet; source_index keeps each survivor's raw timestamp
    """
    if grids.is_clean:
        raise InvalidInput("Grid set is already filtered; pass the raw generation.")
    indices = validate_corrupted(grids, corrupted)

    keep = ~np.isin(grids.timestamps, indices)
    n_kept = int(keep.sum())
    clean = GridSet(
        values=grids.values[keep],
        timestamps=np.arange(1, n_kept + 1),
        source_index=grids.source_index[keep],
        generation="clean",
    )
    logger.info(f"Removed {len(indices)} corrupted timestamps {indices}; "
                f"{clean.n_timestamps} of {grids.n_timestamps} remain")
    return clean


def timestamp_means(grids: GridSet, hours_per_day: int = HOURS_PER_DAY) -> pd.DataFrame:
    """Mean observed demand per timestamp, with its raw hour-of-day."""
    flat = grids.values.reshape(grids.n_timestamps, -1)
    observed = (~np.isnan(flat)).sum(axis=1)
    sums = np.nansum(flat, axis=1)
    means = np.divide(sums, observed, out=np.full(len(flat), np.nan), where=observed > 0)
    return pd.DataFrame(
        {
            "timestamp": grids.timestamps,
            "source_index": grids.source_index,
            "hour": (grids.source_index - 1) % hours_per_day + 1,
            "mean_demand": means,
            "observed": observed,
        }
    )


def detect_corrupted(
    grids: GridSet,
    threshold: float = DETECTOR_CONFIG["threshold"],
    hours_per_day: int = HOURS_PER_DAY,
) -> List[int]:
    """
    Propose raw timestamps whose mean demand is far from their hour-of-day norm.

    Each hour's mean observed demand is compared with the median of the same
    hour-of-day across all days. The robust z-score is the absolute deviation
    divided by 1.4826 * MAD of that hour-of-day group; hours scoring above
    `threshold` are returned (sorted, raw 1-based). When a group has zero MAD,
    any non-zero deviation counts as an outlier.
    """
    if threshold <= 0:
        raise InvalidInput(f"Detector threshold must be positive, got {threshold}.")
    stats = timestamp_means(grids, hours_per_day=hours_per_day)
    grouped = stats.groupby("hour")["mean_demand"]
    median = grouped.transform("median")
    deviation = (stats["mean_demand"] - median).abs()
    mad = deviation.groupby(stats["hour"]).transform("median")

    dev = deviation.to_numpy(dtype=float)
    scale = MAD_SCALE * mad.to_numpy(dtype=float)
    zero_scale_score = np.where(dev > 0, np.inf, 0.0)
    score = np.divide(dev, scale, out=zero_scale_score, where=scale > 0)
    flagged = np.isfinite(dev) & (score > threshold)

    found = sorted(int(i) for i in stats.loc[flagged, "source_index"])
    logger.info(f"Detector flagged {len(found)} timestamps at threshold {threshold}: {found}")
    return found
