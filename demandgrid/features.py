"""
Purpose: Building cluster-average columns that give the imputer a smoother
view of neighbourhood demand.

For every ClusterSpec the mean of its observed member cells is taken per row
(missing members are skipped; a row with no observed member stays missing).
The resulting series is then gap-filled in time order with one of:

- "kalman": local-level state-space model, gaps take the smoothed level
- "pchip" : shape-preserving cubic through the observed points
- "linear": straight lines between observed neighbours

Content
- ClusterSpec / resolve_cluster_specs()
- cluster_means()
- fill_gaps()
- augment()
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy.interpolate import PchipInterpolator

from .config import CLUSTER_PREFIX, CLUSTER_SETS, COORD_PREFIX, DEFAULT_CLUSTER_SET, SMOOTHER
from .errors import ExternalEstimatorFailure, InvalidInput

logger = logging.getLogger(__name__)

SMOOTHERS = ("kalman", "pchip", "linear")

# below this many observations a state-space fit is not meaningful
MIN_KALMAN_OBS = 3


@dataclass(frozen=True)
class ClusterSpec:
    """Named group of 1-based "row.col" cell labels averaged into one column."""

    name: str
    coords: Tuple[str, ...]

    @property
    def column(self) -> str:
        return f"{CLUSTER_PREFIX}{self.name}"

    @property
    def cell_columns(self) -> List[str]:
        return [f"{COORD_PREFIX}{c}" for c in self.coords]


def resolve_cluster_specs(
    selection: Union[str, Dict[str, Sequence[str]], None] = None,
) -> List[ClusterSpec]:
    """Return concrete cluster specs from a named preset or an explicit mapping."""
    selection = DEFAULT_CLUSTER_SET if selection is None else selection
    if isinstance(selection, str):
        if selection not in CLUSTER_SETS:
            raise KeyError(
                f"Unknown cluster set '{selection}'. "
                f"Available: {list(CLUSTER_SETS.keys())}"
            )
        selection = CLUSTER_SETS[selection]
    return [ClusterSpec(name=str(name), coords=tuple(str(c) for c in coords))
            for name, coords in selection.items()]


def _validate_clusters(wide: pd.DataFrame, clusters: Sequence[ClusterSpec]) -> None:
    names = [spec.name for spec in clusters]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise InvalidInput(f"Duplicate cluster names: {duplicates}")
    for spec in clusters:
        if not spec.coords:
            raise InvalidInput(f"Cluster '{spec.name}' has no member cells.")
        unknown = [c for c, col in zip(spec.coords, spec.cell_columns) if col not in wide.columns]
        if unknown:
            raise InvalidInput(f"Cluster '{spec.name}' references unknown coordinates {unknown}.")
        if spec.column in wide.columns:
            raise InvalidInput(f"Column '{spec.column}' already exists in the wide table.")


def cluster_means(wide: pd.DataFrame, clusters: Sequence[ClusterSpec]) -> pd.DataFrame:
    """Per-row mean of each cluster's observed members, before any gap filling."""
    _validate_clusters(wide, clusters)
    means = {spec.column: wide[spec.cell_columns].mean(axis=1, skipna=True) for spec in clusters}
    return pd.DataFrame(means, index=wide.index, columns=[spec.column for spec in clusters])


def _linear_fill(values: np.ndarray) -> np.ndarray:
    series = pd.Series(values)
    return series.interpolate(method="linear", limit_direction="both").ffill().bfill().to_numpy()


def _pchip_fill(values: np.ndarray) -> np.ndarray:
    x = np.arange(len(values), dtype=float)
    finite_mask = np.isfinite(values)
    if finite_mask.sum() < 2:
        return _linear_fill(values)
    pchip = PchipInterpolator(x[finite_mask], values[finite_mask], extrapolate=False)
    interp = pchip(x)
    # outside the observed span hold the nearest observation
    return pd.Series(interp).ffill().bfill().to_numpy()


def _kalman_fill(values: np.ndarray) -> np.ndarray:
    if np.isfinite(values).sum() < MIN_KALMAN_OBS:
        logger.warning("Too few observations for a state-space fit; using linear interpolation")
        return _linear_fill(values)
    try:
        model = sm.tsa.UnobservedComponents(values, level="llevel")
        res = model.fit(disp=False)
    except Exception as exc:
        raise ExternalEstimatorFailure(f"Kalman smoother failed: {exc}") from exc
    return np.asarray(res.smoothed_state[0], dtype=float)


def fill_gaps(series: pd.Series, method: str = SMOOTHER) -> pd.Series:
    """
    Fill every missing value of a time-ordered series from its observed neighbours.

    Observed values are kept as they are; only gaps take the smoothed values.
    """
    if method not in SMOOTHERS:
        raise InvalidInput(f"Unknown smoother '{method}'. Available: {list(SMOOTHERS)}")
    values = series.to_numpy(dtype=float)
    gaps = np.isnan(values)
    if gaps.all():
        raise InvalidInput(f"Series '{series.name}' has no observed values to smooth from.")
    if not gaps.any():
        return series.astype(float)

    if method == "kalman":
        filled = _kalman_fill(values)
    elif method == "pchip":
        filled = _pchip_fill(values)
    else:
        filled = _linear_fill(values)

    out = values.copy()
    out[gaps] = filled[gaps]
    if np.isnan(out).any():
        raise ExternalEstimatorFailure(f"Smoother '{method}' left gaps in '{series.name}'.")
    return pd.Series(out, index=series.index, name=series.name)


def augment(wide: pd.DataFrame, clusters: Sequence[ClusterSpec], smoother: str = SMOOTHER) -> pd.DataFrame:
    """
    Append one fully populated cluster-average column per ClusterSpec.

    Original columns are returned unchanged; the new columns follow in
    declaration order.
    """
    means = cluster_means(wide, clusters)
    out = wide.copy()
    for spec in clusters:
        raw = means[spec.column]
        n_gaps = int(raw.isna().sum())
        out[spec.column] = fill_gaps(raw, method=smoother)
        logger.info(f"Cluster '{spec.name}' ({len(spec.coords)} cells): filled {n_gaps} gaps with {smoother}")
    return out
