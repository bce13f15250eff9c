"""
Utility helpers to judge an imputer on cells whose true value is known.

A random share of the observed cell values is hidden, the imputer fills the
table, and the estimates are compared with the hidden truth both before and
after the submission rounding.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd

from .config import EVALUATION_CONFIG
from .errors import InvalidInput
from .imputation import run_imputer
from .reshaping import coord_columns_of
from .submission import round_half_up

logger = logging.getLogger(__name__)


def _metric_rmse(pred: np.ndarray, truth: np.ndarray) -> float:
    return float(np.sqrt(np.nanmean((pred - truth) ** 2)))


def _metric_mae(pred: np.ndarray, truth: np.ndarray) -> float:
    return float(np.nanmean(np.abs(pred - truth)))


def mask_observed(
    wide: pd.DataFrame,
    fraction: float = EVALUATION_CONFIG["holdout_fraction"],
    random_state: Optional[int] = EVALUATION_CONFIG["random_state"],
) -> Tuple[pd.DataFrame, np.ndarray]:
    """Hide `fraction` of the observed cell values; return the masked copy and the hidden mask."""
    if not 0.0 < fraction < 1.0:
        raise InvalidInput(f"Hold-out fraction must be in (0, 1), got {fraction}.")
    cells = coord_columns_of(wide)
    observed = wide[cells].notna().to_numpy()
    n_observed = int(observed.sum())
    if n_observed == 0:
        raise InvalidInput("Table has no observed cells to hold out.")

    rng = np.random.default_rng(random_state)
    flat_idx = np.flatnonzero(observed)
    n_hide = max(1, int(round(fraction * n_observed)))
    hidden_idx = rng.choice(flat_idx, size=n_hide, replace=False)
    hidden = np.zeros(observed.size, dtype=bool)
    hidden[hidden_idx] = True
    hidden = hidden.reshape(observed.shape)

    masked = wide.copy()
    values = np.array(masked[cells], dtype=float)
    values[hidden] = np.nan
    masked[cells] = values
    return masked, hidden


def masked_holdout_score(
    wide: pd.DataFrame,
    imputer,
    fraction: float = EVALUATION_CONFIG["holdout_fraction"],
    random_state: Optional[int] = EVALUATION_CONFIG["random_state"],
) -> Tuple[Dict[str, float], pd.DataFrame]:
    """
    Score `imputer` on artificially hidden cells.

    Returns
    -------
    metrics : dict with rmse, mae, rmse_rounded, mae_rounded, n_hidden
    detail : one row per hidden cell (timestamp, coord, observed, predicted)
    """
    masked, hidden = mask_observed(wide, fraction=fraction, random_state=random_state)
    filled = run_imputer(imputer, masked)

    cells = coord_columns_of(wide)
    truth = wide[cells].to_numpy(dtype=float)[hidden]
    pred = filled[cells].to_numpy(dtype=float)[hidden]
    rounded = np.clip(round_half_up(pred), 0, None)

    metrics = {
        "rmse": _metric_rmse(pred, truth),
        "mae": _metric_mae(pred, truth),
        "rmse_rounded": _metric_rmse(rounded, truth),
        "mae_rounded": _metric_mae(rounded, truth),
        "n_hidden": int(hidden.sum()),
    }

    rows, cols = np.nonzero(hidden)
    detail = pd.DataFrame(
        {
            "timestamp": wide["timestamp"].to_numpy()[rows] if "timestamp" in wide.columns else rows + 1,
            "coord": [cells[c] for c in cols],
            "observed": truth,
            "predicted": pred,
        }
    )
    logger.info(f"Hold-out on {metrics['n_hidden']:,} cells: RMSE {metrics['rmse']:.3f}, "
                f"MAE {metrics['mae']:.3f} (rounded RMSE {metrics['rmse_rounded']:.3f})")
    return metrics, detail
