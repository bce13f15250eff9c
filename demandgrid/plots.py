"""
Diagnostic figures: where the injected hours stand out, how demand spreads
over the day, how the cluster features look after smoothing, and how close the
imputer gets on held-out cells. Every function saves a PNG and returns its path.
"""

import logging
import os
from typing import Iterable, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .cleaning import timestamp_means
from .config import PLOTS_DIR
from .features import ClusterSpec
from .grid_io import GridSet

logger = logging.getLogger(__name__)


def _save(fig, path: str) -> str:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    fig.savefig(path, dpi=120)
    plt.close(fig)
    logger.info(f"Saved plot to {path}")
    return path


def plot_timestamp_means(grids: GridSet, corrupted: Iterable[int] = (),
                         path: str = os.path.join(PLOTS_DIR, "timestamp_means.png")) -> str:
    """Mean observed demand per raw timestamp; corrupted hours marked in red."""
    stats = timestamp_means(grids)
    flagged = stats["source_index"].isin(list(corrupted))

    fig, ax = plt.subplots(figsize=(14, 4), constrained_layout=True)
    ax.plot(stats["source_index"], stats["mean_demand"], color="tab:blue", linewidth=1, label="mean demand")
    if flagged.any():
        ax.scatter(stats.loc[flagged, "source_index"], stats.loc[flagged, "mean_demand"],
                   color="tab:red", zorder=3, label="corrupted")
    ax.set_xlabel("timestamp")
    ax.set_ylabel("mean requests per cell")
    ax.set_title("Mean demand per hour")
    ax.grid(alpha=0.3)
    ax.legend(loc="upper right")
    return _save(fig, path)


def plot_hourly_heatmap(long: pd.DataFrame,
                        path: str = os.path.join(PLOTS_DIR, "day_hour_heatmap.png")) -> str:
    """Day x hour-of-day heatmap of mean demand, built from the long table."""
    table = long.pivot_table(index="day", columns="hour", values="demand", aggfunc="mean")

    fig, ax = plt.subplots(figsize=(10, 8), constrained_layout=True)
    im = ax.imshow(table.to_numpy(dtype=float), aspect="auto", cmap="viridis")
    ax.set_xticks(range(len(table.columns)))
    ax.set_xticklabels(table.columns)
    ax.set_yticks(range(len(table.index)))
    ax.set_yticklabels(table.index)
    ax.set_xlabel("hour of day")
    ax.set_ylabel("day")
    ax.set_title("Mean demand by day and hour")
    fig.colorbar(im, ax=ax, label="mean requests per cell")
    return _save(fig, path)


def plot_cluster_features(wide: pd.DataFrame, clusters: Sequence[ClusterSpec],
                          path: str = os.path.join(PLOTS_DIR, "cluster_features.png")) -> Optional[str]:
    """Smoothed cluster-average columns over time."""
    columns = [spec.column for spec in clusters if spec.column in wide.columns]
    if not columns:
        logger.warning("No cluster columns to plot; skipping")
        return None

    fig, ax = plt.subplots(figsize=(14, 4), constrained_layout=True)
    for col in columns:
        ax.plot(wide["timestamp"], wide[col], linewidth=1, label=col)
    ax.set_xlabel("timestamp")
    ax.set_ylabel("mean requests per cell")
    ax.set_title("Cluster features")
    ax.grid(alpha=0.3)
    ax.legend(loc="upper right")
    return _save(fig, path)


def plot_holdout(detail: pd.DataFrame, metrics: Optional[dict] = None,
                 path: str = os.path.join(PLOTS_DIR, "holdout_scatter.png")) -> str:
    """Observed vs imputed values on held-out cells."""
    fig, ax = plt.subplots(figsize=(6, 6), constrained_layout=True)
    ax.scatter(detail["observed"], detail["predicted"], alpha=0.4, color="tab:orange")
    if not detail.empty:
        lo = float(np.nanmin([detail["observed"].min(), detail["predicted"].min()]))
        hi = float(np.nanmax([detail["observed"].max(), detail["predicted"].max()]))
        ax.plot([lo, hi], [lo, hi], "k--", alpha=0.5)
    title = "Imputed vs observed (held-out cells)"
    if metrics:
        title += f"\nRMSE {metrics['rmse']:.2f} | MAE {metrics['mae']:.2f}"
    ax.set_title(title)
    ax.set_xlabel("observed")
    ax.set_ylabel("imputed")
    ax.grid(alpha=0.3)
    return _save(fig, path)
