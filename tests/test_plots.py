"""
Unit tests for the diagnostic figures.
"""

import matplotlib

matplotlib.use("Agg")

import pandas as pd  # noqa: E402

from demandgrid.cleaning import filter_and_renumber  # noqa: E402
from demandgrid.features import augment, resolve_cluster_specs  # noqa: E402
from demandgrid.plots import (  # noqa: E402
    plot_cluster_features,
    plot_holdout,
    plot_hourly_heatmap,
    plot_timestamp_means,
)
from demandgrid.reshaping import grids_to_wide, wide_to_long  # noqa: E402


def test_plot_timestamp_means(tmp_path, random_raw):
    path = plot_timestamp_means(random_raw, [3, 7], path=str(tmp_path / "means.png"))
    assert (tmp_path / "means.png").stat().st_size > 0
    assert path == str(tmp_path / "means.png")


def test_plot_hourly_heatmap(tmp_path, random_raw):
    long = wide_to_long(grids_to_wide(filter_and_renumber(random_raw, [])))
    plot_hourly_heatmap(long, path=str(tmp_path / "sub" / "heatmap.png"))
    assert (tmp_path / "sub" / "heatmap.png").exists()


def test_plot_cluster_features(tmp_path, random_raw):
    clusters = resolve_cluster_specs("default")
    wide = augment(grids_to_wide(filter_and_renumber(random_raw, [])), clusters, smoother="linear")
    assert plot_cluster_features(wide, clusters, path=str(tmp_path / "clusters.png"))
    assert (tmp_path / "clusters.png").exists()


def test_plot_cluster_features_without_clusters(tmp_path, random_raw):
    wide = grids_to_wide(filter_and_renumber(random_raw, []))
    assert plot_cluster_features(wide, [], path=str(tmp_path / "clusters.png")) is None
    assert not (tmp_path / "clusters.png").exists()


def test_plot_holdout(tmp_path):
    detail = pd.DataFrame({"timestamp": [1, 2], "coord": ["1.1", "1.2"], "observed": [3.0, 5.0],
                           "predicted": [2.5, 5.5]})
    plot_holdout(detail, {"rmse": 0.5, "mae": 0.5}, path=str(tmp_path / "holdout.png"))
    assert (tmp_path / "holdout.png").exists()
