"""
Unit tests for the corruption filter and the optional detector.
"""

import numpy as np
import pytest

from demandgrid.cleaning import detect_corrupted, filter_and_renumber, timestamp_means
from demandgrid.errors import InvalidInput
from demandgrid.grid_io import GridSet


def _numbered(n):
    """n 1x1 grids whose single value equals the raw timestamp."""
    return GridSet.from_arrays(np.arange(1, n + 1, dtype=float).reshape(n, 1, 1))


def test_filter_removes_and_renumbers():
    """Test N grids minus k corrupted leaves N-k grids numbered 1..N-k in order."""
    raw = _numbered(10)
    clean = filter_and_renumber(raw, [2, 5, 9])

    assert clean.n_timestamps == 7
    assert clean.generation == "clean"
    assert list(clean.timestamps) == list(range(1, 8))
    assert list(clean.source_index) == [1, 3, 4, 6, 7, 8, 10]
    assert list(clean.values.reshape(-1)) == [1, 3, 4, 6, 7, 8, 10]


def test_filter_with_empty_set_keeps_everything():
    clean = filter_and_renumber(_numbered(4), [])
    assert clean.n_timestamps == 4
    assert clean.is_clean


def test_filter_ignores_repeated_indices():
    clean = filter_and_renumber(_numbered(5), [2, 2, 2])
    assert clean.n_timestamps == 4


@pytest.mark.parametrize("bad", [[0], [11], [-3], [1, 12]])
def test_filter_rejects_out_of_range(bad):
    with pytest.raises(InvalidInput):
        filter_and_renumber(_numbered(10), bad)


def test_filter_refuses_clean_generation():
    clean = filter_and_renumber(_numbered(3), [1])
    with pytest.raises(InvalidInput):
        filter_and_renumber(clean, [1])


def test_filter_does_not_touch_raw():
    raw = _numbered(5)
    filter_and_renumber(raw, [1])
    assert raw.n_timestamps == 5
    assert raw.generation == "raw"


def test_timestamp_means_skip_missing_cells():
    raw = GridSet.from_arrays([[[2, np.nan], [4, np.nan]], [[np.nan, np.nan], [np.nan, np.nan]]])
    stats = timestamp_means(raw)
    assert stats.loc[0, "mean_demand"] == 3
    assert np.isnan(stats.loc[1, "mean_demand"])
    assert list(stats["observed"]) == [2, 0]


def test_detector_flags_injected_spike():
    """Test an hour far above its hour-of-day norm is proposed."""
    rng = np.random.default_rng(3)
    days, hours = 30, 24
    daily = 5 + 3 * np.sin(np.arange(hours) / hours * 2 * np.pi)
    means = np.tile(daily, days) + rng.normal(0, 0.2, days * hours)
    values = np.repeat(means[:, None, None], 4, axis=1).repeat(4, axis=2)
    values[50] += 200
    values[130] = 0
    raw = GridSet.from_arrays(values)

    assert detect_corrupted(raw, threshold=6) == [51, 131]


def test_detector_quiet_on_clean_data():
    values = np.tile(np.arange(24, dtype=float), 5).reshape(-1, 1, 1)
    assert detect_corrupted(GridSet.from_arrays(values)) == []


def test_detector_rejects_bad_threshold():
    with pytest.raises(InvalidInput):
        detect_corrupted(_numbered(24), threshold=0)
