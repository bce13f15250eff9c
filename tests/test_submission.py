"""
Unit tests for rebuilding grids and writing the submission file.
"""

import numpy as np
import pandas as pd
import pytest

from demandgrid.cleaning import filter_and_renumber
from demandgrid.errors import InvalidInput, ShapeMismatch
from demandgrid.grid_io import GridSet
from demandgrid.reshaping import grids_to_wide
from demandgrid.submission import format_submission, rebuild, round_half_up, write_submission


def test_round_half_up():
    """Test one tie rule: .5 always rounds up."""
    assert list(round_half_up([2.4, 2.6, 2.5])) == [2, 3, 3]
    assert list(round_half_up([0.5, 1.5, 3.49999])) == [1, 2, 3]


def test_rebuild_emits_only_originally_missing_cells(tiny_raw):
    imputed = grids_to_wide(filter_and_renumber(tiny_raw, [])).fillna(9)
    records = rebuild(imputed, tiny_raw, [])

    assert list(records.columns) == ["id", "demand"]
    assert records.to_dict("records") == [{"id": "0:0:1", "demand": 9}]
    assert format_submission(records) == "id,demand\n0:0:1,9\n"


def test_rebuild_rounds_and_clips():
    raw = GridSet.from_arrays([[[np.nan, np.nan], [np.nan, 1]]])
    imputed = grids_to_wide(filter_and_renumber(raw, []))
    imputed[["coord_1.1", "coord_1.2", "coord_2.1"]] = [[2.5, 2.49, -0.7]]
    records = rebuild(imputed, raw, [])
    assert list(records["demand"]) == [3, 2, 0]


def test_corrupted_timestamp_gets_sentinel():
    """Test missing cells of a corrupted hour come out as 0 whatever the estimator says."""
    raw = GridSet.from_arrays([
        [[1, np.nan], [3, np.nan]],
        [[5, np.nan], [7, 8]],
    ])
    imputed = grids_to_wide(filter_and_renumber(raw, [1])).fillna(42)
    records = rebuild(imputed, raw, [1])

    assert list(records["id"]) == ["0:0:1", "0:1:1", "1:0:1"]
    assert list(records["demand"]) == [0, 0, 42]


def test_rebuild_orders_by_timestamp_then_row_major():
    rng = np.random.default_rng(5)
    values = rng.integers(0, 9, size=(4, 3, 3)).astype(float)
    values[rng.random(values.shape) < 0.4] = np.nan
    raw = GridSet.from_arrays(values)
    imputed = grids_to_wide(filter_and_renumber(raw, [2])).fillna(1)
    records = rebuild(imputed, raw, [2])

    keys = [tuple(int(p) for p in i.split(":")) for i in records["id"]]
    assert keys == sorted(keys)
    assert len(records) == int(np.isnan(values).sum())


def test_rebuild_accepts_shuffled_rows(random_raw):
    clean = filter_and_renumber(random_raw, [4])
    imputed = grids_to_wide(clean).fillna(2)
    ordered = rebuild(imputed, random_raw, [4])
    shuffled = rebuild(imputed.sample(frac=1.0, random_state=0), random_raw, [4])
    pd.testing.assert_frame_equal(ordered, shuffled)


def test_rebuild_rejects_row_count_mismatch(random_raw):
    imputed = grids_to_wide(filter_and_renumber(random_raw, [4])).fillna(2)
    with pytest.raises(ShapeMismatch):
        rebuild(imputed, random_raw, [])
    with pytest.raises(ShapeMismatch):
        rebuild(imputed.iloc[:-1], random_raw, [4])


def test_rebuild_rejects_gaps_left_by_imputer(tiny_raw):
    imputed = grids_to_wide(filter_and_renumber(tiny_raw, []))
    with pytest.raises(ShapeMismatch):
        rebuild(imputed, tiny_raw, [])


def test_rebuild_needs_raw_generation(tiny_raw):
    clean = filter_and_renumber(tiny_raw, [])
    with pytest.raises(InvalidInput):
        rebuild(grids_to_wide(clean).fillna(1), clean, [])


def test_write_submission(tmp_path, tiny_raw):
    records = rebuild(grids_to_wide(filter_and_renumber(tiny_raw, [])).fillna(9), tiny_raw, [])
    path = write_submission(records, str(tmp_path / "out" / "tap30.txt"))

    with open(path) as f:
        assert f.read().splitlines() == ["id,demand", "0:0:1,9"]


def test_format_rejects_wrong_columns():
    with pytest.raises(ShapeMismatch):
        format_submission(pd.DataFrame({"key": ["0:0:0"], "value": [1]}))


def test_round_half_up_is_exact_below_the_tie():
    """Test values just under .5 round down even where x + 0.5 would round up."""
    below = np.nextafter(0.5, 0.0)
    assert list(round_half_up([below, np.nextafter(1.5, 0.0), -0.5, -1.5])) == [0, 1, 0, -1]
