"""
Unit tests for the masked hold-out evaluation.
"""

import numpy as np
import pandas as pd
import pytest

from demandgrid.cleaning import filter_and_renumber
from demandgrid.errors import ExternalEstimatorFailure, InvalidInput
from demandgrid.evaluation import _metric_mae, _metric_rmse, mask_observed, masked_holdout_score
from demandgrid.grid_io import GridSet
from demandgrid.reshaping import cell_columns, grids_to_wide


class Oracle:
    """Imputer stand-in that knows the hidden values."""

    def __init__(self, truth):
        self.truth = truth

    def impute(self, wide):
        return self.truth.copy()


@pytest.fixture
def complete_wide():
    rng = np.random.default_rng(3)
    raw = GridSet.from_arrays(rng.poisson(4, size=(20, 3, 3)).astype(float))
    return grids_to_wide(filter_and_renumber(raw, []))


def test_metrics():
    pred = np.array([1.0, 2.0, 5.0])
    truth = np.array([1.0, 4.0, 2.0])
    assert _metric_mae(pred, truth) == pytest.approx(5 / 3)
    assert _metric_rmse(pred, truth) == pytest.approx(np.sqrt(13 / 3))


def test_mask_hides_observed_cells_only(random_raw):
    wide = grids_to_wide(filter_and_renumber(random_raw, []))
    cells = cell_columns(random_raw.shape)
    masked, hidden = mask_observed(wide, fraction=0.1, random_state=0)

    observed = wide[cells].notna().to_numpy()
    assert hidden.shape == observed.shape
    assert not (hidden & ~observed).any()
    assert hidden.sum() == round(0.1 * observed.sum())
    assert masked[cells].isna().sum().sum() == wide[cells].isna().sum().sum() + hidden.sum()
    # the original table is untouched
    assert wide[cells].notna().to_numpy().sum() == observed.sum()


def test_mask_is_seeded(complete_wide):
    _, first = mask_observed(complete_wide, fraction=0.2, random_state=11)
    _, second = mask_observed(complete_wide, fraction=0.2, random_state=11)
    np.testing.assert_array_equal(first, second)


@pytest.mark.parametrize("fraction", [0.0, 1.0, -0.2, 1.5])
def test_mask_rejects_bad_fraction(complete_wide, fraction):
    with pytest.raises(InvalidInput):
        mask_observed(complete_wide, fraction=fraction)


def test_mask_needs_observed_cells():
    wide = grids_to_wide(filter_and_renumber(GridSet.from_arrays(np.full((2, 2, 2), np.nan)), []))
    with pytest.raises(InvalidInput):
        mask_observed(wide, fraction=0.5)


def test_perfect_imputer_scores_zero(complete_wide):
    metrics, detail = masked_holdout_score(complete_wide, Oracle(complete_wide), fraction=0.25, random_state=0)
    assert metrics["rmse"] == 0.0
    assert metrics["mae"] == 0.0
    assert metrics["rmse_rounded"] == 0.0
    assert metrics["n_hidden"] == len(detail) > 0
    assert list(detail.columns) == ["timestamp", "coord", "observed", "predicted"]


def test_constant_imputer_error(complete_wide, fill_with):
    wide = complete_wide.copy()
    cells = cell_columns((3, 3))
    wide[cells] = 6.0
    metrics, detail = masked_holdout_score(wide, fill_with(2.4), fraction=0.5, random_state=0)

    assert metrics["mae"] == pytest.approx(3.6)
    assert metrics["rmse"] == pytest.approx(3.6)
    # 2.4 rounds down to 2 before scoring the submission value
    assert metrics["mae_rounded"] == pytest.approx(4.0)
    assert set(detail["coord"]).issubset(set(cells))
    assert isinstance(detail, pd.DataFrame)


def test_failing_imputer_is_reported_as_estimator_failure(complete_wide, exploding):
    with pytest.raises(ExternalEstimatorFailure):
        masked_holdout_score(complete_wide, exploding, fraction=0.25, random_state=0)


def test_masked_copy_is_writable_and_original_untouched(complete_wide):
    before = complete_wide.copy()
    masked, hidden = mask_observed(complete_wide, fraction=0.3, random_state=2)
    cells = cell_columns((3, 3))
    assert masked[cells].isna().to_numpy().sum() == hidden.sum()
    pd.testing.assert_frame_equal(complete_wide, before)
