"""
Shared fixtures for the demandgrid tests.
"""

import numpy as np
import pandas as pd
import pytest

from demandgrid.grid_io import GridSet


class FillWith:
    """Imputer stand-in that replaces every gap with one value."""

    def __init__(self, value):
        self.value = value
        self.seen = None

    def impute(self, wide: pd.DataFrame) -> pd.DataFrame:
        self.seen = wide.copy()
        return wide.fillna(self.value)


class Exploding:
    """Imputer stand-in that always fails."""

    def impute(self, wide):
        raise RuntimeError("estimator blew up")


@pytest.fixture
def tiny_raw():
    """Two 2x2 hours; one missing cell in the first."""
    return GridSet.from_arrays([
        [[1, np.nan], [3, 4]],
        [[5, 6], [7, 8]],
    ])


@pytest.fixture
def random_raw():
    """48 random 8x8 hours with roughly 20% missing cells."""
    rng = np.random.default_rng(0)
    values = rng.poisson(5, size=(48, 8, 8)).astype(float)
    values[rng.random(values.shape) < 0.2] = np.nan
    return GridSet.from_arrays(values)


@pytest.fixture
def raw_lines():
    """A well-formed two-hour 2x2 file with header."""
    return [
        "732 hours",
        "8 8",
        "1 -1",
        "3 4",
        "5 6",
        "7 8",
    ]


@pytest.fixture
def fill_with():
    return FillWith


@pytest.fixture
def exploding():
    return Exploding()
