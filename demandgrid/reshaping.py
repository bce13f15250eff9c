"""
Purpose: Moving the same dataset between its three equivalent shapes.

- a GridSet: (T, R, C) stack of grids
- a wide table: one row per timestamp, one "coord_<row>.<col>" column per cell
- a long table: one row per (timestamp, cell) pair

Cell columns always follow row-major order (row 1 cols 1..C, row 2 cols 1..C, ...).
Downstream code maps columns back to grid positions by that order, so it is
rebuilt from the coordinate labels rather than trusted from whatever order a
pandas operation happens to return.

Content
- cell_columns() / parse_coord()
- calendar_fields()
- grids_to_wide() / wide_to_grids()
- wide_to_long() / long_to_wide()
"""

import logging
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from .config import COORD_PREFIX, HOURS_PER_DAY
from .errors import InvalidInput, ShapeMismatch
from .grid_io import GridSet

logger = logging.getLogger(__name__)

ID_COLS = ["timestamp", "day", "hour"]


def coord_label(row: int, col: int) -> str:
    """1-based "row.col" label of a cell."""
    return f"{row}.{col}"


def parse_coord(label: str) -> Tuple[int, int]:
    """Inverse of coord_label; accepts the bare label or the column name."""
    text = label[len(COORD_PREFIX):] if label.startswith(COORD_PREFIX) else label
    try:
        row, col = text.split(".")
        return int(row), int(col)
    except ValueError:
        raise InvalidInput(f"Not a coordinate label: '{label}'") from None


def cell_columns(shape: Tuple[int, int]) -> List[str]:
    """Wide-table cell columns in row-major order."""
    n_rows, n_cols = shape
    return [f"{COORD_PREFIX}{coord_label(r, c)}"
            for r in range(1, n_rows + 1)
            for c in range(1, n_cols + 1)]


def coord_columns_of(df: pd.DataFrame) -> List[str]:
    """Cell columns present in a wide table, sorted row-major."""
    cols = [c for c in df.columns if str(c).startswith(COORD_PREFIX)]
    return sorted(cols, key=parse_coord)


def shape_from_columns(columns: List[str]) -> Tuple[int, int]:
    """Infer (R, C) from a complete set of cell columns."""
    if not columns:
        raise ShapeMismatch("Table has no coordinate columns.")
    coords = [parse_coord(c) for c in columns]
    n_rows = max(r for r, _ in coords)
    n_cols = max(c for _, c in coords)
    if sorted(columns, key=parse_coord) != cell_columns((n_rows, n_cols)):
        raise ShapeMismatch(
            f"{len(columns)} coordinate columns do not form a complete {n_rows}x{n_cols} grid."
        )
    return n_rows, n_cols


def calendar_fields(timestamps, hours_per_day: int = HOURS_PER_DAY) -> Tuple[np.ndarray, np.ndarray]:
    """1-based day number and hour-of-day from contiguous 1-based timestamps."""
    ts = np.asarray(timestamps, dtype=int)
    day = (ts - 1) // hours_per_day + 1
    hour = (ts - 1) % hours_per_day + 1
    return day, hour


def grids_to_wide(grids: GridSet, with_calendar: bool = True) -> pd.DataFrame:
    """
    Flatten every grid into one row.

    Day/hour depend on contiguous indexing, so they are only derived for a
    clean (filtered and renumbered) GridSet.
    """
    if with_calendar and not grids.is_clean:
        raise InvalidInput(
            "Day/hour fields need contiguous timestamps; "
            "run filter_and_renumber() before asking for a calendar."
        )
    columns = cell_columns(grids.shape)
    flat = grids.values.reshape(grids.n_timestamps, -1)
    if flat.shape[1] != len(columns):
        raise ShapeMismatch(f"Flattened grids have {flat.shape[1]} cells, expected {len(columns)}.")

    wide = pd.DataFrame(flat.copy(), columns=columns)
    wide.insert(0, "timestamp", grids.timestamps)
    if with_calendar:
        day, hour = calendar_fields(grids.timestamps)
        wide.insert(1, "day", day)
        wide.insert(2, "hour", hour)
    return wide


def wide_to_grids(wide: pd.DataFrame, shape: Optional[Tuple[int, int]] = None,
                  generation: str = "clean") -> GridSet:
    """Fold wide rows back into grids; derived non-cell columns are ignored."""
    columns = coord_columns_of(wide)
    if shape is None:
        shape = shape_from_columns(columns)
    expected = cell_columns(shape)
    if columns != expected:
        raise ShapeMismatch(
            f"Wide table has {len(columns)} cell columns, expected {len(expected)} for a {shape[0]}x{shape[1]} grid."
        )
    values = wide[expected].to_numpy(dtype=float).reshape(len(wide), shape[0], shape[1])
    if "timestamp" in wide.columns:
        timestamps = wide["timestamp"].to_numpy(dtype=int)
    else:
        timestamps = np.arange(1, len(wide) + 1)
    return GridSet(values=values, timestamps=timestamps, source_index=timestamps,
                   generation=generation)


def wide_to_long(wide: pd.DataFrame) -> pd.DataFrame:
    """
    Unpivot cell columns into (timestamp, [day, hour,] coord, demand) rows.

    Only cells are carried. Derived columns such as cluster averages are
    features, not cells, and are left out; rebuild them with augment().
    """
    id_vars = [c for c in ID_COLS if c in wide.columns]
    value_vars = coord_columns_of(wide)
    long = pd.melt(wide, id_vars=id_vars, value_vars=value_vars,
                   var_name="coord", value_name="demand")
    long["coord"] = long["coord"].str[len(COORD_PREFIX):]
    if len(long) != len(wide) * len(value_vars):
        raise ShapeMismatch(f"Long table has {len(long)} rows, expected {len(wide) * len(value_vars)}.")
    return long


def long_to_wide(long: pd.DataFrame) -> pd.DataFrame:
    """Pivot a long table back to one row per timestamp, cells in row-major order."""
    id_vars = [c for c in ID_COLS if c in long.columns]
    if "timestamp" not in id_vars:
        raise InvalidInput("Long table needs a 'timestamp' column.")
    if long.duplicated(subset=["timestamp", "coord"]).any():
        raise ShapeMismatch("Long table holds duplicate (timestamp, coord) pairs.")

    wide = long.pivot(index=id_vars, columns="coord", values="demand")
    wide.columns = [f"{COORD_PREFIX}{c}" for c in wide.columns]
    wide = wide.reset_index()

    columns = coord_columns_of(wide)
    shape_from_columns(columns)
    wide = wide[id_vars + columns].sort_values("timestamp").reset_index(drop=True)
    wide.columns.name = None
    if len(wide) * len(columns) != len(long):
        raise ShapeMismatch(
            f"Pivot produced {len(wide) * len(columns)} cells from {len(long)} long rows."
        )
    return wide
