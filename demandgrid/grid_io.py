"""
Purpose: Loading the raw demand file and holding it as a stack of grids.

The raw file (data.txt) carries two metadata lines followed by one block of
R lines per hour, each line holding C whitespace separated integer counts.
The token -1 marks a missing cell.

Content
- GridSet
- parse_grid_lines()
- read_grid_file()
- missing_summary()
"""

import logging
import os
from dataclasses import dataclass
from io import StringIO
from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from .config import GRID_SHAPE, HEADER_LINES, MISSING_TOKEN
from .errors import InvalidInput, MalformedInput

logger = logging.getLogger(__name__)

GENERATIONS = ("raw", "clean")
INTEGER_TOKEN = rf"{MISSING_TOKEN}|\d+"


@dataclass(frozen=True, eq=False)
class GridSet:
    """An ordered stack of demand grids, tagged with its generation.

    values       : float array (T, R, C), NaN where the cell is missing.
    timestamps   : 1-based sequential index of each grid (1..T).
    source_index : 1-based index of each grid in the raw file.
    generation   : "raw" (as read) or "clean" (corrupted hours removed and
                   timestamps renumbered).
    """

    values: np.ndarray
    timestamps: np.ndarray
    source_index: np.ndarray
    generation: str = "raw"

    def __post_init__(self):
        if self.generation not in GENERATIONS:
            raise InvalidInput(f"Unknown generation '{self.generation}'. Expected one of {GENERATIONS}.")
        values = np.array(self.values, dtype=float)
        if values.ndim != 3:
            raise MalformedInput(f"Grid stack must be 3-dimensional (T, R, C), got shape {values.shape}.")
        timestamps = np.array(self.timestamps, dtype=int)
        source_index = np.array(self.source_index, dtype=int)
        if len(timestamps) != len(values) or len(source_index) != len(values):
            raise MalformedInput(
                f"Index lengths ({len(timestamps)}, {len(source_index)}) do not match grid count {len(values)}."
            )
        # grids are read once and never mutated
        for arr in (values, timestamps, source_index):
            arr.setflags(write=False)
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "timestamps", timestamps)
        object.__setattr__(self, "source_index", source_index)

    @classmethod
    def from_arrays(cls, values, generation: str = "raw") -> "GridSet":
        """Build a GridSet numbered 1..T from a (T, R, C) array or nested lists."""
        values = np.asarray(values, dtype=float)
        index = np.arange(1, len(values) + 1)
        return cls(values=values, timestamps=index, source_index=index.copy(), generation=generation)

    @property
    def n_timestamps(self) -> int:
        return int(self.values.shape[0])

    @property
    def shape(self) -> Tuple[int, int]:
        return int(self.values.shape[1]), int(self.values.shape[2])

    @property
    def is_clean(self) -> bool:
        return self.generation == "clean"

    def grid(self, timestamp: int) -> np.ndarray:
        """Return the grid stored under a 1-based timestamp."""
        if not 1 <= timestamp <= self.n_timestamps:
            raise InvalidInput(f"Timestamp {timestamp} outside 1..{self.n_timestamps}.")
        return self.values[timestamp - 1]

    def missing_mask(self) -> np.ndarray:
        return np.isnan(self.values)

    def missing_count(self) -> int:
        return int(self.missing_mask().sum())

    def __len__(self):
        return self.n_timestamps


def parse_grid_lines(
    lines: Iterable[str],
    shape: Tuple[int, int] = GRID_SHAPE,
    header_lines: int = HEADER_LINES,
    expected_timestamps: Optional[int] = None,
) -> GridSet:
    """
    Parse the raw block format into a raw-generation GridSet.

    Parameters:
    -----------
    lines : iterable of str - file content, header included
    shape : (rows, cols) of one grid
    header_lines : int - number of metadata lines to skip
    expected_timestamps : int, optional - required grid count

    Returns:
    --------
    GridSet with generation "raw"
    """
    n_rows, n_cols = shape
    body = [ln for ln in list(lines)[header_lines:] if ln.strip()]
    if not body:
        raise MalformedInput("No grid lines found after the header.")

    bad_width = [i for i, ln in enumerate(body) if len(ln.split()) != n_cols]
    if bad_width:
        first = bad_width[0]
        raise MalformedInput(
            f"Line {first + header_lines + 1} has {len(body[first].split())} tokens, expected {n_cols}."
        )

    table = pd.read_csv(StringIO("\n".join(body)), sep=r"\s+", header=None, dtype=str)
    # counts are plain digits; the missing marker is the literal token -1
    well_formed = table.apply(lambda s: s.str.fullmatch(INTEGER_TOKEN)).to_numpy(dtype=bool)
    if not well_formed.all():
        r, c = np.argwhere(~well_formed)[0]
        token = table.iat[r, c]
        kind = "Negative count" if token.startswith("-") and token[1:].isdigit() else "Non-integer token"
        raise MalformedInput(f"{kind} '{token}' on line {r + header_lines + 1}.")
    raw = np.array(table.astype(float), dtype=float)

    if len(raw) % n_rows != 0:
        raise MalformedInput(
            f"{len(raw)} grid lines do not split into whole {n_rows}-line blocks."
        )
    raw[raw == MISSING_TOKEN] = np.nan
    values = raw.reshape(-1, n_rows, n_cols)

    if expected_timestamps is not None and len(values) != expected_timestamps:
        raise MalformedInput(f"Found {len(values)} grids, expected {expected_timestamps}.")

    grids = GridSet.from_arrays(values, generation="raw")
    logger.info(f"Parsed {grids.n_timestamps} grids of shape {grids.shape}, "
                f"{grids.missing_count():,} missing cells")
    return grids


def read_grid_file(
    path: str,
    shape: Tuple[int, int] = GRID_SHAPE,
    header_lines: int = HEADER_LINES,
    expected_timestamps: Optional[int] = None,
) -> GridSet:
    """Read data.txt into a raw GridSet."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Data file not found: {path}")
    with open(path, "r") as f:
        lines = f.read().splitlines()
    logger.info(f"Loaded {len(lines):,} lines from {path}")
    return parse_grid_lines(lines, shape=shape, header_lines=header_lines,
                            expected_timestamps=expected_timestamps)


def missing_summary(grids: GridSet) -> pd.DataFrame:
    """Per-timestamp count and share of missing cells."""
    n_cells = grids.shape[0] * grids.shape[1]
    counts = grids.missing_mask().reshape(grids.n_timestamps, -1).sum(axis=1)
    return pd.DataFrame(
        {
            "timestamp": grids.timestamps,
            "source_index": grids.source_index,
            "missing": counts,
            "missing_pct": np.round(counts / n_cells * 100.0, 2),
        }
    )
