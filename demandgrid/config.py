"""
Central configuration for the demand-grid imputation runs.
Keeping all core settings in one place helps ensure reproducible submissions.
"""

from typing import Dict, List, Tuple

# ---------------------------------------------------------------------------
# Input / output settings
# ---------------------------------------------------------------------------

RAW_DATA_PATH = "data.txt"
SUBMISSION_PATH = "tap30.txt"
PLOTS_DIR = "plots"

HEADER_LINES = 2
GRID_SHAPE: Tuple[int, int] = (8, 8)
N_TIMESTAMPS = 732
HOURS_PER_DAY = 24

MISSING_TOKEN = -1
SENTINEL_VALUE = 0

COORD_PREFIX = "coord_"
CLUSTER_PREFIX = "cluster_"
SUBMISSION_HEADER = "id,demand"

# Raw (1-based) timestamps known to carry injected values. Supplied per run on
# the command line, or taken from detect_corrupted().
CORRUPTED_TIMESTAMPS: List[int] = []

# ---------------------------------------------------------------------------
# Feature settings
# ---------------------------------------------------------------------------

# Cell groups whose demand moves together; each group becomes one averaged
# column. Labels are 1-based "row.col".
CLUSTER_SETS: Dict[str, Dict[str, List[str]]] = {
    "none": {},
    "default": {
        "center": ["4.4", "4.5", "5.4", "5.5"],
        "north": ["1.3", "1.4", "1.5", "1.6", "2.4", "2.5"],
        "south": ["7.3", "7.4", "7.5", "7.6", "8.4", "8.5"],
        "west": ["3.1", "4.1", "5.1", "6.1", "4.2", "5.2"],
        "east": ["3.8", "4.8", "5.8", "6.8", "4.7", "5.7"],
    },
}

DEFAULT_CLUSTER_SET = "default"

SMOOTHER = "kalman"  # "kalman" | "pchip" | "linear"


# ---------------------------------------------------------------------------
# Estimator presets
# ---------------------------------------------------------------------------

IMPUTER_CONFIG = {
    "n_estimators": 100,   # trees per forest
    "max_features": None,  # mtry; None -> sqrt of the column count
    "parallelize": False,
    "max_iter": 10,
    "random_state": 42,
}

DETECTOR_CONFIG = {
    "threshold": 6.0,
}

EVALUATION_CONFIG = {
    "holdout_fraction": 0.05,
    "random_state": 42,
}
