"""
Contains the high-level class that orchestrates one imputation run end to end.

raw grids -> filter_and_renumber -> grids_to_wide -> augment -> impute -> rebuild -> tap30.txt

class DemandImputationPipeline
"""
import logging
from typing import Dict, List, Optional

import pandas as pd

from .cleaning import filter_and_renumber
from .config import (
    CORRUPTED_TIMESTAMPS,
    DEFAULT_CLUSTER_SET,
    GRID_SHAPE,
    HEADER_LINES,
    IMPUTER_CONFIG,
    SENTINEL_VALUE,
    SMOOTHER,
)
from .evaluation import masked_holdout_score
from .features import ClusterSpec, augment, resolve_cluster_specs
from .grid_io import GridSet, read_grid_file
from .imputation import ImputerConfig, RandomForestImputer, run_imputer
from .reshaping import grids_to_wide
from .submission import rebuild, write_submission

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class DemandImputationPipeline:
    """Complete pipeline from the raw grid file to the submission records.

    config keys (all optional):
        corrupted      : raw 1-based timestamps to exclude
        cluster_set    : preset name from CLUSTER_SETS, or a {name: [coords]} mapping
        smoother       : "kalman" | "pchip" | "linear"
        imputer_config : dict of ImputerConfig fields
        sentinel       : value for missing cells of corrupted timestamps
        grid_shape, header_lines, expected_timestamps : input layout

    `imputer` may be any object with ``impute(DataFrame) -> DataFrame``; by
    default a RandomForestImputer built from `imputer_config`.
    """

    def __init__(self, config: Optional[Dict] = None, imputer=None):
        self.config = dict(config or {})
        self.corrupted: List[int] = sorted({int(i) for i in self.config.get("corrupted", CORRUPTED_TIMESTAMPS)})
        self.clusters: List[ClusterSpec] = resolve_cluster_specs(self.config.get("cluster_set", DEFAULT_CLUSTER_SET))
        self.smoother = self.config.get("smoother", SMOOTHER)
        self.sentinel = self.config.get("sentinel", SENTINEL_VALUE)
        if imputer is None:
            imputer = RandomForestImputer(ImputerConfig.from_dict(self.config.get("imputer_config", IMPUTER_CONFIG)))
        self.imputer = imputer

        # tables of the last run, kept for inspection and plotting
        self.raw_grids: Optional[GridSet] = None
        self.clean_grids: Optional[GridSet] = None
        self.features: Optional[pd.DataFrame] = None
        self.imputed: Optional[pd.DataFrame] = None
        self.records: Optional[pd.DataFrame] = None

    def load(self, path: str) -> GridSet:
        return read_grid_file(
            path,
            shape=tuple(self.config.get("grid_shape", GRID_SHAPE)),
            header_lines=self.config.get("header_lines", HEADER_LINES),
            expected_timestamps=self.config.get("expected_timestamps"),
        )

    def prepare(self, raw_grids: GridSet) -> pd.DataFrame:
        """Filter corrupted hours and build the augmented wide table handed to the imputer."""
        self.raw_grids = raw_grids
        self.clean_grids = filter_and_renumber(raw_grids, self.corrupted)
        wide = grids_to_wide(self.clean_grids, with_calendar=True)
        logger.info(f"Clean wide table: {wide.shape[0]} rows x {wide.shape[1]} columns, "
                    f"{int(wide.isna().sum().sum()):,} missing cells")
        self.features = augment(wide, self.clusters, smoother=self.smoother)
        return self.features

    def run(self, raw_grids: GridSet) -> pd.DataFrame:
        """Run every step on an in-memory raw GridSet and return the submission records."""
        self.prepare(raw_grids)
        return self.finish()

    def finish(self) -> pd.DataFrame:
        """Impute the prepared table and rebuild the submission records."""
        if self.features is None:
            raise RuntimeError("Call prepare() before finish().")
        logger.info("Running imputation...")
        self.imputed = run_imputer(self.imputer, self.features)

        self.records = rebuild(self.imputed, self.raw_grids, self.corrupted, sentinel=self.sentinel)
        return self.records

    def run_file(self, input_path: str, output_path: str) -> pd.DataFrame:
        """Read data.txt, run the pipeline and write tap30.txt only if every step succeeded."""
        raw_grids = self.load(input_path)
        records = self.run(raw_grids)
        write_submission(records, output_path)
        return records

    def evaluate(self, fraction: Optional[float] = None, random_state: Optional[int] = None):
        """Masked hold-out score of the configured imputer on the prepared table."""
        if self.features is None:
            raise RuntimeError("Call prepare() or run() before evaluate().")
        kwargs = {}
        if fraction is not None:
            kwargs["fraction"] = fraction
        if random_state is not None:
            kwargs["random_state"] = random_state
        return masked_holdout_score(self.features, self.imputer, **kwargs)
