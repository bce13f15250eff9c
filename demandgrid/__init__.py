"""
demandgrid: filling the missing cells of an hourly ride-request grid.
"""

__version__ = "0.1.0"

from demandgrid.cleaning import detect_corrupted, filter_and_renumber
from demandgrid.features import ClusterSpec, augment, resolve_cluster_specs
from demandgrid.grid_io import GridSet, parse_grid_lines, read_grid_file
from demandgrid.imputation import ImputerConfig, RandomForestImputer
from demandgrid.pipeline import DemandImputationPipeline
from demandgrid.reshaping import grids_to_wide, long_to_wide, wide_to_grids, wide_to_long
from demandgrid.submission import rebuild, write_submission

__all__ = [
    "GridSet",
    "parse_grid_lines",
    "read_grid_file",
    "grids_to_wide",
    "wide_to_grids",
    "wide_to_long",
    "long_to_wide",
    "filter_and_renumber",
    "detect_corrupted",
    "ClusterSpec",
    "augment",
    "resolve_cluster_specs",
    "ImputerConfig",
    "RandomForestImputer",
    "rebuild",
    "write_submission",
    "DemandImputationPipeline",
]
