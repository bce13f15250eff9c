"""
Purpose: Boundary to the statistical estimator that fills the missing cells.

The pipeline only relies on the table contract: a wide table with gaps goes
in, the same table without gaps comes out. RandomForestImputer meets it with
scikit-learn's IterativeImputer driven by a RandomForestRegressor (a
missForest-style chained random-forest imputation over all columns jointly).
Any object with an ``impute(DataFrame) -> DataFrame`` method can stand in.

Content
- ImputerConfig
- RandomForestImputer
- check_imputed() / run_imputer()
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Union

import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestRegressor
from sklearn.experimental import enable_iterative_imputer  # noqa: F401
from sklearn.impute import IterativeImputer

from .config import IMPUTER_CONFIG
from .errors import ExternalEstimatorFailure, PipelineError, ShapeMismatch

logger = logging.getLogger(__name__)


@dataclass
class ImputerConfig:
    n_estimators: int = IMPUTER_CONFIG["n_estimators"]
    # mtry: features tried per split. None -> sqrt(#columns), as missForest
    max_features: Optional[Union[int, float, str]] = IMPUTER_CONFIG["max_features"]
    # spread each forest's trees over all cores
    parallelize: bool = IMPUTER_CONFIG["parallelize"]
    max_iter: int = IMPUTER_CONFIG["max_iter"]
    random_state: Optional[int] = IMPUTER_CONFIG["random_state"]

    @classmethod
    def from_dict(cls, config: Dict) -> "ImputerConfig":
        return cls(**{k: v for k, v in config.items() if k in cls.__dataclass_fields__})


class RandomForestImputer:
    """Chained random-forest imputation over every column of a wide table."""

    def __init__(self, config: Optional[ImputerConfig] = None):
        self.config = config or ImputerConfig()
        self.n_iter_: Optional[int] = None
        self.oob_error_: Dict[str, float] = {}

    def _build(self) -> IterativeImputer:
        cfg = self.config
        forest = RandomForestRegressor(
            n_estimators=cfg.n_estimators,
            max_features=cfg.max_features if cfg.max_features is not None else "sqrt",
            n_jobs=-1 if cfg.parallelize else None,
            oob_score=True,
            random_state=cfg.random_state,
        )
        return IterativeImputer(
            estimator=forest,
            max_iter=cfg.max_iter,
            initial_strategy="mean",
            keep_empty_features=True,
            random_state=cfg.random_state,
        )

    def impute(self, wide: pd.DataFrame) -> pd.DataFrame:
        """Return a copy of `wide` with every missing value estimated."""
        missing = int(wide.isna().sum().sum())
        if missing == 0:
            logger.info("No missing values; imputation skipped")
            return wide.copy()

        logger.info(f"Imputing {missing:,} missing values over a {wide.shape[0]}x{wide.shape[1]} table "
                    f"(trees={self.config.n_estimators}, mtry={self.config.max_features}, "
                    f"parallel={self.config.parallelize})")
        X = np.array(wide, dtype=float)
        imputer = self._build()
        try:
            filled = imputer.fit_transform(X)
        except Exception as exc:
            raise ExternalEstimatorFailure(f"Random-forest imputation failed: {exc}") from exc

        self.n_iter_ = int(imputer.n_iter_)
        if self.n_iter_ >= self.config.max_iter:
            logger.warning(f"Imputer stopped at the iteration limit ({self.config.max_iter}) before converging")
        else:
            logger.info(f"Imputer converged after {self.n_iter_} iterations")
        self.oob_error_ = self._oob_errors(imputer, X, list(wide.columns))

        out = pd.DataFrame(filled, columns=wide.columns, index=wide.index)
        return check_imputed(wide, out)

    @staticmethod
    def _oob_errors(imputer: IterativeImputer, X: np.ndarray, columns) -> Dict[str, float]:
        """Out-of-bag MSE of the last round's forest for each imputed column."""
        n_features = X.shape[1]
        last_round = imputer.imputation_sequence_[-n_features:]
        observed = ~np.isnan(X)
        errors: Dict[str, float] = {}
        for feat_idx, _, estimator in last_round:
            if observed[:, feat_idx].all() or not hasattr(estimator, "oob_prediction_"):
                continue
            y_true = X[observed[:, feat_idx], feat_idx]
            y_oob = np.asarray(estimator.oob_prediction_, dtype=float).reshape(-1)
            if y_oob.shape != y_true.shape:
                continue
            errors[str(columns[feat_idx])] = float(np.nanmean((y_oob - y_true) ** 2))
        return errors


def check_imputed(before: pd.DataFrame, after: pd.DataFrame) -> pd.DataFrame:
    """Enforce the imputation contract on any imputer's output."""
    if after.shape != before.shape or list(after.columns) != list(before.columns):
        raise ShapeMismatch(
            f"Imputer returned shape {after.shape} / columns {list(after.columns)[:5]}..., "
            f"expected {before.shape}."
        )
    remaining = int(after.isna().sum().sum())
    if remaining:
        raise ExternalEstimatorFailure(f"Imputer left {remaining} missing values.")
    return after


def run_imputer(imputer, wide: pd.DataFrame) -> pd.DataFrame:
    """Call any imputer once; its failures surface as ExternalEstimatorFailure."""
    try:
        filled = imputer.impute(wide)
    except PipelineError:
        raise
    except Exception as exc:
        raise ExternalEstimatorFailure(f"Imputer {type(imputer).__name__} failed: {exc}") from exc
    return check_imputed(wide, filled)
