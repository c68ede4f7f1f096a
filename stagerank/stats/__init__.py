"""Statistical utilities for stagerank."""

from stagerank.stats.regression import (
    IRLSRegressor,
    LinearFit,
    RegressionFitError,
    RobustRegressor,
    TheilSenRegressor,
    make_regressor,
)

__all__ = [
    "IRLSRegressor",
    "LinearFit",
    "RegressionFitError",
    "RobustRegressor",
    "TheilSenRegressor",
    "make_regressor",
]
