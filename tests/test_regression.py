from __future__ import annotations

import numpy as np
import pytest

from stagerank.core.types import RegressionSpec
from stagerank.stats.regression import (
    IRLSRegressor,
    RegressionFitError,
    TheilSenRegressor,
    _irls_converged,
    make_regressor,
)


def _line_with_outliers(seed: int = 0):
    rng = np.random.default_rng(seed)
    x = np.linspace(1.0, 100.0, 60)
    y = 5.0 + 2.0 * x + rng.normal(scale=1.0, size=x.size)
    y[::12] += 400.0
    return x, y


@pytest.mark.parametrize("regressor", [IRLSRegressor("huber"), IRLSRegressor("bisquare"), TheilSenRegressor()])
def test_robust_fit_recovers_line_despite_outliers(regressor):
    x, y = _line_with_outliers()
    fit = regressor.fit(x, y)
    assert abs(fit.slope - 2.0) < 0.1
    assert abs(fit.intercept - 5.0) < 5.0
    assert np.allclose(fit.fitted, fit.intercept + fit.slope * x)
    assert np.allclose(fit.residuals, y - fit.fitted)


def test_irls_non_convergence_raises():
    x, y = _line_with_outliers()
    with pytest.raises(RegressionFitError, match="did not converge"):
        IRLSRegressor("huber", max_iter=1).fit(x, y)


@pytest.mark.parametrize(
    ("history", "expected"),
    [
        ({"iteration": 3, "deviance": [np.inf, 9.0, 4.0, 3.0]}, True),
        ({"iteration": 5, "deviance": [np.inf, 9.0, 4.0, 3.0, 3.0, 3.0]}, True),
        ({"iteration": 5, "deviance": [np.inf, 9.0, 4.0, 3.0, 2.5, 2.0]}, False),
        ({"iteration": 5, "deviance": [np.inf]}, False),
    ],
)
def test_irls_convergence_on_the_last_allowed_iteration_counts(history, expected):
    assert _irls_converged(history, max_iter=5, tol=1e-8) is expected


def test_degenerate_inputs_raise():
    reg = IRLSRegressor()
    with pytest.raises(RegressionFitError, match="at least"):
        reg.fit(np.array([1.0, 2.0]), np.array([1.0, 2.0]))
    with pytest.raises(RegressionFitError, match="constant"):
        reg.fit(np.ones(5), np.arange(5.0))
    with pytest.raises(ValueError, match="same length"):
        reg.fit(np.arange(4.0), np.arange(5.0))


def test_make_regressor():
    assert isinstance(make_regressor(), IRLSRegressor)
    assert make_regressor(RegressionSpec(method="bisquare")).norm == "bisquare"
    assert isinstance(make_regressor(RegressionSpec(method="theilsen")), TheilSenRegressor)
    with pytest.raises(ValueError, match="Unknown regression method"):
        make_regressor(RegressionSpec(method="ols"))
