"""Robust straight-line regressors behind one small interface.

Scoring code only needs `fit(x, y) -> LinearFit`; the IRLS solver from
statsmodels is the default and Theil-Sen from scipy is a drop-in alternative.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import numpy as np
import statsmodels.api as sm
from scipy.stats import theilslopes

from stagerank.core.types import REGRESSION_METHODS, RegressionSpec

MIN_FIT_SAMPLES = 3


class RegressionFitError(RuntimeError):
    """Raised when a robust fit cannot produce usable coefficients."""


@dataclass(frozen=True)
class LinearFit:
    intercept: float
    slope: float
    fitted: np.ndarray
    residuals: np.ndarray
    converged: bool = True
    n_iter: int | None = None


class RobustRegressor(Protocol):
    name: str

    def fit(self, x: np.ndarray, y: np.ndarray) -> LinearFit: ...


def _paired(x: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    xa = np.asarray(x, dtype=float).ravel()
    ya = np.asarray(y, dtype=float).ravel()
    if xa.size != ya.size:
        raise ValueError("x and y must have the same length.")
    if not (np.isfinite(xa).all() and np.isfinite(ya).all()):
        raise ValueError("x and y must be finite.")
    if xa.size < MIN_FIT_SAMPLES:
        raise RegressionFitError(
            f"need at least {MIN_FIT_SAMPLES} paired samples, got {xa.size}."
        )
    if np.allclose(xa, xa[0]):
        raise RegressionFitError("predictor is constant; slope is not identifiable.")
    return xa, ya


def _finish(xa: np.ndarray, ya: np.ndarray, intercept: float, slope: float, **kwargs) -> LinearFit:
    if not (np.isfinite(intercept) and np.isfinite(slope)):
        raise RegressionFitError("fit produced non-finite coefficients.")
    fitted = intercept + slope * xa
    return LinearFit(
        intercept=float(intercept),
        slope=float(slope),
        fitted=fitted,
        residuals=ya - fitted,
        **kwargs,
    )


def _irls_converged(history: dict, max_iter: int, tol: float) -> bool:
    """False only when IRLS stopped at `max_iter` with the deviance still moving."""
    if int(history.get("iteration", 0)) < max_iter:
        return True
    deviance = [float(d) for d in history.get("deviance", [])]
    return len(deviance) >= 2 and abs(deviance[-1] - deviance[-2]) <= tol


class IRLSRegressor:
    """M-estimation by iteratively reweighted least squares (statsmodels RLM)."""

    _NORMS = {
        "huber": sm.robust.norms.HuberT,
        "bisquare": sm.robust.norms.TukeyBiweight,
    }

    def __init__(self, norm: str = "huber", max_iter: int = 50, tol: float = 1e-8):
        if norm not in self._NORMS:
            raise ValueError(f"Unknown IRLS norm '{norm}'. Expected one of {sorted(self._NORMS)}.")
        if int(max_iter) <= 0:
            raise ValueError("max_iter must be positive.")
        self.name = norm
        self.norm = norm
        self.max_iter = int(max_iter)
        self.tol = float(tol)

    def fit(self, x: np.ndarray, y: np.ndarray) -> LinearFit:
        xa, ya = _paired(x, y)
        exog = sm.add_constant(xa, has_constant="add")
        model = sm.RLM(ya, exog, M=self._NORMS[self.norm]())
        with np.errstate(divide="ignore", invalid="ignore"):
            res = model.fit(maxiter=self.max_iter, tol=self.tol)
        n_iter = int(res.fit_history.get("iteration", 0))
        if not _irls_converged(res.fit_history, self.max_iter, self.tol):
            raise RegressionFitError(
                f"IRLS ({self.norm}) did not converge within {self.max_iter} iterations."
            )
        params = np.asarray(res.params, dtype=float)
        return _finish(xa, ya, params[0], params[1], converged=True, n_iter=n_iter)


class TheilSenRegressor:
    """Median-of-slopes line; no iteration, so it always 'converges'."""

    name = "theilsen"

    def fit(self, x: np.ndarray, y: np.ndarray) -> LinearFit:
        xa, ya = _paired(x, y)
        res = theilslopes(ya, xa, method="joint")
        return _finish(xa, ya, float(res[1]), float(res[0]))


def make_regressor(spec: RegressionSpec | None = None) -> RobustRegressor:
    cfg = spec or RegressionSpec()
    method = str(cfg.method).strip().lower()
    if method not in REGRESSION_METHODS:
        raise ValueError(
            f"Unknown regression method '{cfg.method}'. Expected one of {REGRESSION_METHODS}."
        )
    if method == "theilsen":
        return TheilSenRegressor()
    return IRLSRegressor(norm=method, max_iter=cfg.max_iter, tol=cfg.tol)
