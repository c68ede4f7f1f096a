"""Cross-species consistency (F3) from robust-fit residuals over comparison pairs."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Sequence

import numpy as np
import pandas as pd

from stagerank.core.types import GENE_KEY, ComparisonPair, FitResult
from stagerank.core.utils import check_offset
from stagerank.stats.regression import RegressionFitError, RobustRegressor
from stagerank.summarize import summary_values

RESIDUAL_COLUMNS: tuple[str, ...] = (
    "predictor",
    "response",
    "fitted",
    "residual",
    "norm_residual",
)


def join_pair(summaries: pd.DataFrame, pair: ComparisonPair) -> tuple[pd.DataFrame, int]:
    """Inner-join predictor and response summaries by GeneKey.

    Returns `(joined, n_missing)`; `n_missing` counts genes with only one side.
    """
    x = summary_values(summaries, pair.predictor.dataset, pair.predictor.statistic)
    y = summary_values(summaries, pair.response.dataset, pair.response.statistic)
    x = x.dropna()
    y = y.dropna()
    joined = pd.concat([x.rename("predictor"), y.rename("response")], axis=1, join="inner")
    joined = joined.sort_index(kind="mergesort")
    joined.index.name = GENE_KEY
    n_missing = int(x.index.union(y.index).size - joined.shape[0])
    return joined, n_missing


def normalized_residuals(fitted: np.ndarray, response: np.ndarray, offset: float) -> np.ndarray:
    """(response + o) / (fitted + o) - 1, NaN where fitted + o <= 0 or non-finite."""
    off = check_offset(offset)
    fit = np.asarray(fitted, dtype=float) + off
    resp = np.asarray(response, dtype=float) + off
    out = np.full(fit.shape, np.nan, dtype=float)
    ok = np.isfinite(fit) & (fit > 0.0)
    out[ok] = resp[ok] / fit[ok] - 1.0
    out[~np.isfinite(out)] = np.nan
    return out


def fit_comparison(
    pair: ComparisonPair,
    joined: pd.DataFrame,
    regressor: RobustRegressor,
    *,
    offset: float,
) -> FitResult:
    """Fit response ~ predictor and attach normalized residuals per gene."""
    x = joined["predictor"].to_numpy(dtype=float)
    y = joined["response"].to_numpy(dtype=float)
    fit = regressor.fit(x, y)
    norm = normalized_residuals(fit.fitted, y, offset)
    table = pd.DataFrame(
        {
            "predictor": x,
            "response": y,
            "fitted": fit.fitted,
            "residual": fit.residuals,
            "norm_residual": norm,
        },
        index=joined.index.copy(),
    )
    return FitResult(
        pair=pair,
        slope=fit.slope,
        intercept=fit.intercept,
        residuals=table,
        n_undefined=int(np.isnan(norm).sum()),
        converged=fit.converged,
    )


def _failed_fit(pair: ComparisonPair, reason: str) -> FitResult:
    empty = pd.DataFrame(
        columns=list(RESIDUAL_COLUMNS), index=pd.Index([], name=GENE_KEY), dtype=float
    )
    return FitResult(
        pair=pair,
        slope=float("nan"),
        intercept=float("nan"),
        residuals=empty,
        converged=False,
        error=reason,
    )


def _safe_fit(
    pair: ComparisonPair,
    joined: pd.DataFrame,
    regressor: RobustRegressor,
    *,
    offset: float,
    logger: logging.Logger,
) -> FitResult:
    """Fit one pair; expected numerical failures exclude the pair and continue."""
    try:
        return fit_comparison(pair, joined, regressor, offset=offset)
    except (RegressionFitError, ValueError, np.linalg.LinAlgError) as exc:
        logger.warning(
            "Fit skipped: pair=%s n_genes=%s reason=%s",
            pair.label,
            int(joined.shape[0]),
            exc,
        )
        return _failed_fit(pair, str(exc))


def fit_comparisons(
    summaries: pd.DataFrame,
    pairs: Sequence[ComparisonPair],
    regressor: RobustRegressor,
    *,
    offset: float,
    n_jobs: int = 1,
    logger: logging.Logger | None = None,
) -> tuple[tuple[FitResult, ...], dict[str, int]]:
    """Fit every comparison pair.

    Fits are independent and may run on `n_jobs` threads; results come back in
    the configured pair order. Returns `(fits, n_missing_by_pair)`.
    """
    log = logger or logging.getLogger("stagerank")
    labels = [p.label for p in pairs]
    if len(set(labels)) != len(labels):
        raise ValueError(f"Comparison labels must be unique, got {labels}.")

    joined_by_pair = []
    n_missing: dict[str, int] = {}
    for pair in pairs:
        joined, missing = join_pair(summaries, pair)
        joined_by_pair.append(joined)
        n_missing[pair.label] = missing

    workers = max(1, int(n_jobs))
    if workers == 1 or len(pairs) <= 1:
        fits = [
            _safe_fit(pair, joined, regressor, offset=offset, logger=log)
            for pair, joined in zip(pairs, joined_by_pair)
        ]
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(_safe_fit, pair, joined, regressor, offset=offset, logger=log)
                for pair, joined in zip(pairs, joined_by_pair)
            ]
            fits = [f.result() for f in futures]

    for fit in fits:
        if fit.ok:
            log.info(
                "Fit %s: n_genes=%s intercept=%.6g slope=%.6g undefined=%s",
                fit.pair.label,
                int(fit.residuals.shape[0]),
                fit.intercept,
                fit.slope,
                fit.n_undefined,
            )
    return tuple(fits), n_missing


def consistency_factor(fits: Sequence[FitResult]) -> tuple[pd.DataFrame, int]:
    """R = sum of |normalized residual| over the pairs a gene appears in; F3 = 1/|R|.

    Failed pairs and undefined normalizations contribute nothing. Genes with
    R == 0 have no finite F3 and are dropped; their count is returned.
    Returns `(table, n_undefined)` with columns `R`, `n_pairs`, `F3`.
    """
    parts = []
    for fit in fits:
        if not fit.ok:
            continue
        col = fit.residuals["norm_residual"].dropna().abs()
        parts.append(col.rename(fit.pair.label))
    if not parts:
        empty = pd.DataFrame(columns=["R", "n_pairs", "F3"], index=pd.Index([], name=GENE_KEY))
        return empty, 0

    wide = pd.concat(parts, axis=1, join="outer").sort_index(kind="mergesort")
    r = wide.sum(axis=1, skipna=True)
    n_pairs = wide.notna().sum(axis=1).astype(int)
    table = pd.DataFrame({"R": r, "n_pairs": n_pairs})
    table = table.loc[table["n_pairs"] > 0]
    defined = np.isfinite(table["R"].to_numpy()) & (np.abs(table["R"].to_numpy()) > 0.0)
    n_undefined = int((~defined).sum())
    table = table.loc[defined].copy()
    table["F3"] = 1.0 / np.abs(table["R"].to_numpy(dtype=float))
    table.index.name = GENE_KEY
    return table, n_undefined


def long_residual_table(fits: Sequence[FitResult]) -> pd.DataFrame:
    frames = []
    for fit in fits:
        if not fit.ok:
            continue
        part = fit.residuals.reset_index()
        part.insert(1, "pair", fit.pair.label)
        frames.append(part)
    if not frames:
        return pd.DataFrame(columns=[GENE_KEY, "pair", *RESIDUAL_COLUMNS])
    return pd.concat(frames, ignore_index=True)


def fit_summary_table(fits: Sequence[FitResult]) -> pd.DataFrame:
    rows = []
    for fit in fits:
        rows.append(
            {
                "pair": fit.pair.label,
                "predictor": str(fit.pair.predictor),
                "response": str(fit.pair.response),
                "n_genes": int(fit.residuals.shape[0]),
                "intercept": fit.intercept,
                "slope": fit.slope,
                "n_undefined": fit.n_undefined,
                "status": "ok" if fit.ok else "failed",
                "error": fit.error or "",
            }
        )
    return pd.DataFrame(rows)
