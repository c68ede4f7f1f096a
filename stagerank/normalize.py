"""Min-max normalized cumulative blood-stage burden and the F2 factor."""

from __future__ import annotations

import logging
import warnings

import numpy as np
import pandas as pd

from stagerank.core.types import GENE_KEY


def normalize_cumulative(
    cumulative: pd.Series,
    *,
    logger: logging.Logger | None = None,
) -> tuple[pd.DataFrame, int]:
    """log10 and min-max scale cumulative expression.

    Genes whose cumulative value is <= 0 or not finite cannot enter the log;
    they are dropped and returned as a count rather than propagated as NaN.
    Returns `(table, n_degenerate)` with columns `cumulative`, `log_cumul`, `mu`.
    """
    log = logger or logging.getLogger("stagerank")
    values = pd.to_numeric(cumulative, errors="coerce").astype(float)
    values.index = values.index.astype(str)
    valid = np.isfinite(values.to_numpy()) & (values.to_numpy() > 0.0)
    n_degenerate = int((~valid).sum())
    if n_degenerate > 0:
        log.warning(
            "Degenerate cumulative expression: n_genes=%s excluded (value <= 0 or missing)",
            n_degenerate,
        )
    kept = values.loc[valid].sort_index(kind="mergesort")

    log_cumul = np.log10(kept.to_numpy(dtype=float))
    if log_cumul.size == 0:
        mu = log_cumul.copy()
    else:
        lo = float(np.min(log_cumul))
        hi = float(np.max(log_cumul))
        span = hi - lo
        if span > 0.0:
            mu = (log_cumul - lo) / span
        else:
            warnings.warn(
                "Cumulative expression has zero range; mu set to 0 for every gene.",
                RuntimeWarning,
                stacklevel=2,
            )
            mu = np.zeros_like(log_cumul)

    table = pd.DataFrame(
        {"cumulative": kept.to_numpy(dtype=float), "log_cumul": log_cumul, "mu": mu},
        index=pd.Index(kept.index, name=GENE_KEY),
    )
    return table, n_degenerate


def burden_factor(mu: pd.Series, f1: pd.Series) -> pd.Series:
    """F2 = 1 - mu when F1 > 0, mu when F1 < 0, 0 when F1 == 0.

    Only genes present in both inputs are returned.
    """
    joined = pd.concat([mu.rename("mu"), f1.rename("F1")], axis=1, join="inner")
    joined = joined.dropna().sort_index(kind="mergesort")
    sign = np.sign(joined["F1"].to_numpy(dtype=float))
    m = joined["mu"].to_numpy(dtype=float)
    f2 = np.where(sign > 0, 1.0 - m, np.where(sign < 0, m, 0.0))
    out = pd.Series(f2, index=joined.index, name="F2")
    out.index.name = GENE_KEY
    return out
