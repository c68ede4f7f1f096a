"""Per-gene summary statistics over replicate/timepoint columns."""

from __future__ import annotations

import warnings
from typing import Sequence

import numpy as np
import pandas as pd

from stagerank.core.types import GENE_KEY, STATISTIC_KINDS, SUMMARY_COLUMNS, StatisticSpec
from stagerank.core.utils import keyed_series


def geometric_mean(values: np.ndarray) -> float:
    """exp(mean(log(x))); every value must be strictly positive."""
    arr = np.asarray(values, dtype=float).ravel()
    if arr.size == 0:
        raise ValueError("geometric mean of an empty sample is undefined.")
    if not np.isfinite(arr).all():
        raise ValueError("geometric mean requires finite values.")
    if np.any(arr <= 0.0):
        raise ValueError("geometric mean requires all values > 0.")
    return float(np.exp(np.mean(np.log(arr))))


def _resolve_columns(table: pd.DataFrame, spec: StatisticSpec) -> list[str]:
    if spec.columns is None:
        cols = [c for c in table.columns if pd.api.types.is_numeric_dtype(table[c])]
        if not cols:
            raise ValueError(f"Statistic '{spec.name}': table has no numeric columns.")
        return cols
    missing = [c for c in spec.columns if c not in table.columns]
    if missing:
        raise KeyError(f"Statistic '{spec.name}' references unknown columns: {missing}")
    if not spec.columns:
        raise ValueError(f"Statistic '{spec.name}' has an empty column list.")
    return list(spec.columns)


def compute_statistic(
    table: pd.DataFrame,
    spec: StatisticSpec,
    *,
    dataset: str = "",
) -> pd.Series:
    """Compute one statistic per gene row.

    Rows with a missing or non-finite value in any of the statistic's columns
    are excluded from this statistic only. For `geomean`, rows holding a value
    <= 0 are excluded as well and reported with a RuntimeWarning.
    """
    if spec.kind not in STATISTIC_KINDS:
        raise ValueError(
            f"Unknown statistic kind '{spec.kind}'. Expected one of {STATISTIC_KINDS}."
        )
    cols = _resolve_columns(table, spec)
    values = table[cols].apply(pd.to_numeric, errors="coerce").astype(float)
    complete = np.isfinite(values.to_numpy()).all(axis=1)
    values = values.loc[complete]

    if spec.kind == "mean":
        out = values.mean(axis=1)
    elif spec.kind == "max":
        out = values.max(axis=1)
    elif spec.kind == "cumsum":
        # Running total over the ordered columns; the last entry is the cumulative value.
        out = values.cumsum(axis=1).iloc[:, -1]
    else:
        positive = (values > 0.0).all(axis=1)
        n_bad = int((~positive).sum())
        if n_bad > 0:
            warnings.warn(
                (
                    f"geometric mean '{spec.name}' of dataset '{dataset}': "
                    f"{n_bad} rows contain values <= 0 and were excluded."
                ),
                RuntimeWarning,
                stacklevel=2,
            )
        values = values.loc[positive]
        out = np.exp(np.log(values).mean(axis=1))

    return keyed_series(out.astype(float), spec.name)


def summarize_expression(
    table: pd.DataFrame,
    dataset: str,
    statistics: Sequence[StatisticSpec],
) -> pd.DataFrame:
    """Long-form summaries: one row per (gene, dataset, statistic)."""
    names = [s.name for s in statistics]
    if len(set(names)) != len(names):
        raise ValueError(f"Duplicate statistic names for dataset '{dataset}': {names}")
    frames = []
    for spec in statistics:
        col = compute_statistic(table, spec, dataset=dataset)
        frames.append(
            pd.DataFrame(
                {
                    GENE_KEY: col.index.to_numpy(dtype=object),
                    "dataset": dataset,
                    "statistic": spec.name,
                    "value": col.to_numpy(dtype=float),
                }
            )
        )
    if not frames:
        return pd.DataFrame(columns=list(SUMMARY_COLUMNS))
    return pd.concat(frames, ignore_index=True)[list(SUMMARY_COLUMNS)]


def summary_values(summaries: pd.DataFrame, dataset: str, statistic: str) -> pd.Series:
    """Select one (dataset, statistic) summary as a GeneKey-indexed series."""
    mask = (summaries["dataset"] == dataset) & (summaries["statistic"] == statistic)
    sub = summaries.loc[mask]
    values = pd.Series(sub["value"].to_numpy(dtype=float), index=sub[GENE_KEY].to_numpy())
    return keyed_series(values, f"{dataset}:{statistic}")
