"""Small pure helpers for core computations."""

from __future__ import annotations

import numpy as np
import pandas as pd

from stagerank.core.types import GENE_KEY


def finite_1d(name: str, values: np.ndarray) -> np.ndarray:
    arr = np.asarray(values, dtype=float).ravel()
    if arr.size == 0:
        raise ValueError(f"{name} must be non-empty.")
    if not np.isfinite(arr).all():
        raise ValueError(f"{name} must be finite.")
    return arr


def check_offset(offset: float) -> float:
    off = float(offset)
    if not np.isfinite(off) or off <= 0.0:
        raise ValueError(f"offset must be a positive finite number, got {offset!r}.")
    return off


def offset_ratio(numerator, denominator, offset: float):
    """Return (numerator + offset) / (denominator + offset)."""
    off = check_offset(offset)
    num = np.asarray(numerator, dtype=float) + off
    den = np.asarray(denominator, dtype=float) + off
    with np.errstate(divide="ignore", invalid="ignore"):
        return num / den


def offset_log_ratio(numerator, denominator, offset: float, base: float = 2.0):
    """Log ratio with the offset added to both sides; 0 vs 0 gives exactly 0."""
    ratio = offset_ratio(numerator, denominator, offset)
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.log(ratio) / np.log(float(base))


def keyed_series(values: pd.Series, name: str) -> pd.Series:
    """Sort a GeneKey-indexed series by key and name it."""
    out = values.copy()
    out.index = out.index.astype(str)
    out.index.name = GENE_KEY
    out.name = name
    return out.sort_index(kind="mergesort")
