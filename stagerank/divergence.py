"""Rank divergence between liver- and blood-stage expression (F1)."""

from __future__ import annotations

from typing import Mapping

import numpy as np
import pandas as pd
from scipy.stats import rankdata

from stagerank.core.types import GENE_KEY
from stagerank.core.utils import finite_1d, offset_log_ratio

DIVERGENCE_COLUMNS: tuple[str, ...] = (
    "liver_value",
    "blood_value",
    "liver_rank",
    "blood_rank",
    "rank_diff",
    "log_rank_ratio",
    "log2_fc",
)


def average_rank(values: np.ndarray) -> np.ndarray:
    """Ascending ranks, ties sharing the mean of their positions."""
    arr = np.asarray(values, dtype=float).ravel()
    if arr.size == 0:
        return arr.copy()
    return rankdata(finite_1d("ranked values", arr), method="average").astype(float)


def compute_rank_divergence(
    liver: pd.Series,
    blood: pd.Series,
    *,
    offset: float,
) -> pd.DataFrame:
    """Per-species rank divergence over genes holding both stage values."""
    joined = pd.concat(
        [liver.rename("liver_value"), blood.rename("blood_value")], axis=1, join="inner"
    )
    joined = joined.dropna()
    joined.index = joined.index.astype(str)
    joined = joined.sort_index(kind="mergesort")
    joined.index.name = GENE_KEY

    liver_rank = average_rank(joined["liver_value"].to_numpy())
    blood_rank = average_rank(joined["blood_value"].to_numpy())
    joined["liver_rank"] = liver_rank
    joined["blood_rank"] = blood_rank
    joined["rank_diff"] = np.abs(liver_rank - blood_rank)
    joined["log_rank_ratio"] = offset_log_ratio(liver_rank, blood_rank, offset, base=2.0)
    joined["log2_fc"] = offset_log_ratio(
        joined["liver_value"].to_numpy(), joined["blood_value"].to_numpy(), offset, base=2.0
    )
    return joined[list(DIVERGENCE_COLUMNS)]


def combine_divergence(per_species: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    """Sum LogRankRatio x RankDiff across species into the signed F1.

    Only genes present in every species' table receive an F1. The returned
    frame is GeneKey-indexed, sorted, with one `<species>_term` column per
    species followed by `F1`.
    """
    if not per_species:
        raise ValueError("At least one species divergence table is required.")
    terms = []
    for species in sorted(per_species):
        table = per_species[species]
        term = (table["log_rank_ratio"] * table["rank_diff"]).rename(f"{species}_term")
        terms.append(term)
    combined = pd.concat(terms, axis=1, join="inner")
    combined = combined.sort_index(kind="mergesort")
    combined.index.name = GENE_KEY
    # Fixed species order keeps the floating-point sum reproducible.
    combined["F1"] = combined.sum(axis=1)
    return combined


def long_divergence_table(per_species: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    frames = []
    for species in sorted(per_species):
        part = per_species[species].reset_index()
        part.insert(1, "species", species)
        frames.append(part)
    if not frames:
        return pd.DataFrame(columns=[GENE_KEY, "species", *DIVERGENCE_COLUMNS])
    return pd.concat(frames, ignore_index=True)
