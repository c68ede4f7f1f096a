"""Typed configuration and result containers for stage-divergence scoring."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pandas as pd

STATISTIC_KINDS: tuple[str, ...] = ("mean", "geomean", "max", "cumsum")
REGRESSION_METHODS: tuple[str, ...] = ("huber", "bisquare", "theilsen")

# Column names shared by every keyed table.
GENE_KEY = "gene_key"
RECORD_COLUMNS: tuple[str, ...] = ("species", "native_id", GENE_KEY, "symbol")
SUMMARY_COLUMNS: tuple[str, ...] = (GENE_KEY, "dataset", "statistic", "value")


@dataclass(frozen=True)
class StatisticSpec:
    """One summary statistic computed over a subset of sample columns."""

    name: str
    kind: str = "mean"
    columns: tuple[str, ...] | None = None


@dataclass(frozen=True)
class StatRef:
    """Reference to a (dataset, statistic) summary column."""

    dataset: str
    statistic: str

    def __str__(self) -> str:
        return f"{self.dataset}:{self.statistic}"


@dataclass(frozen=True)
class DatasetSpec:
    name: str
    species: str
    statistics: tuple[StatisticSpec, ...]
    path: str | None = None
    gene_column: str = "gene_id"


@dataclass(frozen=True)
class OrthologSpec:
    """Ortholog table for one species.

    With `via` unset the table maps native IDs straight to reference GeneKeys;
    otherwise it maps to native IDs of the `via` species.
    """

    species: str
    path: str | None = None
    native_column: str = "native_id"
    key_column: str = "gene_key"
    symbol_column: str | None = None
    via: str | None = None


@dataclass(frozen=True)
class StageSpec:
    """Liver and blood summaries used for one species' rank divergence."""

    species: str
    liver: StatRef
    blood: StatRef


@dataclass(frozen=True)
class ComparisonPair:
    label: str
    predictor: StatRef
    response: StatRef


@dataclass(frozen=True)
class RegressionSpec:
    method: str = "huber"
    max_iter: int = 50
    tol: float = 1e-8


@dataclass(frozen=True)
class ScoreConfig:
    """Full configuration surface of the scoring core."""

    reference_species: str
    datasets: tuple[DatasetSpec, ...]
    stages: tuple[StageSpec, ...]
    cumulative: StatRef
    comparisons: tuple[ComparisonPair, ...]
    orthologs: tuple[OrthologSpec, ...] = ()
    offset: float = 0.001
    regression: RegressionSpec = field(default_factory=RegressionSpec)
    n_jobs: int = 1
    symbols: str | None = None

    def dataset(self, name: str) -> DatasetSpec:
        for spec in self.datasets:
            if spec.name == name:
                return spec
        raise KeyError(f"Dataset '{name}' is not configured.")


@dataclass(frozen=True)
class FitResult:
    """Robust fit for one comparison pair.

    `residuals` holds one row per gene that entered the fit with columns
    `predictor`, `response`, `fitted`, `residual` and `norm_residual`
    (NaN where the normalization is undefined). A failed fit carries an
    empty table and the failure reason in `error`.
    """

    pair: ComparisonPair
    slope: float
    intercept: float
    residuals: pd.DataFrame
    n_undefined: int = 0
    converged: bool = True
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Diagnostics:
    """Exclusion counts collected over one scoring run."""

    n_records: dict[str, int]
    n_missing_ortholog: dict[str, int]
    n_missing_summary: dict[str, int]
    n_degenerate_log: int
    n_undefined_normalization: dict[str, int]
    n_undefined_f3: int
    failed_pairs: dict[str, str]
    n_not_eligible: int
    n_scored: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "n_records": dict(self.n_records),
            "n_missing_ortholog": dict(self.n_missing_ortholog),
            "n_missing_summary": dict(self.n_missing_summary),
            "n_degenerate_log": int(self.n_degenerate_log),
            "n_undefined_normalization": dict(self.n_undefined_normalization),
            "n_undefined_f3": int(self.n_undefined_f3),
            "failed_pairs": dict(self.failed_pairs),
            "n_not_eligible": int(self.n_not_eligible),
            "n_scored": int(self.n_scored),
        }


@dataclass(frozen=True)
class ScoringResult:
    """Output of `score_genes`: final scores plus every intermediate table."""

    scores: pd.DataFrame
    records: pd.DataFrame
    summaries: pd.DataFrame
    divergence: pd.DataFrame
    cumulative: pd.DataFrame
    fits: tuple[FitResult, ...]
    residuals: pd.DataFrame
    diagnostics: Diagnostics
