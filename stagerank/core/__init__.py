"""Core types and helpers."""

from stagerank.core.types import (
    ComparisonPair,
    DatasetSpec,
    Diagnostics,
    FitResult,
    OrthologSpec,
    RegressionSpec,
    ScoreConfig,
    ScoringResult,
    StageSpec,
    StatisticSpec,
    StatRef,
)
from stagerank.core.utils import offset_log_ratio, offset_ratio

__all__ = [
    "ComparisonPair",
    "DatasetSpec",
    "Diagnostics",
    "FitResult",
    "OrthologSpec",
    "RegressionSpec",
    "ScoreConfig",
    "ScoringResult",
    "StageSpec",
    "StatisticSpec",
    "StatRef",
    "offset_log_ratio",
    "offset_ratio",
]
