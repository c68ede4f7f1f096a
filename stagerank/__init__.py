"""stagerank public API."""

from stagerank._version import __version__
from stagerank.composite import composite_scores, score_genes
from stagerank.config import ConfigError, load_json_config, parse_score_config
from stagerank.divergence import combine_divergence, compute_rank_divergence
from stagerank.normalize import burden_factor, normalize_cumulative
from stagerank.orthologs import attach_gene_keys, map_orthologs
from stagerank.residuals import consistency_factor, fit_comparisons
from stagerank.summarize import summarize_expression


def run_scoring_pipeline(*args, **kwargs):
    """Lazy wrapper to avoid importing plotting dependencies at import time."""
    from stagerank.pipeline.run import run_scoring_pipeline as _run_scoring_pipeline

    return _run_scoring_pipeline(*args, **kwargs)


__all__ = [
    "__version__",
    "ConfigError",
    "attach_gene_keys",
    "burden_factor",
    "combine_divergence",
    "composite_scores",
    "compute_rank_divergence",
    "consistency_factor",
    "fit_comparisons",
    "load_json_config",
    "map_orthologs",
    "normalize_cumulative",
    "parse_score_config",
    "run_scoring_pipeline",
    "score_genes",
    "summarize_expression",
]
