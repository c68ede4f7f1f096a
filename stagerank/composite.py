"""Composite score F1 * F2 * F3 and the end-to-end scoring core."""

from __future__ import annotations

import logging
from typing import Mapping

import numpy as np
import pandas as pd

from stagerank.config import ConfigError
from stagerank.core.types import (
    GENE_KEY,
    Diagnostics,
    OrthologSpec,
    ScoreConfig,
    ScoringResult,
)
from stagerank.divergence import combine_divergence, compute_rank_divergence, long_divergence_table
from stagerank.normalize import burden_factor, normalize_cumulative
from stagerank.orthologs import (
    attach_gene_keys,
    chain_orthologs,
    gene_labels,
    map_orthologs,
    reference_records,
)
from stagerank.residuals import consistency_factor, fit_comparisons, long_residual_table
from stagerank.stats.regression import RobustRegressor, make_regressor
from stagerank.summarize import summarize_expression, summary_values

SCORE_COLUMNS: tuple[str, ...] = (GENE_KEY, "label", "F1", "F2", "F3", "score", "rank")


def composite_scores(
    f1: pd.Series,
    f2: pd.Series,
    f3: pd.Series,
    labels: pd.Series | None = None,
) -> pd.DataFrame:
    """Score = F1 * F2 * F3 for genes holding all three factors, best first.

    The join is done on sorted GeneKeys so equal scores keep key order.
    """
    joined = pd.concat(
        [f1.rename("F1"), f2.rename("F2"), f3.rename("F3")], axis=1, join="inner"
    )
    joined = joined.dropna()
    joined.index = joined.index.astype(str)
    joined = joined.loc[~joined.index.duplicated(keep="first")]
    joined = joined.sort_index(kind="mergesort")
    joined["score"] = joined["F1"] * joined["F2"] * joined["F3"]
    if labels is None:
        joined["label"] = joined.index.to_numpy(dtype=object)
    else:
        lab = labels.reindex(joined.index)
        joined["label"] = lab.where(lab.notna(), pd.Series(joined.index, index=joined.index))
    out = joined.sort_values("score", ascending=False, kind="mergesort")
    out.index.name = GENE_KEY
    out = out.reset_index()
    out["rank"] = np.arange(1, out.shape[0] + 1, dtype=int)
    return out[list(SCORE_COLUMNS)]


def _resolve_ortholog_tables(
    specs: tuple[OrthologSpec, ...],
    tables: Mapping[str, pd.DataFrame],
) -> dict[str, pd.DataFrame]:
    by_species = {s.species: s for s in specs}
    resolved: dict[str, pd.DataFrame] = {}

    def _resolve(species: str, seen: tuple[str, ...]) -> pd.DataFrame:
        if species in resolved:
            return resolved[species]
        if species in seen:
            raise ConfigError(f"Ortholog chain is cyclic: {' -> '.join(seen + (species,))}")
        if species not in tables:
            raise ConfigError(f"No ortholog table supplied for species '{species}'.")
        spec = by_species.get(species)
        table = tables[species]
        if spec is not None and spec.via is not None:
            table = chain_orthologs(table, _resolve(spec.via, seen + (species,)))
        resolved[species] = table
        return table

    for species in sorted(tables):
        _resolve(species, ())
    return resolved


def score_genes(
    datasets: Mapping[str, pd.DataFrame],
    ortholog_tables: Mapping[str, pd.DataFrame],
    config: ScoreConfig,
    *,
    regressor: RobustRegressor | None = None,
    symbols: Mapping[str, str] | None = None,
    logger: logging.Logger | None = None,
) -> ScoringResult:
    """Run the full scoring core over in-memory tables.

    `datasets` maps dataset name to a raw row-per-gene table holding the
    configured gene column and numeric sample columns. `ortholog_tables` maps
    species to tables with `native_id`, `gene_key` and optional `symbol`
    columns (see `normalize_ortholog_table`). Per-gene and per-pair problems are
    counted in the returned diagnostics; only a run with no usable input raises.
    """
    log = logger or logging.getLogger("stagerank")
    ref = config.reference_species

    # Orthologs -> records keyed by GeneKey.
    ref_ids: set[str] = set()
    for spec in config.datasets:
        if spec.species == ref and spec.name in datasets:
            table = datasets[spec.name]
            if spec.gene_column not in table.columns:
                raise KeyError(f"Dataset '{spec.name}' is missing gene column '{spec.gene_column}'.")
            ref_ids.update(table[spec.gene_column].dropna().astype(str))
    identity = reference_records(ref, ref_ids, symbols).drop(columns=["species"])
    tables = dict(_resolve_ortholog_tables(config.orthologs, ortholog_tables))
    tables[ref] = identity
    records = map_orthologs(tables)
    n_records = {
        str(sp): int(n) for sp, n in records.groupby("species", sort=True).size().items()
    }
    log.info("Ortholog records: %s", n_records)

    # Summaries per dataset, keyed by GeneKey.
    keyed_by_dataset = {}
    n_missing_ortholog: dict[str, int] = {}
    for spec in config.datasets:
        if spec.name not in datasets:
            raise ConfigError(f"Dataset '{spec.name}' was configured but not supplied.")
        keyed, n_unmapped = attach_gene_keys(
            datasets[spec.name], records, spec.species, spec.gene_column
        )
        n_missing_ortholog[spec.name] = n_unmapped
        keyed_by_dataset[spec.name] = keyed
        log.info(
            "Dataset %s (%s): n_keyed=%s n_unmapped=%s",
            spec.name,
            spec.species,
            int(keyed.shape[0]),
            n_unmapped,
        )
    if all(k.empty for k in keyed_by_dataset.values()):
        raise ConfigError("No genes survived the ortholog join; check ortholog tables and gene columns.")

    summaries_parts = []
    n_missing_summary: dict[str, int] = {}
    for spec in config.datasets:
        keyed = keyed_by_dataset[spec.name]
        summary = summarize_expression(keyed, spec.name, spec.statistics)
        for stat in spec.statistics:
            n_have = int((summary["statistic"] == stat.name).sum())
            n_missing_summary[f"{spec.name}:{stat.name}"] = int(keyed.shape[0]) - n_have
        summaries_parts.append(summary)
    summaries = pd.concat(summaries_parts, ignore_index=True)

    # F1: rank divergence per species.
    per_species = {}
    for stage in config.stages:
        liver = summary_values(summaries, stage.liver.dataset, stage.liver.statistic)
        blood = summary_values(summaries, stage.blood.dataset, stage.blood.statistic)
        per_species[stage.species] = compute_rank_divergence(liver, blood, offset=config.offset)
    f1_table = combine_divergence(per_species)
    log.info("Rank divergence: species=%s n_genes=%s", sorted(per_species), int(f1_table.shape[0]))

    # F2: normalized cumulative blood burden.
    cumulative = summary_values(
        summaries, config.cumulative.dataset, config.cumulative.statistic
    )
    cumul_table, n_degenerate = normalize_cumulative(cumulative, logger=log)
    f2 = burden_factor(cumul_table["mu"], f1_table["F1"])

    # F3: residual consistency over comparison pairs.
    fitter = regressor or make_regressor(config.regression)
    fits, pair_missing = fit_comparisons(
        summaries,
        config.comparisons,
        fitter,
        offset=config.offset,
        n_jobs=config.n_jobs,
        logger=log,
    )
    for label, n in pair_missing.items():
        n_missing_summary[f"pair:{label}"] = n
    failed = {f.pair.label: str(f.error) for f in fits if not f.ok}
    if failed:
        log.warning("Comparison pairs excluded from F3: %s", sorted(failed))
    f3_table, n_undefined_f3 = consistency_factor(fits)

    candidates = f1_table.index.union(cumul_table.index).union(f3_table.index)
    labels = gene_labels(records, candidates, symbols)
    scores = composite_scores(f1_table["F1"], f2, f3_table["F3"], labels)
    n_not_eligible = int(candidates.size - scores.shape[0])
    log.info("Scored genes: n_scored=%s n_not_eligible=%s", int(scores.shape[0]), n_not_eligible)

    diagnostics = Diagnostics(
        n_records=n_records,
        n_missing_ortholog=n_missing_ortholog,
        n_missing_summary=n_missing_summary,
        n_degenerate_log=n_degenerate,
        n_undefined_normalization={f.pair.label: int(f.n_undefined) for f in fits if f.ok},
        n_undefined_f3=n_undefined_f3,
        failed_pairs=failed,
        n_not_eligible=n_not_eligible,
        n_scored=int(scores.shape[0]),
    )
    return ScoringResult(
        scores=scores,
        records=records,
        summaries=summaries,
        divergence=long_divergence_table(per_species),
        cumulative=cumul_table.join(f1_table["F1"], how="left").join(f2, how="left"),
        fits=fits,
        residuals=long_residual_table(fits),
        diagnostics=diagnostics,
    )
