"""File-based scoring pipeline: load tables, score genes, write results."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from stagerank._version import __version__
from stagerank.composite import score_genes
from stagerank.config import load_json_config, parse_score_config
from stagerank.core.types import ScoreConfig, ScoringResult
from stagerank.pipeline.io import (
    ensure_dir,
    load_dataset,
    load_ortholog_table,
    load_symbols,
    setup_logger,
    write_json,
    write_table,
)
from stagerank.residuals import fit_summary_table


def _write_figures(
    result: ScoringResult,
    figures_dir: Path,
    *,
    top_k: int,
    logger: logging.Logger,
) -> list[str]:
    import matplotlib

    matplotlib.use("Agg")

    from stagerank.plotting.fits import plot_comparison_fit_to_file, plot_score_ranking_to_file
    from stagerank.plotting.styles import apply_plot_style, plot_style_dict
    from stagerank.plotting.utils import sanitize_label

    apply_plot_style()
    ensure_dir(figures_dir)
    written: list[str] = []
    for fit in result.fits:
        if not fit.ok:
            continue
        out_png = figures_dir / f"fit_{sanitize_label(fit.pair.label)}.png"
        plot_comparison_fit_to_file(fit, out_png)
        written.append(out_png.name)
    if not result.scores.empty:
        out_png = figures_dir / "score_ranking.png"
        plot_score_ranking_to_file(result.scores, out_png, top_k=top_k)
        written.append(out_png.name)
    write_json(figures_dir / "plot_style.json", plot_style_dict())
    logger.info("Figures written: n=%s dir=%s", len(written), figures_dir.as_posix())
    return written


def write_results(result: ScoringResult, results_dir: Path) -> dict[str, str]:
    ensure_dir(results_dir)
    paths = {
        "scores": write_table(result.scores, results_dir / "scores.tsv"),
        "divergence": write_table(result.divergence, results_dir / "divergence.tsv"),
        "cumulative": write_table(result.cumulative.reset_index(), results_dir / "cumulative.tsv"),
        "residuals": write_table(result.residuals, results_dir / "residuals.tsv"),
        "fits": write_table(fit_summary_table(result.fits), results_dir / "fits.csv"),
    }
    diag_path = results_dir / "diagnostics.json"
    write_json(diag_path, result.diagnostics.to_dict())
    out = {k: v.as_posix() for k, v in paths.items()}
    out["diagnostics"] = diag_path.as_posix()
    return out


def run_scoring(
    config: ScoreConfig,
    *,
    base_dir: Path | None = None,
    logger: logging.Logger | None = None,
) -> ScoringResult:
    """Load every configured table and run `score_genes`."""
    log = logger or logging.getLogger("stagerank")
    datasets = {spec.name: load_dataset(spec, base_dir) for spec in config.datasets}
    orthologs = {spec.species: load_ortholog_table(spec, base_dir) for spec in config.orthologs}
    symbols = load_symbols(config.symbols, base_dir) if config.symbols else None
    log.info(
        "Loaded datasets=%s ortholog_tables=%s",
        sorted(datasets),
        sorted(orthologs),
    )
    return score_genes(datasets, orthologs, config, symbols=symbols, logger=log)


def run_scoring_pipeline(
    config_path: str,
    *,
    outdir: str | None = None,
    skip_plots: bool | None = None,
) -> dict[str, Any]:
    cfg = load_json_config(config_path)
    config = parse_score_config(cfg)
    base_dir = Path(config_path).resolve().parent

    root = Path(outdir or cfg.get("outdir", "results"))
    results_dir = root / "results"
    logs_dir = root / "logs"
    ensure_dir(results_dir)
    logger = setup_logger(logs_dir / "stagerank.log", "stagerank")
    logger.info("stagerank %s: config=%s", __version__, config_path)

    result = run_scoring(config, base_dir=base_dir, logger=logger)
    paths = write_results(result, results_dir)

    no_plots = bool(cfg.get("skip_plots", False)) if skip_plots is None else bool(skip_plots)
    figures: list[str] = []
    if not no_plots:
        figures = _write_figures(
            result,
            root / "figures",
            top_k=int(cfg.get("plot_top_k", 20)),
            logger=logger,
        )
    logger.info("Scoring pipeline complete. Results in %s", results_dir.as_posix())
    return {
        "result": result,
        "paths": paths,
        "figures": figures,
    }
