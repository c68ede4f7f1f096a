"""Configuration loading utilities for stagerank pipelines."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from stagerank.core.types import (
    REGRESSION_METHODS,
    STATISTIC_KINDS,
    ComparisonPair,
    DatasetSpec,
    OrthologSpec,
    RegressionSpec,
    ScoreConfig,
    StageSpec,
    StatisticSpec,
    StatRef,
)


class ConfigError(ValueError):
    """Invalid scoring configuration or no usable input."""


def load_json_config(path: str | Path) -> dict[str, Any]:
    """Load and validate a pipeline config from a JSON file."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    if config_path.suffix.lower() != ".json":
        raise ValueError(
            f"Unsupported config format for '{config_path}'. Use a .json config file."
        )

    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        raise ValueError(
            f"Invalid JSON in config '{config_path}' at line {exc.lineno}, "
            f"column {exc.colno}: {exc.msg}"
        ) from exc

    if not isinstance(data, dict):
        raise ValueError(
            f"Invalid config root in '{config_path}': expected JSON object, got {type(data).__name__}."
        )
    return data


def _require(cfg: dict[str, Any], key: str, where: str) -> Any:
    if key not in cfg:
        raise ConfigError(f"Config {where} is missing required key '{key}'.")
    return cfg[key]


def _stat_ref(raw: Any, where: str) -> StatRef:
    if isinstance(raw, str) and ":" in raw:
        dataset, statistic = raw.split(":", 1)
        return StatRef(dataset=dataset.strip(), statistic=statistic.strip())
    if isinstance(raw, dict):
        return StatRef(
            dataset=str(_require(raw, "dataset", where)),
            statistic=str(_require(raw, "statistic", where)),
        )
    raise ConfigError(f"{where}: expected 'dataset:statistic' or an object, got {raw!r}.")


def _statistic(raw: dict[str, Any], where: str) -> StatisticSpec:
    kind = str(raw.get("kind", "mean")).strip().lower()
    if kind not in STATISTIC_KINDS:
        raise ConfigError(f"{where}: unknown statistic kind '{kind}'. Expected one of {STATISTIC_KINDS}.")
    cols = raw.get("columns")
    return StatisticSpec(
        name=str(_require(raw, "name", where)),
        kind=kind,
        columns=None if cols is None else tuple(str(c) for c in cols),
    )


def _dataset(name: str, raw: dict[str, Any]) -> DatasetSpec:
    where = f"datasets.{name}"
    stats_raw = _require(raw, "statistics", where)
    if not isinstance(stats_raw, list) or not stats_raw:
        raise ConfigError(f"{where}.statistics must be a non-empty list.")
    stats = tuple(_statistic(s, f"{where}.statistics[{i}]") for i, s in enumerate(stats_raw))
    names = [s.name for s in stats]
    if len(set(names)) != len(names):
        raise ConfigError(f"{where}: duplicate statistic names {names}.")
    return DatasetSpec(
        name=name,
        species=str(_require(raw, "species", where)),
        statistics=stats,
        path=raw.get("path"),
        gene_column=str(raw.get("gene_column", "gene_id")),
    )


def _ortholog(species: str, raw: dict[str, Any]) -> OrthologSpec:
    return OrthologSpec(
        species=species,
        path=raw.get("path"),
        native_column=str(raw.get("native_column", "native_id")),
        key_column=str(raw.get("key_column", "gene_key")),
        symbol_column=raw.get("symbol_column"),
        via=raw.get("via"),
    )


def _check_ref(ref: StatRef, datasets: dict[str, DatasetSpec], where: str) -> None:
    spec = datasets.get(ref.dataset)
    if spec is None:
        raise ConfigError(f"{where}: unknown dataset '{ref.dataset}'.")
    if ref.statistic not in {s.name for s in spec.statistics}:
        raise ConfigError(f"{where}: dataset '{ref.dataset}' has no statistic '{ref.statistic}'.")


def parse_score_config(cfg: dict[str, Any]) -> ScoreConfig:
    """Build and cross-validate a ScoreConfig from a loaded JSON mapping."""
    reference = str(_require(cfg, "reference_species", "root"))

    datasets_raw = _require(cfg, "datasets", "root")
    if not isinstance(datasets_raw, dict) or not datasets_raw:
        raise ConfigError("datasets must be a non-empty object keyed by dataset name.")
    datasets = {name: _dataset(name, raw) for name, raw in datasets_raw.items()}

    orthologs_raw = cfg.get("orthologs", {}) or {}
    orthologs = {sp: _ortholog(sp, raw) for sp, raw in orthologs_raw.items()}
    for spec in orthologs.values():
        if spec.via is not None and spec.via not in orthologs:
            raise ConfigError(f"orthologs.{spec.species}: via species '{spec.via}' has no ortholog table.")
    for spec in datasets.values():
        if spec.species != reference and spec.species not in orthologs:
            raise ConfigError(
                f"datasets.{spec.name}: species '{spec.species}' is not the reference "
                "species and has no ortholog table."
            )

    stages_raw = _require(cfg, "stages", "root")
    if not isinstance(stages_raw, list) or not stages_raw:
        raise ConfigError("stages must be a non-empty list.")
    stages = []
    for i, raw in enumerate(stages_raw):
        where = f"stages[{i}]"
        stage = StageSpec(
            species=str(_require(raw, "species", where)),
            liver=_stat_ref(_require(raw, "liver", where), f"{where}.liver"),
            blood=_stat_ref(_require(raw, "blood", where), f"{where}.blood"),
        )
        _check_ref(stage.liver, datasets, f"{where}.liver")
        _check_ref(stage.blood, datasets, f"{where}.blood")
        stages.append(stage)
    species = [s.species for s in stages]
    if len(set(species)) != len(species):
        raise ConfigError(f"stages: each species may appear once, got {species}.")

    cumulative = _stat_ref(_require(cfg, "cumulative", "root"), "cumulative")
    _check_ref(cumulative, datasets, "cumulative")

    pairs_raw = _require(cfg, "comparisons", "root")
    if not isinstance(pairs_raw, list) or not pairs_raw:
        raise ConfigError("comparisons must be a non-empty list.")
    pairs = []
    for i, raw in enumerate(pairs_raw):
        where = f"comparisons[{i}]"
        pair = ComparisonPair(
            label=str(_require(raw, "label", where)),
            predictor=_stat_ref(_require(raw, "predictor", where), f"{where}.predictor"),
            response=_stat_ref(_require(raw, "response", where), f"{where}.response"),
        )
        _check_ref(pair.predictor, datasets, f"{where}.predictor")
        _check_ref(pair.response, datasets, f"{where}.response")
        pairs.append(pair)
    labels = [p.label for p in pairs]
    if len(set(labels)) != len(labels):
        raise ConfigError(f"comparisons: labels must be unique, got {labels}.")

    reg_raw = cfg.get("regression", {}) or {}
    regression = RegressionSpec(
        method=str(reg_raw.get("method", "huber")).strip().lower(),
        max_iter=int(reg_raw.get("max_iter", 50)),
        tol=float(reg_raw.get("tol", 1e-8)),
    )
    if regression.method not in REGRESSION_METHODS:
        raise ConfigError(
            f"regression.method '{regression.method}' is not one of {REGRESSION_METHODS}."
        )

    offset = float(cfg.get("offset", 0.001))
    if not offset > 0.0:
        raise ConfigError(f"offset must be > 0, got {offset}.")
    n_jobs = int(cfg.get("n_jobs", 1))
    if n_jobs < 1:
        raise ConfigError(f"n_jobs must be >= 1, got {n_jobs}.")

    return ScoreConfig(
        reference_species=reference,
        datasets=tuple(datasets.values()),
        stages=tuple(stages),
        cumulative=cumulative,
        comparisons=tuple(pairs),
        orthologs=tuple(orthologs.values()),
        offset=offset,
        regression=regression,
        n_jobs=n_jobs,
        symbols=cfg.get("symbols"),
    )
