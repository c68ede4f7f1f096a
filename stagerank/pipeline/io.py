"""Pipeline I/O, logging, and table helpers."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pandas as pd

from stagerank.core.types import DatasetSpec, OrthologSpec
from stagerank.orthologs import normalize_ortholog_table

_SEPARATORS = {".csv": ",", ".tsv": "\t", ".txt": "\t"}


def ensure_dir(path: str | Path) -> None:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)


def write_json(path: str | Path, payload: dict[str, Any]) -> None:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)


def setup_logger(log_path: Path, logger_name: str) -> logging.Logger:
    ensure_dir(log_path.parent)
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.INFO)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
    fh = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    fh.setFormatter(formatter)
    logger.addHandler(fh)
    sh = logging.StreamHandler()
    sh.setFormatter(formatter)
    logger.addHandler(sh)
    return logger


def resolve_path(path: str | Path, base_dir: Path | None) -> Path:
    p = Path(path)
    if p.is_absolute() or base_dir is None:
        return p
    return base_dir / p


def read_table(path: str | Path) -> pd.DataFrame:
    """Read a delimited table; separator follows the file suffix."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Input table not found: {p}")
    sep = _SEPARATORS.get(p.suffix.lower())
    if sep is None:
        raise ValueError(f"Unsupported table format '{p.suffix}' for {p}. Use .csv, .tsv or .txt.")
    return pd.read_csv(p, sep=sep)


def load_dataset(spec: DatasetSpec, base_dir: Path | None = None) -> pd.DataFrame:
    if spec.path is None:
        raise ValueError(f"Dataset '{spec.name}' has no path configured.")
    table = read_table(resolve_path(spec.path, base_dir))
    if spec.gene_column not in table.columns:
        raise KeyError(f"Dataset '{spec.name}' has no column '{spec.gene_column}'.")
    table[spec.gene_column] = table[spec.gene_column].astype(str)
    return table


def load_ortholog_table(spec: OrthologSpec, base_dir: Path | None = None) -> pd.DataFrame:
    if spec.path is None:
        raise ValueError(f"Ortholog table for '{spec.species}' has no path configured.")
    raw = read_table(resolve_path(spec.path, base_dir))
    return normalize_ortholog_table(
        raw,
        native_column=spec.native_column,
        key_column=spec.key_column,
        symbol_column=spec.symbol_column,
    )


def load_symbols(path: str | Path, base_dir: Path | None = None) -> dict[str, str]:
    """Read a two-column GeneKey -> symbol table (first two columns are used)."""
    table = read_table(resolve_path(path, base_dir))
    if table.shape[1] < 2:
        raise ValueError(f"Symbol table {path} needs a key and a symbol column.")
    table = table.iloc[:, :2].dropna()
    return {str(k).strip(): str(v).strip() for k, v in zip(table.iloc[:, 0], table.iloc[:, 1])}


def write_table(df: pd.DataFrame, path: str | Path) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    sep = _SEPARATORS.get(out.suffix.lower(), "\t")
    df.to_csv(out, sep=sep, index=False)
    return out
