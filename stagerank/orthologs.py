"""Ortholog reconciliation: map native per-species gene IDs onto reference GeneKeys."""

from __future__ import annotations

import warnings
from typing import Iterable, Mapping

import pandas as pd

from stagerank.core.types import GENE_KEY, RECORD_COLUMNS

_PAIR_COLUMNS: tuple[str, ...] = ("native_id", GENE_KEY, "symbol")


def _clean_ids(values: pd.Series) -> pd.Series:
    out = values.astype("string").str.strip()
    return out.mask(out == "")


def normalize_ortholog_table(
    table: pd.DataFrame,
    *,
    native_column: str = "native_id",
    key_column: str = "gene_key",
    symbol_column: str | None = None,
) -> pd.DataFrame:
    """Reduce a loader table to `native_id`, `gene_key`, `symbol` string columns.

    Rows without a native ID or without a counterpart are dropped: absence of a
    syntenic ortholog is an expected outcome, not an error.
    """
    for col in (native_column, key_column):
        if col not in table.columns:
            raise KeyError(f"Ortholog table is missing column '{col}'.")
    out = pd.DataFrame(
        {
            "native_id": _clean_ids(table[native_column]),
            GENE_KEY: _clean_ids(table[key_column]),
        }
    )
    if symbol_column is not None and symbol_column in table.columns:
        out["symbol"] = _clean_ids(table[symbol_column])
    else:
        out["symbol"] = pd.Series(pd.NA, index=out.index, dtype="string")
    out = out.dropna(subset=["native_id", GENE_KEY])
    return out.drop_duplicates().reset_index(drop=True)


def _with_symbol(table: pd.DataFrame) -> pd.DataFrame:
    if "symbol" in table.columns:
        return table
    out = table.copy()
    out["symbol"] = pd.Series(pd.NA, index=out.index, dtype="string")
    return out


def chain_orthologs(table: pd.DataFrame, via_table: pd.DataFrame) -> pd.DataFrame:
    """Compose native(X) -> native(Y) with native(Y) -> GeneKey, inner on both hops."""
    hop = _with_symbol(table)[["native_id", GENE_KEY, "symbol"]].rename(
        columns={GENE_KEY: "via_id", "symbol": "own_symbol"}
    )
    ref = _with_symbol(via_table)[["native_id", GENE_KEY, "symbol"]].rename(
        columns={"native_id": "via_id"}
    )
    merged = hop.merge(ref, on="via_id", how="inner", sort=True)
    merged["symbol"] = merged["symbol"].fillna(merged["own_symbol"])
    out = merged[list(_PAIR_COLUMNS)].drop_duplicates()
    return out.sort_values(["native_id", GENE_KEY], kind="mergesort").reset_index(drop=True)


def reference_records(
    species: str,
    gene_ids: Iterable[str],
    symbols: Mapping[str, str] | None = None,
) -> pd.DataFrame:
    """Identity records for the reference species (native ID is the GeneKey)."""
    ids = sorted({str(g).strip() for g in gene_ids if str(g).strip() != ""})
    sym = symbols or {}
    return pd.DataFrame(
        {
            "species": pd.Series([species] * len(ids), dtype="string"),
            "native_id": pd.Series(ids, dtype="string"),
            GENE_KEY: pd.Series(ids, dtype="string"),
            "symbol": pd.Series([sym.get(g, pd.NA) for g in ids], dtype="string"),
        },
        columns=list(RECORD_COLUMNS),
    )


def map_orthologs(tables: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    """Build SpeciesGeneRecord rows from per-species normalized ortholog tables.

    Fan-out (one native ID to several GeneKeys) is kept as distinct records;
    identical duplicate records collapse to one.
    """
    frames = []
    for species in sorted(tables):
        table = tables[species]
        missing = [c for c in ("native_id", GENE_KEY) if c not in table.columns]
        if missing:
            raise KeyError(f"Ortholog table for '{species}' missing columns: {missing}")
        part = _with_symbol(table).dropna(subset=["native_id", GENE_KEY])
        part.insert(0, "species", species)
        frames.append(part[list(RECORD_COLUMNS)])
    if not frames:
        return pd.DataFrame(columns=list(RECORD_COLUMNS))
    records = pd.concat(frames, ignore_index=True).astype("string")
    records = records.drop_duplicates()
    return records.sort_values(
        ["species", "native_id", GENE_KEY], kind="mergesort"
    ).reset_index(drop=True)


def attach_gene_keys(
    table: pd.DataFrame,
    records: pd.DataFrame,
    species: str,
    gene_column: str = "gene_id",
) -> tuple[pd.DataFrame, int]:
    """Re-key a raw dataset by GeneKey.

    Returns `(keyed, n_unmapped)` where `keyed` is indexed by GeneKey and holds
    the sample columns only. If several native IDs of one dataset map to the same
    GeneKey, the row of the smallest native ID is kept.
    """
    if gene_column not in table.columns:
        raise KeyError(f"Dataset is missing gene column '{gene_column}'.")
    sp_records = records.loc[records["species"] == species, ["native_id", GENE_KEY]]
    sp_records = sp_records.drop_duplicates()

    raw = table.copy()
    raw[gene_column] = _clean_ids(raw[gene_column])
    raw = raw.dropna(subset=[gene_column])
    native_ids = pd.Index(raw[gene_column].unique())
    n_unmapped = int((~native_ids.isin(sp_records["native_id"])).sum())

    merged = raw.merge(
        sp_records, left_on=gene_column, right_on="native_id", how="inner"
    )
    merged = merged.sort_values([GENE_KEY, "native_id"], kind="mergesort")
    n_before = int(merged.shape[0])
    merged = merged.drop_duplicates(subset=[GENE_KEY], keep="first")
    n_collapsed = n_before - int(merged.shape[0])
    if n_collapsed > 0:
        warnings.warn(
            (
                f"{n_collapsed} rows of species '{species}' share a GeneKey with "
                "another native ID; keeping the smallest native ID per key."
            ),
            RuntimeWarning,
            stacklevel=2,
        )

    drop_cols = {gene_column, "native_id", GENE_KEY}
    sample_cols = [c for c in table.columns if c not in drop_cols]
    keyed = merged.set_index(GENE_KEY)[sample_cols]
    keyed.index = keyed.index.astype(str)
    keyed.index.name = GENE_KEY
    return keyed, n_unmapped


def gene_labels(
    records: pd.DataFrame,
    gene_keys: Iterable[str],
    symbols: Mapping[str, str] | None = None,
) -> pd.Series:
    """Display label per GeneKey: explicit symbol, else record symbol, else the key."""
    keys = pd.Index([str(k) for k in gene_keys], name=GENE_KEY)
    known = records.dropna(subset=["symbol"]).sort_values(
        ["species", "native_id"], kind="mergesort"
    )
    from_records = known.drop_duplicates(subset=[GENE_KEY]).set_index(GENE_KEY)["symbol"]
    labels = pd.Series(keys.to_numpy(dtype=object), index=keys, name="label")
    rec = from_records.reindex(keys)
    labels = labels.where(rec.isna(), rec.astype(object))
    if symbols:
        explicit = pd.Series(dict(symbols), dtype=object).reindex(keys)
        labels = labels.where(explicit.isna(), explicit)
    return labels.astype(str)
