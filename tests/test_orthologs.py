from __future__ import annotations

import pandas as pd
import pytest

from stagerank.orthologs import (
    attach_gene_keys,
    chain_orthologs,
    gene_labels,
    map_orthologs,
    normalize_ortholog_table,
    reference_records,
)


def test_normalize_drops_rows_without_counterpart():
    raw = pd.DataFrame(
        {
            "pb_id": ["PB1", "PB2", "PB3", " PB4 ", None],
            "pf_id": ["PF1", None, "", "PF4", "PF5"],
        }
    )
    out = normalize_ortholog_table(raw, native_column="pb_id", key_column="pf_id")
    assert list(out["native_id"]) == ["PB1", "PB4"]
    assert list(out["gene_key"]) == ["PF1", "PF4"]
    assert out["symbol"].isna().all()


def test_normalize_missing_column_raises():
    with pytest.raises(KeyError, match="pf_id"):
        normalize_ortholog_table(pd.DataFrame({"pb_id": ["PB1"]}), native_column="pb_id", key_column="pf_id")


def test_map_orthologs_is_inner_and_deduplicating():
    table = pd.DataFrame(
        {
            "native_id": ["PB1", "PB1", "PB2", "PB3", None],
            "gene_key": ["PF1", "PF1", "PF2", None, "PF9"],
        }
    )
    records = map_orthologs({"pb": table})
    assert list(records.columns) == ["species", "native_id", "gene_key", "symbol"]
    assert records.shape[0] == 2
    assert "PB3" not in set(records["native_id"])
    assert "PF9" not in set(records["gene_key"])


def test_map_orthologs_keeps_fan_out():
    table = pd.DataFrame({"native_id": ["PV1", "PV1"], "gene_key": ["PF1", "PF2"]})
    records = map_orthologs({"pv": table})
    assert records.shape[0] == 2
    assert set(records["gene_key"]) == {"PF1", "PF2"}


def test_chain_orthologs_composes_both_hops():
    pv_to_pb = pd.DataFrame(
        {"native_id": ["PV1", "PV2", "PV3"], "gene_key": ["PB1", "PB2", "PBX"], "symbol": [None, None, None]}
    )
    pb_to_pf = pd.DataFrame(
        {"native_id": ["PB1", "PB2"], "gene_key": ["PF1", "PF2"], "symbol": ["AMA1", None]}
    )
    chained = chain_orthologs(pv_to_pb, pb_to_pf)
    assert list(chained["native_id"]) == ["PV1", "PV2"]
    assert list(chained["gene_key"]) == ["PF1", "PF2"]
    assert chained["symbol"].iloc[0] == "AMA1"


def test_chain_orthologs_without_symbol_columns():
    pv_to_pb = pd.DataFrame({"native_id": ["PV1", "PV2"], "gene_key": ["PB1", "PB2"]})
    pb_to_pf = pd.DataFrame({"native_id": ["PB1", "PB2"], "gene_key": ["PF1", "PF2"]})
    chained = chain_orthologs(pv_to_pb, pb_to_pf)
    assert list(chained.columns) == ["native_id", "gene_key", "symbol"]
    assert list(chained["gene_key"]) == ["PF1", "PF2"]
    assert chained["symbol"].isna().all()


def test_attach_gene_keys_inner_join_and_unmapped_count():
    records = map_orthologs(
        {"pb": pd.DataFrame({"native_id": ["PB1", "PB2"], "gene_key": ["PF1", "PF2"]})}
    )
    raw = pd.DataFrame({"gene_id": ["PB2", "PB1", "PB9"], "r1": [2.0, 1.0, 9.0]})
    keyed, n_unmapped = attach_gene_keys(raw, records, "pb", "gene_id")
    assert n_unmapped == 1
    assert list(keyed.index) == ["PF1", "PF2"]
    assert list(keyed.columns) == ["r1"]
    assert list(keyed["r1"]) == [1.0, 2.0]


def test_attach_gene_keys_collapses_many_to_one_with_warning():
    records = map_orthologs(
        {"pb": pd.DataFrame({"native_id": ["PB1", "PB2"], "gene_key": ["PF1", "PF1"]})}
    )
    raw = pd.DataFrame({"gene_id": ["PB2", "PB1"], "r1": [2.0, 1.0]})
    with pytest.warns(RuntimeWarning, match="smallest native ID"):
        keyed, _ = attach_gene_keys(raw, records, "pb", "gene_id")
    assert keyed.shape[0] == 1
    assert keyed.loc["PF1", "r1"] == 1.0


def test_reference_records_and_labels():
    ref = reference_records("pf", ["PF2", "PF1", "PF1", ""], symbols={"PF1": "CSP"})
    assert list(ref["native_id"]) == ["PF1", "PF2"]
    assert (ref["native_id"] == ref["gene_key"]).all()

    others = pd.DataFrame({"native_id": ["PB2"], "gene_key": ["PF2"], "symbol": ["TRAP"]})
    records = map_orthologs({"pf": ref.drop(columns=["species"]), "pb": others})
    labels = gene_labels(records, ["PF1", "PF2", "PF3"])
    assert labels.to_dict() == {"PF1": "CSP", "PF2": "TRAP", "PF3": "PF3"}

    explicit = gene_labels(records, ["PF2"], symbols={"PF2": "SSP2"})
    assert explicit["PF2"] == "SSP2"
