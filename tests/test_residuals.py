from __future__ import annotations

import logging

import numpy as np
import pandas as pd
import pytest

from stagerank.core.types import ComparisonPair, FitResult, StatRef
from stagerank.residuals import (
    consistency_factor,
    fit_comparisons,
    fit_summary_table,
    join_pair,
    long_residual_table,
    normalized_residuals,
)
from stagerank.stats.regression import IRLSRegressor, LinearFit, TheilSenRegressor

OFFSET = 0.001


def _summaries(n: int = 25, seed: int = 1) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    keys = [f"G{i:02d}" for i in range(n)]
    x = rng.uniform(10.0, 100.0, n)
    rows = []
    for k, xv in zip(keys, x):
        rows.append((k, "ds_x", "mean", xv))
        rows.append((k, "ds_y", "mean", 4.0 + 1.5 * xv + rng.normal(scale=2.0)))
        rows.append((k, "ds_flat", "mean", 7.0))
    # G99 only in ds_y: missing from the pairs that need ds_x.
    rows.append(("G99", "ds_y", "mean", 50.0))
    return pd.DataFrame(rows, columns=["gene_key", "dataset", "statistic", "value"])


PAIR_XY = ComparisonPair("x_to_y", StatRef("ds_x", "mean"), StatRef("ds_y", "mean"))
PAIR_FLAT = ComparisonPair("flat_to_y", StatRef("ds_flat", "mean"), StatRef("ds_y", "mean"))


def _fit(label: str, norm: dict[str, float]) -> FitResult:
    keys = list(norm)
    table = pd.DataFrame(
        {
            "predictor": np.ones(len(keys)),
            "response": np.ones(len(keys)),
            "fitted": np.ones(len(keys)),
            "residual": np.zeros(len(keys)),
            "norm_residual": [norm[k] for k in keys],
        },
        index=pd.Index(keys, name="gene_key"),
    )
    pair = ComparisonPair(label, StatRef("a", "s"), StatRef("b", "s"))
    return FitResult(pair=pair, slope=1.0, intercept=0.0, residuals=table)


def test_normalized_residuals_with_offset_and_undefined_values():
    fitted = np.array([10.0, 0.0, -OFFSET, -5.0, 4.0])
    response = np.array([12.0, 0.0, 1.0, 1.0, 2.0])
    out = normalized_residuals(fitted, response, OFFSET)
    assert np.isclose(out[0], (12.0 - 10.0) / (10.0 + OFFSET))
    assert out[1] == 0.0
    assert np.isnan(out[2])
    assert np.isnan(out[3])
    assert np.isclose(out[4], -2.0 / (4.0 + OFFSET))


def test_join_pair_is_inner_and_counts_missing():
    joined, n_missing = join_pair(_summaries(), PAIR_XY)
    assert joined.shape[0] == 25
    assert "G99" not in joined.index
    assert n_missing == 1
    assert list(joined.columns) == ["predictor", "response"]


def test_f3_inversion_is_monotonic():
    table, n_undefined = consistency_factor(
        [_fit("p1", {"GA": 0.05, "GB": -4.0}), _fit("p2", {"GA": -0.05, "GB": 6.0})]
    )
    assert n_undefined == 0
    assert np.isclose(table.loc["GA", "R"], 0.1)
    assert np.isclose(table.loc["GB", "R"], 10.0)
    assert table.loc["GA", "F3"] > table.loc["GB", "F3"]


def test_absent_genes_do_not_get_zero_filled_terms():
    table, _ = consistency_factor(
        [_fit("p1", {"GA": 0.5, "GB": 0.25}), _fit("p2", {"GA": 0.5, "GB": np.nan})]
    )
    assert table.loc["GA", "n_pairs"] == 2
    assert table.loc["GB", "n_pairs"] == 1
    assert np.isclose(table.loc["GB", "F3"], 4.0)


def test_zero_residual_sum_is_undefined():
    table, n_undefined = consistency_factor([_fit("p1", {"GA": 0.0, "GB": 0.5})])
    assert n_undefined == 1
    assert list(table.index) == ["GB"]


def test_failed_pair_is_excluded_and_reported(caplog):
    caplog.set_level(logging.WARNING)
    fits, n_missing = fit_comparisons(
        _summaries(),
        [PAIR_XY, PAIR_FLAT],
        IRLSRegressor(),
        offset=OFFSET,
        logger=logging.getLogger("test"),
    )
    assert [f.pair.label for f in fits] == ["x_to_y", "flat_to_y"]
    assert fits[0].ok
    assert abs(fits[0].slope - 1.5) < 0.2
    assert not fits[1].ok
    assert "constant" in fits[1].error
    assert fits[1].residuals.empty
    assert "Fit skipped" in caplog.text
    assert "flat_to_y" in caplog.text
    assert n_missing == {"x_to_y": 1, "flat_to_y": 1}

    table, _ = consistency_factor(fits)
    assert table.shape[0] == 25
    assert (table["n_pairs"] == 1).all()

    summary = fit_summary_table(fits)
    assert summary["status"].tolist() == ["ok", "failed"]
    long = long_residual_table(fits)
    assert set(long["pair"]) == {"x_to_y"}


def test_unexpected_regressor_error_propagates():
    class _Broken:
        name = "broken"

        def fit(self, x, y) -> LinearFit:
            raise RuntimeError("unexpected")

    with pytest.raises(RuntimeError, match="unexpected"):
        fit_comparisons(_summaries(), [PAIR_XY], _Broken(), offset=OFFSET)


def test_parallel_fits_match_serial_order_and_values():
    pairs = [
        PAIR_XY,
        ComparisonPair("y_to_x", StatRef("ds_y", "mean"), StatRef("ds_x", "mean")),
        PAIR_FLAT,
    ]
    serial, _ = fit_comparisons(_summaries(), pairs, TheilSenRegressor(), offset=OFFSET, n_jobs=1)
    parallel, _ = fit_comparisons(_summaries(), pairs, TheilSenRegressor(), offset=OFFSET, n_jobs=3)
    assert [f.pair.label for f in parallel] == [p.label for p in pairs]
    for a, b in zip(serial, parallel):
        assert a.ok == b.ok
        if a.ok:
            assert a.slope == b.slope
            pd.testing.assert_frame_equal(a.residuals, b.residuals)


def test_duplicate_pair_labels_rejected():
    with pytest.raises(ValueError, match="unique"):
        fit_comparisons(_summaries(), [PAIR_XY, PAIR_XY], IRLSRegressor(), offset=OFFSET)
