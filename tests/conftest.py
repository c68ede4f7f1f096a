from __future__ import annotations

import logging

import numpy as np
import pandas as pd
import pytest

from stagerank.core.types import (
    ComparisonPair,
    DatasetSpec,
    OrthologSpec,
    ScoreConfig,
    StageSpec,
    StatisticSpec,
    StatRef,
)


def make_synthetic_inputs(n_genes: int = 30, seed: int = 7):
    """Two species (reference `pf`, ortholog-mapped `pb`) with linear cross-species trends."""
    rng = np.random.default_rng(seed)
    keys = [f"PF3D7_{i:04d}" for i in range(n_genes)]
    pb_ids = [f"PBANKA_{i:04d}" for i in range(n_genes)]
    liver = rng.uniform(5.0, 200.0, n_genes)
    blood = rng.uniform(5.0, 200.0, n_genes)

    def _reps(base: np.ndarray, names: list[str]) -> dict[str, np.ndarray]:
        return {n: base * (1.0 + 0.05 * rng.normal(size=base.size)) for n in names}

    pf_liver = pd.DataFrame({"gene_id": keys, **_reps(liver, ["r1", "r2"])})
    pf_blood = pd.DataFrame({"gene_id": keys, **_reps(blood, ["h0", "h8", "h16"])})
    pb_liver = pd.DataFrame(
        {"gene_id": pb_ids, **_reps(3.0 + 0.8 * liver, ["r1", "r2", "r3"])}
    )
    pb_blood = pd.DataFrame({"gene_id": pb_ids, **_reps(2.0 + 1.2 * blood, ["m1", "m2"])})

    # The last two P. berghei genes have no syntenic ortholog.
    orthologs = {
        "pb": pd.DataFrame(
            {
                "native_id": pb_ids[:-2],
                "gene_key": keys[:-2],
                "symbol": [f"SYM{i}" if i % 5 == 0 else None for i in range(n_genes - 2)],
            }
        )
    }
    datasets = {
        "pf_liver": pf_liver,
        "pf_blood": pf_blood,
        "pb_liver": pb_liver,
        "pb_blood": pb_blood,
    }
    return datasets, orthologs


def make_synthetic_config(n_jobs: int = 1) -> ScoreConfig:
    mean = StatisticSpec("mean", "mean")
    return ScoreConfig(
        reference_species="pf",
        datasets=(
            DatasetSpec("pf_liver", "pf", (mean,)),
            DatasetSpec("pf_blood", "pf", (mean, StatisticSpec("cumsum", "cumsum"))),
            DatasetSpec("pb_liver", "pb", (mean,)),
            DatasetSpec("pb_blood", "pb", (mean,)),
        ),
        stages=(
            StageSpec("pf", StatRef("pf_liver", "mean"), StatRef("pf_blood", "mean")),
            StageSpec("pb", StatRef("pb_liver", "mean"), StatRef("pb_blood", "mean")),
        ),
        cumulative=StatRef("pf_blood", "cumsum"),
        comparisons=(
            ComparisonPair("liver_pb_vs_pf", StatRef("pf_liver", "mean"), StatRef("pb_liver", "mean")),
            ComparisonPair("blood_pb_vs_pf", StatRef("pf_blood", "mean"), StatRef("pb_blood", "mean")),
        ),
        orthologs=(OrthologSpec("pb"),),
        n_jobs=n_jobs,
    )


@pytest.fixture
def synthetic_inputs():
    return make_synthetic_inputs()


@pytest.fixture
def synthetic_config():
    return make_synthetic_config()


@pytest.fixture(autouse=True)
def _release_pipeline_logger():
    # Pipeline runs attach handlers bound to this test's captured streams.
    yield
    logger = logging.getLogger("stagerank")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
