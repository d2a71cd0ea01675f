"""Pytest fixtures for differential expression tests."""

import numpy as np
import pandas as pd
import pytest

from data.dataset import LabeledDataset


def r_packages_installed(*packages: str) -> bool:
    """Whether rpy2, R and all the given R packages are available."""
    try:
        from rpy2.robjects.packages import isinstalled

        return all(isinstalled(package) for package in packages)
    except Exception:
        return False


requires_limma = pytest.mark.skipif(
    not r_packages_installed("limma"), reason="R package limma not available"
)
requires_deseq2 = pytest.mark.skipif(
    not r_packages_installed("DESeq2"), reason="R package DESeq2 not available"
)
requires_edger = pytest.mark.skipif(
    not r_packages_installed("edgeR"), reason="R package edgeR not available"
)


@pytest.fixture
def doubling_dataset() -> LabeledDataset:
    """4 features x 7 samples: 3 control, 3 treatment (twice the control values)
    and 1 sample of an unrelated group. Groups are interleaved on purpose."""
    control = np.array(
        [
            [1.0, 2.0, 3.0],
            [10.0, 11.0, 12.0],
            [5.0, 5.5, 6.5],
            [100.0, 110.0, 120.0],
        ]
    )
    treatment = 2 * control
    other = np.array([[7.0], [7.0], [7.0], [7.0]])

    samples = ["T1", "C1", "T2", "C2", "O1", "T3", "C3"]
    expr_df = pd.DataFrame(
        np.column_stack(
            [
                treatment[:, 0],
                control[:, 0],
                treatment[:, 1],
                control[:, 1],
                other[:, 0],
                treatment[:, 2],
                control[:, 2],
            ]
        ),
        index=["g1", "g2", "g3", "g4"],
        columns=samples,
    )
    sample_annot = pd.DataFrame(
        {
            "condition": ["trt", "ctrl", "trt", "ctrl", "other", "trt", "ctrl"],
            "batch": [1, 1, 2, 2, 1, 3, 3],
        },
        index=samples,
    )
    feature_annot = pd.DataFrame(
        {
            "symbol": ["AAA", "BBB", "CCC", "DDD"],
            "description": ["gene a", "gene b", "gene c", "gene d"],
        },
        index=["g1", "g2", "g3", "g4"],
    )
    return LabeledDataset(
        expr_df=expr_df, sample_annot=sample_annot, feature_annot=feature_annot
    )


@pytest.fixture
def log_expr_dataset() -> LabeledDataset:
    """200 features x 8 samples of log2 expression, first 20 features up in
    treatment."""
    rng = np.random.default_rng(8080)
    n_features, n_per_group = 200, 4
    base = rng.normal(8, 1, size=(n_features, 1))
    values = base + rng.normal(0, 0.3, size=(n_features, 2 * n_per_group))
    values[:20, n_per_group:] += 3

    samples = [f"S{i}" for i in range(2 * n_per_group)]
    features = [f"gene_{i}" for i in range(n_features)]
    return LabeledDataset(
        expr_df=pd.DataFrame(values, index=features, columns=samples),
        sample_annot=pd.DataFrame(
            {"condition": ["normal"] * n_per_group + ["tumor"] * n_per_group},
            index=samples,
        ),
    )


@pytest.fixture
def counts_dataset() -> LabeledDataset:
    """500 features x 8 samples of negative binomial counts, first 25 features
    up (x8) in treatment, next 25 down (/8)."""
    rng = np.random.default_rng(8080)
    n_features, n_per_group = 500, 4
    means = rng.lognormal(5, 1, size=n_features)
    fold = np.ones(n_features)
    fold[:25] = 8
    fold[25:50] = 1 / 8

    dispersion = 0.1
    mu = np.column_stack(
        [means] * n_per_group + [means * fold] * n_per_group
    )
    counts = rng.negative_binomial(1 / dispersion, 1 / (1 + mu * dispersion))

    samples = [f"S{i}" for i in range(2 * n_per_group)]
    features = [f"gene_{i}" for i in range(n_features)]
    return LabeledDataset(
        expr_df=pd.DataFrame(counts, index=features, columns=samples),
        sample_annot=pd.DataFrame(
            {"condition": ["normal"] * n_per_group + ["tumor"] * n_per_group},
            index=samples,
        ),
    )
