"""Tests for the summary of differential expression results."""

import numpy as np
import pandas as pd
import pytest

from data.dataset import LabeledDataset
from pipelines.differential_expression.errors import JoinMismatchError
from pipelines.differential_expression.utils import summarize_results


def _result(features):
    return pd.DataFrame(
        {"log2FoldChange": np.linspace(-1, 1, len(features)), "pvalue": 0.01},
        index=features,
    )


class TestSummarizeResults:
    def test_doubled_means_give_unit_fold_change(self, doubling_dataset):
        result = _result(["g1", "g2", "g3", "g4"])
        summary = summarize_results(result, doubling_dataset, "condition", "ctrl", "trt")

        assert summary["log2fc"].to_numpy() == pytest.approx([1.0] * 4)
        assert summary.loc["g1", "rowmeans.control"] == pytest.approx(2.0)
        assert summary.loc["g1", "rowmeans.treatment"] == pytest.approx(4.0)

    def test_reversed_contrast_gives_negative_fold_change(self, doubling_dataset):
        result = _result(["g1", "g2", "g3", "g4"])
        summary = summarize_results(result, doubling_dataset, "condition", "trt", "ctrl")

        assert summary["log2fc"].to_numpy() == pytest.approx([-1.0] * 4)

    def test_annotation_joined_by_feature_id(self, doubling_dataset):
        result = _result(["g3", "g1", "g4", "g2"])
        summary = summarize_results(result, doubling_dataset, "condition", "ctrl", "trt")

        assert list(summary.index) == ["g3", "g1", "g4", "g2"]
        assert list(summary["symbol"]) == ["CCC", "AAA", "DDD", "BBB"]
        assert summary.loc["g4", "rowmeans.control"] == pytest.approx(110.0)
        pd.testing.assert_series_equal(
            summary["log2FoldChange"], result["log2FoldChange"]
        )

    def test_subset_of_features(self, doubling_dataset):
        summary = summarize_results(
            _result(["g2"]), doubling_dataset, "condition", "ctrl", "trt"
        )
        assert list(summary.index) == ["g2"]
        assert summary.loc["g2", "description"] == "gene b"

    def test_result_columns_not_overwritten(self, doubling_dataset):
        result = _result(["g1", "g2", "g3", "g4"])
        result["symbol"] = "from_result"
        summary = summarize_results(result, doubling_dataset, "condition", "ctrl", "trt")

        assert list(summary.columns).count("symbol") == 1
        assert (summary["symbol"] == "from_result").all()

    def test_missing_feature(self, doubling_dataset):
        result = _result(["g1", "g2", "unknown"])
        with pytest.raises(JoinMismatchError) as excinfo:
            summarize_results(result, doubling_dataset, "condition", "ctrl", "trt")
        assert excinfo.value.missing == ["unknown"]

    def test_input_result_not_modified(self, doubling_dataset):
        result = _result(["g1", "g2", "g3", "g4"])
        columns = list(result.columns)
        summarize_results(result, doubling_dataset, "condition", "ctrl", "trt")
        assert list(result.columns) == columns

    def test_sign_matches_mean_difference(self):
        rng = np.random.default_rng(42)
        values = rng.uniform(0.1, 10, size=(50, 6))
        values[0, 3:] = values[0, :3]  # equal means
        samples = [f"S{i}" for i in range(6)]
        features = [f"f{i}" for i in range(50)]
        dataset = LabeledDataset(
            expr_df=pd.DataFrame(values, index=features, columns=samples),
            sample_annot=pd.DataFrame(
                {"condition": ["a"] * 3 + ["b"] * 3}, index=samples
            ),
        )

        summary = summarize_results(_result(features), dataset, "condition", "a", "b")
        diff = summary["rowmeans.treatment"] - summary["rowmeans.control"]
        assert (np.sign(summary["log2fc"]) == np.sign(diff)).all()

    def test_zero_means_propagate_non_finite_values(self):
        samples = ["a1", "a2", "b1", "b2"]
        dataset = LabeledDataset(
            expr_df=pd.DataFrame(
                [[0.0, 0.0, 0.0, 0.0], [0.0, 0.0, 2.0, 2.0], [2.0, 2.0, 0.0, 0.0]],
                index=["both_zero", "control_zero", "treatment_zero"],
                columns=samples,
            ),
            sample_annot=pd.DataFrame(
                {"condition": ["a", "a", "b", "b"]}, index=samples
            ),
        )

        summary = summarize_results(
            _result(["both_zero", "control_zero", "treatment_zero"]),
            dataset,
            "condition",
            "a",
            "b",
        )
        assert np.isnan(summary.loc["both_zero", "log2fc"])
        assert summary.loc["control_zero", "log2fc"] == np.inf
        assert summary.loc["treatment_zero", "log2fc"] == -np.inf
