"""Tests for the selection of control and treatment samples."""

import pandas as pd
import pytest

from pipelines.differential_expression.errors import (
    ColumnNotFoundError,
    LabelNotFoundError,
)
from pipelines.differential_expression.utils import select_groups


class TestSelectGroups:
    def test_keeps_only_both_groups(self, doubling_dataset):
        reduced, groups = select_groups(doubling_dataset, "condition", "ctrl", "trt")

        classes = doubling_dataset.sample_annot["condition"]
        assert reduced.n_samples == classes.isin(["ctrl", "trt"]).sum()
        assert reduced.n_features == doubling_dataset.n_features
        assert "O1" not in reduced.expr_df.columns

    def test_control_samples_first(self, doubling_dataset):
        reduced, groups = select_groups(doubling_dataset, "condition", "ctrl", "trt")

        assert list(reduced.expr_df.columns) == ["C1", "C2", "C3", "T1", "T2", "T3"]
        assert list(reduced.sample_annot.index) == list(reduced.expr_df.columns)
        assert list(groups) == ["ctrl"] * 3 + ["trt"] * 3

    def test_group_vector(self, doubling_dataset):
        reduced, groups = select_groups(doubling_dataset, "condition", "trt", "ctrl")

        assert isinstance(groups.dtype, pd.CategoricalDtype)
        assert list(groups.cat.categories) == ["trt", "ctrl"]
        assert groups.index.equals(reduced.expr_df.columns)
        assert list(reduced.expr_df.columns) == ["T1", "T2", "T3", "C1", "C2", "C3"]

    def test_numeric_labels(self, doubling_dataset):
        reduced, groups = select_groups(doubling_dataset, "batch", 1, 3)
        assert list(reduced.expr_df.columns) == ["T1", "C1", "O1", "T3", "C3"]
        assert list(groups.cat.categories) == [1, 3]

    def test_input_not_modified(self, doubling_dataset):
        expr_before = doubling_dataset.expr_df.copy()
        reduced, _ = select_groups(doubling_dataset, "condition", "ctrl", "trt")
        reduced.expr_df.iloc[0, 0] = -100.0

        pd.testing.assert_frame_equal(doubling_dataset.expr_df, expr_before)

    def test_missing_column(self, doubling_dataset):
        with pytest.raises(ColumnNotFoundError):
            select_groups(doubling_dataset, "tissue", "ctrl", "trt")

    @pytest.mark.parametrize(
        "control, treatment", [("ctrl", "missing"), ("missing", "trt")]
    )
    def test_missing_label(self, doubling_dataset, control, treatment):
        with pytest.raises(LabelNotFoundError) as excinfo:
            select_groups(doubling_dataset, "condition", control, treatment)
        assert excinfo.value.label == "missing"

    def test_same_labels(self, doubling_dataset):
        with pytest.raises(ValueError):
            select_groups(doubling_dataset, "condition", "ctrl", "ctrl")

    def test_string_labels_on_integer_column(self, doubling_dataset):
        reduced, groups = select_groups(doubling_dataset, "batch", "1", "3")
        assert list(reduced.expr_df.columns) == ["T1", "C1", "O1", "T3", "C3"]
        assert list(groups.cat.categories) == ["1", "3"]

    def test_string_label_not_in_integer_column(self, doubling_dataset):
        with pytest.raises(LabelNotFoundError):
            select_groups(doubling_dataset, "batch", "1", "4")
