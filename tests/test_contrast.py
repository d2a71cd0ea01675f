"""Tests for contrast and run configuration objects."""

from pathlib import Path

import pytest

from components.contrast import Contrast, DiffExprConfig


class TestContrast:
    def test_label(self):
        contrast = Contrast("sample_type", control="normal", treatment="tumor")
        assert contrast.label == "tumor_vs_normal"

    def test_same_labels_rejected(self):
        with pytest.raises(ValueError):
            Contrast("sample_type", control="normal", treatment="normal")

    def test_from_str(self):
        contrast = Contrast.from_str("sample_type", "met:prim")
        assert contrast.treatment == "met"
        assert contrast.control == "prim"
        assert contrast.class_column == "sample_type"

    def test_label_safe_for_file_names(self):
        contrast = Contrast("sample_type", control="prim/local", treatment="met (bone)")
        assert contrast.label == "met__bone__vs_prim_local"
        assert "/" not in contrast.label

    def test_from_str_malformed(self):
        with pytest.raises(ValueError):
            Contrast.from_str("sample_type", "met-prim")


class TestDiffExprConfig:
    def test_defaults(self):
        config = DiffExprConfig()
        assert config.engine == "limma"
        assert config.p_cols == ["padj"]
        assert config.overwrite is False

    def test_unknown_engine_rejected(self):
        with pytest.raises(ValueError):
            DiffExprConfig(engine="wilcoxon")

    def test_unknown_lfc_level_rejected(self):
        with pytest.raises(ValueError):
            DiffExprConfig(lfc_levels=["sideways"])

    def test_results_file(self, tmp_path: Path):
        config = DiffExprConfig(engine="edger")
        contrast = Contrast("condition", control="ctrl", treatment="trt")
        assert config.results_file(tmp_path, "exp", contrast) == tmp_path.joinpath(
            "exp_trt_vs_ctrl_edger_results.csv"
        )

    def test_run_tag(self):
        assert DiffExprConfig(engine="ttest").run_tag == "ttest"

        tag = DiffExprConfig(engine="ttest", engine_kwargs={"equal_var": True}).run_tag
        assert tag.startswith("ttest_")
        assert tag != DiffExprConfig(
            engine="ttest", engine_kwargs={"equal_var": False}
        ).run_tag

    def test_run_tag_ignores_kwargs_order(self):
        first = DiffExprConfig(engine="limma", engine_kwargs={"trend": True, "robust": True})
        second = DiffExprConfig(engine="limma", engine_kwargs={"robust": True, "trend": True})
        assert first.run_tag == second.run_tag
