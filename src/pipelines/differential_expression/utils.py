"""
Utilities for two-group differential expression analysis.

This module compares two groups of samples of a labeled dataset with one of
several statistical engines (see `engines`). It supports:

1. Selecting the samples of a control and a treatment group, control first,
   so that every engine tests the treatment - control contrast.

2. Running one engine on the selected samples:
   - limma (moderated t-test on log-expression values)
   - DESeq2 (negative binomial GLM on raw counts)
   - edgeR (exact test on raw counts)
   - ordinary two-sample t-test (log-expression values)

3. Post-processing results:
   - Re-attaching features annotation and per-group mean expression
   - Filtering by significance and fold change thresholds
   - Comparing engines side by side
   - Saving results for downstream analyses
"""

import logging
from collections import defaultdict
from itertools import product
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from components.contrast import Contrast, DiffExprConfig
from data.dataset import LabeledDataset
from pipelines.differential_expression.engines import get_engine
from pipelines.differential_expression.errors import (
    ColumnNotFoundError,
    JoinMismatchError,
    LabelNotFoundError,
)

logger = logging.getLogger(__name__)


def select_groups(
    dataset: LabeledDataset, class_column: str, control: Any, treatment: Any
) -> Tuple[LabeledDataset, pd.Series]:
    """
    Keep only the samples of the control and treatment groups.

    Control samples come first, followed by treatment samples, each in their
    original relative order. String labels are matched against the string
    representation of class_column values, so "1" selects the samples of an
    integer column whose value is 1.

    Args:
        dataset: Dataset to select samples from.
        class_column: Samples annotation column holding the group labels.
        control: Label of the control (baseline) group.
        treatment: Label of the treatment group.

    Returns:
        Tuple[LabeledDataset, pd.Series]: A tuple containing:
            - the reduced dataset, a copy of the input one
            - the group of each sample of the reduced dataset, as a categorical
              series with categories [control, treatment], indexed by sample ID

    Raises:
        ColumnNotFoundError: If class_column is not a samples annotation column.
        LabelNotFoundError: If any label does not occur in class_column.
        ValueError: If control and treatment are the same label.
    """
    # 0. Check arguments
    if class_column not in dataset.sample_annot.columns:
        raise ColumnNotFoundError(class_column, dataset.sample_annot.columns)
    if control == treatment:
        raise ValueError(f'Control and treatment labels must differ, got "{control}".')

    # 1. Sample IDs of each group, string labels also match non-string columns
    # (e.g. "1" for integer codes read from a table)
    classes = dataset.sample_annot[class_column]
    classes_str = classes.astype(str)

    def _is_label(label: Any) -> np.ndarray:
        if isinstance(label, str):
            return (classes_str == label).to_numpy()
        return (classes == label).to_numpy()

    control_ids = classes.index[_is_label(control)]
    treatment_ids = classes.index[_is_label(treatment)]
    for label, ids in ((control, control_ids), (treatment, treatment_ids)):
        if len(ids) == 0:
            raise LabelNotFoundError(label, class_column)

    # 2. Reduced dataset, control samples first
    dataset_compare = dataset.subset_samples(control_ids.append(treatment_ids))

    # 3. Group vector, levels fixed to (control, treatment)
    groups = pd.Series(
        pd.Categorical(
            [control] * len(control_ids) + [treatment] * len(treatment_ids),
            categories=[control, treatment],
        ),
        index=dataset_compare.expr_df.columns,
        name=class_column,
    )

    return dataset_compare, groups


def run_engine(
    dataset: LabeledDataset,
    class_column: str,
    control: Any,
    treatment: Any,
    engine: str = "limma",
    **engine_kwargs: Any,
) -> pd.DataFrame:
    """
    Test differential expression between two groups of samples.

    Args:
        dataset: Dataset containing (at least) the samples of both groups.
        class_column: Samples annotation column holding the group labels.
        control: Label of the control (baseline) group.
        treatment: Label of the treatment group.
        engine: Name of the statistical engine, one of "limma", "deseq2",
            "edger" or "ttest".
        **engine_kwargs: Additional arguments for the engine fit.

    Returns:
        pd.DataFrame: One row per feature of dataset, in the same order, with
            at least the columns log2FoldChange, pvalue and padj.

    Raises:
        ColumnNotFoundError, LabelNotFoundError: On invalid group definitions.
        EngineFitError: If the engine could not fit the model.
    """
    dataset_compare, groups = select_groups(dataset, class_column, control, treatment)
    return get_engine(engine).fit(dataset_compare.expr_df, groups, **engine_kwargs)


def run_limma(
    dataset: LabeledDataset, class_column: str, control: Any, treatment: Any, **kwargs
) -> pd.DataFrame:
    """
    Moderated t-test (limma). Assumes log2 normalized expression values.

    Extra columns: stat (moderated t), AveExpr, B.
    """
    return run_engine(dataset, class_column, control, treatment, "limma", **kwargs)


def run_deseq(
    dataset: LabeledDataset, class_column: str, control: Any, treatment: Any, **kwargs
) -> pd.DataFrame:
    """
    Negative binomial GLM and Wald test (DESeq2). Assumes raw counts.

    Extra columns: baseMean, lfcSE, stat (Wald), dispersion.
    """
    return run_engine(dataset, class_column, control, treatment, "deseq2", **kwargs)


def run_edger(
    dataset: LabeledDataset, class_column: str, control: Any, treatment: Any, **kwargs
) -> pd.DataFrame:
    """
    Exact test (edgeR). Assumes raw counts.

    Extra columns: logCPM, dispersion (tagwise).
    """
    return run_engine(dataset, class_column, control, treatment, "edger", **kwargs)


def run_ttest(
    dataset: LabeledDataset, class_column: str, control: Any, treatment: Any, **kwargs
) -> pd.DataFrame:
    """
    Ordinary two-sample t-test per feature. Assumes log2 expression values.

    Extra columns: stat (t statistic).
    """
    return run_engine(dataset, class_column, control, treatment, "ttest", **kwargs)


def summarize_results(
    result: pd.DataFrame,
    dataset: LabeledDataset,
    class_column: str,
    control: Any,
    treatment: Any,
) -> pd.DataFrame:
    """
    Re-attach features annotation and empirical group means to a result table.

    Features are matched by ID, so the result can be in any order and contain
    a subset of the dataset features. Annotation columns already present in
    the result are not added again.

    Three columns are added:
        - rowmeans.control: mean value of each feature in control samples.
        - rowmeans.treatment: mean value of each feature in treatment samples.
        - log2fc: log2(rowmeans.treatment / rowmeans.control), with its sign
          forced to be negative whenever rowmeans.treatment <= rowmeans.control.
          Zero or negative means give NaN or infinite values, which must be
          treated as missing.

    Args:
        result: Result table indexed by feature ID.
        dataset: Dataset the result was computed from (the full one, or the
            reduced one returned by `select_groups`).
        class_column: Samples annotation column holding the group labels.
        control: Label of the control group.
        treatment: Label of the treatment group.

    Returns:
        pd.DataFrame: A new, augmented result table, in the order of `result`.

    Raises:
        JoinMismatchError: If any result feature is not in the dataset.
    """
    # 1. Samples of each group
    dataset_compare, groups = select_groups(dataset, class_column, control, treatment)

    # 2. Match features by ID
    missing = result.index[~result.index.isin(dataset_compare.expr_df.index)]
    if len(missing) > 0:
        raise JoinMismatchError(missing.tolist())

    feature_annot = dataset_compare.feature_annot
    new_cols = [c for c in feature_annot.columns if c not in result.columns]
    result = pd.concat([result.copy(), feature_annot.loc[result.index, new_cols]], axis=1)

    # 3. Empirical means of each group
    expr_df = dataset_compare.expr_df.loc[result.index]
    result["rowmeans.control"] = expr_df.loc[:, (groups == control).to_numpy()].mean(
        axis=1
    )
    result["rowmeans.treatment"] = expr_df.loc[
        :, (groups == treatment).to_numpy()
    ].mean(axis=1)

    # 4. Fold change, negative whenever treatment mean is not above control's
    with np.errstate(divide="ignore", invalid="ignore"):
        log2fc = np.log2(result["rowmeans.treatment"] / result["rowmeans.control"])
    down = result["rowmeans.treatment"] <= result["rowmeans.control"]
    log2fc[down] = -log2fc[down].abs()
    result["log2fc"] = log2fc

    return result


def filter_results(
    result: pd.DataFrame,
    p_col: str = "padj",
    p_th: float = 0.05,
    lfc_col: str = "log2FoldChange",
    lfc_level: str = "all",
    lfc_th: float = 0.0,
) -> pd.DataFrame:
    """
    Filter differential expression results according to statistics metrics.

    Features with missing p-values never pass the filter.

    Args:
        result: Result table.
        p_col: By which column to filter, usually "pvalue" or "padj".
        p_th: Keep features with p_col strictly lower than this threshold.
        lfc_col: Log2 fold change column.
        lfc_level: Features to keep, "up" for up-regulated, "down" for
            down-regulated, and "all" for all.
        lfc_th: Keep features with |lfc_col| strictly greater than this threshold.

    Raises:
        ValueError: If lfc_level is not one of "all", "up" or "down".
    """
    # 1. Filter by LFC level
    if lfc_level == "up":
        result = result[result[lfc_col] > 0]
    elif lfc_level == "down":
        result = result[result[lfc_col] < 0]
    elif lfc_level != "all":
        raise ValueError(f'lfc_level must be "all", "up" or "down", got "{lfc_level}".')

    # 2. Filter by LFC and significance thresholds
    return result[(result[lfc_col].abs() > lfc_th) & (result[p_col] < p_th)]


def degs_summary(
    results_filtered: Dict[Tuple[str, str, float, str, float], pd.DataFrame],
) -> pd.DataFrame:
    """
    Number of differentially expressed features per filtering criteria.

    Args:
        results_filtered: Filtered results, keyed by
            (contrast label, p_col, p_th, lfc_level, lfc_th).

    Returns:
        pd.DataFrame: One row per (contrast label, p_col, p_th, lfc_th) and one
            column per lfc_level.
    """
    summary = defaultdict(dict)
    for (label, p_col, p_th, lfc_level, lfc_th), result in results_filtered.items():
        summary[(label, p_col, p_th, lfc_th)][lfc_level] = len(result)

    summary_df = pd.DataFrame(summary).transpose()
    summary_df.index.names = ["contrast", "p_col", "p_th", "lfc_th"]
    return summary_df


def compare_engines(
    dataset: LabeledDataset,
    contrast: Contrast,
    engines: Iterable[str] = ("limma", "ttest"),
    engines_kwargs: Optional[Dict[str, Dict[str, Any]]] = None,
) -> pd.DataFrame:
    """
    Run several engines on the same contrast, for side-by-side comparison.

    Args:
        dataset: Dataset containing the samples of both groups.
        contrast: Groups to compare.
        engines: Names of the engines to run.
        engines_kwargs: Optional fitting arguments of each engine, by name.

    Returns:
        pd.DataFrame: Results of all engines in the dataset feature order,
            with (engine, column) MultiIndex columns, e.g.
            result[("limma", "pvalue")].
    """
    engines_kwargs = engines_kwargs or {}
    results = {
        engine: run_engine(
            dataset,
            contrast.class_column,
            contrast.control,
            contrast.treatment,
            engine,
            **engines_kwargs.get(engine, {}),
        )
        for engine in engines
    }
    return pd.concat(results, axis=1, names=["engine", "column"])


def differential_expression(
    dataset: LabeledDataset,
    contrast: Contrast,
    results_path: Path,
    exp_prefix: str,
    config: Optional[DiffExprConfig] = None,
) -> pd.DataFrame:
    """
    Run a complete two-group differential expression analysis.

    Steps:
        1. Select control and treatment samples and test the contrast with
           the configured engine.
        2. Summarize results (features annotation, group means, log2fc) and
           save them to disk.
        3. Filter results for each combination of p-value column, p-value
           threshold, LFC level and LFC threshold, and save them.
        4. Save the number of DEGs for each filtering criteria.

    If the results file already exists and `config.overwrite` is False, the
    saved results are loaded instead of fitting the engine again.

    Args:
        dataset: Dataset containing the samples of both groups.
        contrast: Groups to compare.
        results_path: Directory where results are saved. Created if needed.
        exp_prefix: Prefix of all generated file names.
        config: Run configuration. Defaults to DiffExprConfig().

    Returns:
        pd.DataFrame: The summarized (unfiltered) results.

    Examples:
        >>> differential_expression(
        ...     dataset=dataset,
        ...     contrast=Contrast("sample_type", control="normal", treatment="tumor"),
        ...     results_path=Path("/results/diff_expr"),
        ...     exp_prefix="experiment1",
        ...     config=DiffExprConfig(engine="deseq2", lfc_ths=[1.0]),
        ... )
    """
    config = config if config is not None else DiffExprConfig()
    results_path.mkdir(exist_ok=True, parents=True)
    file_prefix = f"{exp_prefix}_{contrast.label}_{config.run_tag}"

    # 1. Unfiltered results
    save_path = config.results_file(results_path, exp_prefix, contrast)
    if save_path.exists() and not config.overwrite:
        logger.info(f"Loading existing results from {save_path} (overwrite=False)")
        result = pd.read_csv(save_path, index_col=0)
    else:
        result = run_engine(
            dataset,
            contrast.class_column,
            contrast.control,
            contrast.treatment,
            config.engine,
            **config.engine_kwargs,
        )

        # 2. Summarize and save to disk
        result = summarize_results(
            result,
            dataset,
            contrast.class_column,
            contrast.control,
            contrast.treatment,
        )
        result.to_csv(save_path)
        logger.info(f"Saved {config.engine} results to {save_path}")

    # 3. Filter results
    results_filtered = {}
    for p_col, p_th, lfc_level, lfc_th in product(
        config.p_cols, config.p_ths, config.lfc_levels, config.lfc_ths
    ):
        result_filtered = filter_results(
            result, p_col=p_col, p_th=p_th, lfc_level=lfc_level, lfc_th=lfc_th
        )
        results_filtered[(contrast.label, p_col, p_th, lfc_level, lfc_th)] = (
            result_filtered
        )

        p_col_str = p_col.replace(".", "_")
        p_thr_str = str(p_th).replace(".", "_")
        lfc_thr_str = str(lfc_th).replace(".", "_")
        result_filtered.sort_values("log2FoldChange").to_csv(
            results_path.joinpath(
                f"{file_prefix}_{p_col_str}_{p_thr_str}_"
                f"{lfc_level}_{lfc_thr_str}_results.csv"
            )
        )

    # 4. Summary statistics
    if results_filtered:
        degs_summary(results_filtered).to_csv(
            results_path.joinpath(f"{file_prefix}_degs_summary.csv")
        )

    return result
