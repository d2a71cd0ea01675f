"""
Statistical engines for two-group differential expression analysis.

Every engine implements the same capability: given an expression matrix with
shape [n_features, n_samples] and a categorical group vector whose categories
are (control, treatment), test the treatment - control contrast for each
feature and return one row per feature, in input order, with at least the
columns log2FoldChange, pvalue and padj.

Available engines:
    - limma: linear model + empirical Bayes moderated t-test (log-expression).
    - deseq2: negative binomial GLM + Wald test (raw counts).
    - edger: exact test after common, trended and tagwise dispersion
      estimation (raw counts).
    - ttest: ordinary per-feature two-sample t-test (log-expression).

R packages are only loaded once an engine relying on them is fitted.
"""

import logging
from typing import Any, Dict, Tuple, Type

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.multitest import multipletests

from data.utils import supress_stdout
from pipelines.differential_expression.errors import EngineFitError

logger = logging.getLogger(__name__)

# group levels as seen by the engines, whatever the user labels are
CONTROL: str = "control"
TREATMENT: str = "treatment"


class DiffExprEngine:
    """
    Base class of two-group differential expression engines.

    Subclasses implement `_fit`, which receives validated inputs with groups
    renamed to (CONTROL, TREATMENT) and returns the engine native table, and
    declare in `columns_map` how native columns are renamed to the common
    ones.
    """

    name: str = ""
    min_group_size: int = 2
    requires_counts: bool = False
    requires_integer_counts: bool = False
    columns_map: Dict[str, str] = {}

    @property
    def fit_errors(self) -> Tuple[Type[BaseException], ...]:
        """Exceptions of the backend that mean the model could not be fitted."""
        return (ValueError, np.linalg.LinAlgError)

    def check_inputs(self, expr_df: pd.DataFrame, groups: pd.Series) -> None:
        # 1. Group vector must be a two-level categorical aligned with samples
        if not isinstance(groups.dtype, pd.CategoricalDtype):
            raise ValueError("groups must be a categorical series.")
        if len(groups.cat.categories) != 2:
            raise ValueError(
                "groups must have exactly two categories (control, treatment),"
                f" got {groups.cat.categories.tolist()}."
            )
        if not groups.index.equals(expr_df.columns):
            raise ValueError("groups index must match the expression matrix columns.")

        # 2. Enough replicates per group to estimate variances
        control, treatment = groups.cat.categories
        sizes = groups.value_counts()
        if min(sizes[control], sizes[treatment]) < self.min_group_size:
            raise EngineFitError(
                self.name,
                f"at least {self.min_group_size} samples per group are required,"
                f' got {sizes[control]} in control group "{control}" and'
                f' {sizes[treatment]} in treatment group "{treatment}".',
            )

        # 3. Values
        values = expr_df.to_numpy(dtype=float)
        if not np.isfinite(values).all():
            raise EngineFitError(
                self.name, "expression matrix contains missing or infinite values."
            )
        if self.requires_counts and (values < 0).any():
            bad = expr_df.index[(values < 0).any(axis=1)].tolist()
            raise EngineFitError(
                self.name, f"negative counts found for features {bad[:10]}."
            )
        if self.requires_integer_counts and not np.equal(np.round(values), values).all():
            bad = expr_df.index[(np.round(values) != values).any(axis=1)].tolist()
            raise EngineFitError(
                self.name, f"non-integer counts found for features {bad[:10]}."
            )

    def fit(self, expr_df: pd.DataFrame, groups: pd.Series, **kwargs: Any) -> pd.DataFrame:
        """
        Test the treatment - control contrast for each feature.

        Args:
            expr_df: Expression values with shape [n_features, n_samples].
            groups: Categorical series indexed by sample ID, with categories
                (control, treatment) in this order.
            **kwargs: Engine specific fitting arguments.

        Returns:
            pd.DataFrame: One row per feature of expr_df, same order and index.

        Raises:
            EngineFitError: If the input is degenerate or the model fit fails.
        """
        # 1. Validate inputs
        self.check_inputs(expr_df, groups)

        # 2. Fixed level names, so user labels never reach R code
        groups = groups.cat.rename_categories([CONTROL, TREATMENT])

        # 3. Fit
        logger.info(
            f"Fitting {self.name} on {expr_df.shape[0]} features and"
            f" {expr_df.shape[1]} samples"
        )
        try:
            result = self._fit(expr_df.copy(), groups, **kwargs)
        except self.fit_errors as e:
            raise EngineFitError(self.name, f"model fit failed: {e}") from e

        # 4. Common column names and original feature IDs
        result = result.rename(columns=self.columns_map)
        if [str(i) for i in result.index] != [str(i) for i in expr_df.index]:
            raise EngineFitError(
                self.name, "result features do not match the input features."
            )
        result.index = expr_df.index
        return result

    def _fit(self, expr_df: pd.DataFrame, groups: pd.Series, **kwargs: Any) -> pd.DataFrame:
        raise NotImplementedError


class RBackedEngine(DiffExprEngine):
    """Engine delegating the statistics to an R package through rpy2."""

    @property
    def fit_errors(self) -> Tuple[Type[BaseException], ...]:
        from rpy2.rinterface_lib.embedded import RRuntimeError

        return (RRuntimeError,)


class LimmaEngine(RBackedEngine):
    """
    limma: per-feature linear model with empirical Bayes moderation of the
        variances. Expects log-expression values (e.g. log2 normalized arrays).
    """

    name = "limma"
    columns_map = {
        "logFC": "log2FoldChange",
        "t": "stat",
        "P.Value": "pvalue",
        "adj.P.Val": "padj",
    }

    @supress_stdout
    def _fit(self, expr_df: pd.DataFrame, groups: pd.Series, **kwargs: Any) -> pd.DataFrame:
        import rpy2.robjects as ro
        from rpy2.robjects.conversion import localconverter

        from r_wrappers.limma import (
            empirical_bayes,
            fit_contrasts,
            linear_model_fit,
            top_table,
        )
        from r_wrappers.utils import (
            get_contrast_matrix,
            get_design_matrix,
            pd_df_to_r_matrix,
            rpy2_df_to_pd_df,
        )

        with localconverter(ro.default_converter):
            # 1. Means model (one coefficient per group) and treatment - control
            design = get_design_matrix(groups)
            contrast = get_contrast_matrix(
                levels=(CONTROL, TREATMENT),
                weights=(-1, 1),
                name=f"{TREATMENT}-{CONTROL}",
            )

            # 2. Fit, re-parametrize and moderate
            lm_fitted = linear_model_fit(pd_df_to_r_matrix(expr_df), design)
            contrasts_fit = empirical_bayes(
                fit=fit_contrasts(fit=lm_fitted, contrasts=contrast), **kwargs
            )

            # 3. Unsorted table of all features
            return rpy2_df_to_pd_df(
                top_table(
                    contrasts_fit,
                    coef=1,
                    number=ro.r("Inf"),
                    adjust_method="BH",
                    sort_by="none",
                )
            )


class DESeq2Engine(RBackedEngine):
    """
    DESeq2: size factors, dispersions shrunk towards the mean-dispersion trend,
        negative binomial GLM and Wald test. Expects raw counts.
    """

    name = "deseq2"
    requires_counts = True
    requires_integer_counts = True

    @supress_stdout
    def _fit(self, expr_df: pd.DataFrame, groups: pd.Series, **kwargs: Any) -> pd.DataFrame:
        import rpy2.robjects as ro
        from rpy2.robjects.conversion import localconverter

        from r_wrappers.deseq2 import (
            annotate_results,
            deseq_results,
            get_deseq_dataset_matrix,
            run_dseq2,
        )
        from r_wrappers.utils import rpy2_df_to_pd_df

        counts_df = expr_df.round().astype(int)
        annot_df = pd.DataFrame({"condition": groups}, index=groups.index)

        with localconverter(ro.default_converter):
            # 1. Dataset, condition reference level is the control group
            dds = get_deseq_dataset_matrix(counts_df, annot_df, ["condition"])

            # 2. Size factors, dispersions, GLM fit and Wald test
            dds = run_dseq2(dds, quiet=True, **kwargs)

            # 3. [factor, active (numerator), baseline (denominator)]
            res = deseq_results(
                dds, contrast=ro.StrVector(["condition", TREATMENT, CONTROL])
            )
            result = rpy2_df_to_pd_df(annotate_results(res, dds))

        # 4. Convergence of GLM fits
        return self.check_convergence(result)

    def check_convergence(self, result: pd.DataFrame) -> pd.DataFrame:
        """Drop the betaConv column, warning about non-converged features.

        Raises:
            EngineFitError: If the GLM fit did not converge for any feature.
        """
        result = result.copy()
        converged = result.pop("betaConv").astype(bool)
        if not converged.any():
            raise EngineFitError(self.name, "GLM fit did not converge for any feature.")
        if not converged.all():
            logging.warning(
                f"[{self.name}] GLM fit did not converge for {(~converged).sum()}"
                f" features: {converged.index[~converged].tolist()[:10]}"
            )

        return result


class EdgeREngine(RBackedEngine):
    """
    edgeR: TMM normalization, common then trended then tagwise dispersion
        estimation and exact test. Expects raw counts.
    """

    name = "edger"
    requires_counts = True
    columns_map = {"logFC": "log2FoldChange", "PValue": "pvalue", "FDR": "padj"}

    @supress_stdout
    def _fit(self, expr_df: pd.DataFrame, groups: pd.Series, **kwargs: Any) -> pd.DataFrame:
        import rpy2.robjects as ro
        from rpy2.robjects.conversion import localconverter

        from r_wrappers.edger import (
            calc_norm_factors,
            dge_list,
            estimate_glm_common_disp,
            estimate_glm_tagwise_disp,
            estimate_glm_trended_disp,
            exact_test,
            tagwise_dispersion,
            top_tags,
        )
        from r_wrappers.utils import pd_df_to_r_matrix, rpy2_df_to_pd_df

        with localconverter(ro.default_converter):
            # 1. Levels order makes the exact test compare treatment vs control
            group = ro.FactorVector(
                ro.StrVector(groups.astype(str).tolist()),
                levels=ro.StrVector([CONTROL, TREATMENT]),
            )
            y = dge_list(pd_df_to_r_matrix(expr_df), group)

            # 2. Library sizes normalization and dispersions, each step
            # refining the previous one
            y = calc_norm_factors(y)
            y = estimate_glm_common_disp(y)
            y = estimate_glm_trended_disp(y)
            y = estimate_glm_tagwise_disp(y)

            # 3. Exact test, keep features in input order
            result = rpy2_df_to_pd_df(
                top_tags(exact_test(y, **kwargs), n=expr_df.shape[0], sort_by="none")
            )
            result["dispersion"] = list(tagwise_dispersion(y))

        return result


class TTestEngine(DiffExprEngine):
    """
    Ordinary two-sample t-test for each feature, without any variance
        moderation. Expects log-expression values.
    """

    name = "ttest"

    def _fit(
        self, expr_df: pd.DataFrame, groups: pd.Series, equal_var: bool = False
    ) -> pd.DataFrame:
        control_df = expr_df.loc[:, (groups == CONTROL).to_numpy()]
        treatment_df = expr_df.loc[:, (groups == TREATMENT).to_numpy()]

        # 1. Per-feature test (Welch's by default); constant features give NaN
        with np.errstate(divide="ignore", invalid="ignore"):
            stat, pvalue = stats.ttest_ind(
                treatment_df.to_numpy(),
                control_df.to_numpy(),
                axis=1,
                equal_var=equal_var,
            )
        pvalue = np.asarray(pvalue, dtype=float)

        # 2. Benjamini-Hochberg adjustment of testable features
        padj = np.full(pvalue.shape, np.nan)
        testable = ~np.isnan(pvalue)
        if testable.any():
            padj[testable] = multipletests(pvalue[testable], method="fdr_bh")[1]

        return pd.DataFrame(
            {
                "log2FoldChange": treatment_df.mean(axis=1) - control_df.mean(axis=1),
                "stat": stat,
                "pvalue": pvalue,
                "padj": padj,
            },
            index=expr_df.index,
        )


ENGINES: Dict[str, Type[DiffExprEngine]] = {
    engine.name: engine
    for engine in (LimmaEngine, DESeq2Engine, EdgeREngine, TTestEngine)
}


def get_engine(name: str) -> DiffExprEngine:
    """Get an engine instance from its name (see ENGINES)."""
    try:
        return ENGINES[name]()
    except KeyError:
        raise ValueError(
            f'Unknown engine "{name}". Available engines: {list(ENGINES)}'
        ) from None
