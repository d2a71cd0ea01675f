"""
Wrappers for R package DESeq2

All functions have pythonic inputs and outputs.

Note that the arguments in python use "_" instead of ".".
rpy2 does this transformation for us.

Example:
R --> data.category
Python --> data_category
"""

import re
from typing import Any, Iterable

import pandas as pd
import rpy2
from rpy2 import robjects as ro
from rpy2.robjects import Formula
from rpy2.robjects.conversion import localconverter
from rpy2.robjects.packages import importr

from r_wrappers.utils import pd_df_to_r_matrix, pd_df_to_rpy2_df

r_deseq2 = importr("DESeq2")


def get_deseq_dataset_matrix(
    counts_matrix: pd.DataFrame,
    annot_df: pd.DataFrame,
    design_factors: Iterable[str],
    **kwargs: Any,
) -> rpy2.robjects.methods.RS4:
    """Create a DESeqDataSet object from a counts matrix.

    Args:
        counts_matrix: Raw counts with shape [n_features, n_samples].
        annot_df: Annotation dataframe with sample metadata, whose index is the
            sample name. Must be in the same order as the columns of
            counts_matrix. Categorical columns become R factors with the same
            levels, so the first category is the reference level.
        design_factors: Columns whose values are used in the design formula.
        **kwargs: Additional arguments to pass to DESeqDataSetFromMatrix.

    Returns:
        rpy2.robjects.methods.RS4: A DESeqDataSet object.

    Raises:
        ValueError: If design factors are missing from annot_df or samples do
            not match.

    References:
        https://rdrr.io/bioc/DESeq2/man/DESeqDataSet.html
    """
    # 1. Check factors and samples
    unavailable_factors = [f for f in design_factors if f not in annot_df.columns]
    if unavailable_factors:
        raise ValueError(
            "All design factors must reference available columns in annot_df."
            f" However, factors {unavailable_factors} were not found in annot_df."
        )
    if list(counts_matrix.columns) != list(annot_df.index):
        raise ValueError("Samples of counts_matrix and annot_df must be the same.")

    # 2. Build design formula from syntactically valid names
    rename_map = {f: re.sub(r"\W|^(?=\d)", "_", f) for f in design_factors}
    design = Formula("~ " + " + ".join(rename_map.values()))
    annot_df = annot_df.rename(columns=rename_map)
    annot_df.index = annot_df.index.map(str)

    # 3. Get DESeq dataset
    with localconverter(ro.default_converter):
        return r_deseq2.DESeqDataSetFromMatrix(
            countData=pd_df_to_r_matrix(counts_matrix),
            colData=pd_df_to_rpy2_df(annot_df),
            design=design,
            **kwargs,
        )


def run_dseq2(
    dds: rpy2.robjects.methods.RS4, **kwargs: Any
) -> rpy2.robjects.methods.RS4:
    """Run the DESeq2 differential expression analysis workflow.

    This function performs a default DESeq2 analysis through the following steps:
    1) Estimation of size factors (normalization)
    2) Estimation of dispersion, shrunk towards the mean-dispersion trend
    3) Negative Binomial GLM fitting and Wald statistics testing

    Args:
        dds: A DESeqDataSet object.
        **kwargs: Additional arguments to pass to the DESeq function.
            Common parameters include:
            - fitType: Method for dispersion trend fitting (default: "parametric").
            - quiet: Whether to suppress messages (default: FALSE).

    Returns:
        rpy2.robjects.methods.RS4: A fitted DESeqDataSet object.

    References:
        https://rdrr.io/bioc/DESeq2/man/DESeq.html
    """
    return r_deseq2.DESeq(dds, **kwargs)


def deseq_results(
    dds: rpy2.robjects.methods.RS4, **kwargs: Any
) -> rpy2.robjects.methods.RS4:
    """Extract differential expression results from a DESeq analysis.

    Args:
        dds: A DESeqDataSet object, coming from the `run_dseq2` function.
        **kwargs: Additional arguments to pass to the results function.
            Common parameters include:
            - contrast: Vector of length 3 [factor, numerator, denominator].
            - pAdjustMethod: Method for multiple testing adjustment (default: "BH").
            - alpha: Significance level for independent filtering (default: 0.1).

    Returns:
        rpy2.robjects.methods.RS4: A DESeqResults object with columns baseMean,
        log2FoldChange, lfcSE, stat, pvalue and padj.

    References:
        https://rdrr.io/bioc/DESeq2/man/results.html
    """
    return r_deseq2.results(dds, **kwargs)


def annotate_results(
    res: rpy2.robjects.methods.RS4, dds: rpy2.robjects.methods.RS4
) -> rpy2.robjects.DataFrame:
    """Add per-gene fit information to a DESeqResults object.

    Two columns are added:
        - dispersion: final (shrunk) dispersion estimate used for testing.
        - betaConv: whether the GLM fit converged. Genes that were not fitted
          (all-zero counts) are reported as converged.

    Args:
        res: A DESeqResults object from `deseq_results`.
        dds: The fitted DESeqDataSet `res` was extracted from.

    Returns:
        rpy2.robjects.DataFrame: The results as an R data.frame.

    References:
        https://rdrr.io/bioc/DESeq2/man/dispersions.html
    """
    f = ro.r(
        """
        f <- function(res, dds) {
            res <- as.data.frame(res)
            res$dispersion <- DESeq2::dispersions(dds)
            beta_conv <- S4Vectors::mcols(dds)$betaConv
            res$betaConv <- ifelse(is.na(beta_conv), TRUE, beta_conv)
            return(res)
        }
        """
    )
    return f(res, dds)
