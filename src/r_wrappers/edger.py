"""
Wrappers for R package edgeR

All functions have pythonic inputs and outputs.

Note that the arguments in python use "_" instead of ".".
rpy2 does this transformation for us.

Example:
R --> data.category
Python --> data_category
"""

from typing import Any

import rpy2
from rpy2 import robjects as ro
from rpy2.robjects.packages import importr

r_edger = importr("edgeR")


def dge_list(counts: Any, group: Any, **kwargs: Any) -> Any:
    """Create a DGEList object from a table of counts.

    Args:
        counts: Numeric matrix of read counts, genes in rows and samples in columns.
        group: Factor giving the experimental group of each sample. The first
            level is used as the reference by `exact_test`.
        **kwargs: Additional arguments to pass to the DGEList function.

    References:
        https://rdrr.io/bioc/edgeR/man/DGEList.html
    """
    return r_edger.DGEList(counts=counts, group=group, **kwargs)


def calc_norm_factors(y: Any, **kwargs: Any) -> Any:
    """Calculate scaling factors to convert raw library sizes into effective ones.

    Args:
        y: A DGEList object.
        **kwargs: Additional arguments to pass to calcNormFactors.
            Common parameters include:
            - method: Normalization method (default: "TMM").

    References:
        https://rdrr.io/bioc/edgeR/man/calcNormFactors.html
    """
    return r_edger.calcNormFactors(y, **kwargs)


def estimate_glm_common_disp(y: Any, **kwargs: Any) -> Any:
    """Estimate a common negative binomial dispersion for all genes.

    References:
        https://rdrr.io/bioc/edgeR/man/estimateGLMCommonDisp.html
    """
    return r_edger.estimateGLMCommonDisp(y, **kwargs)


def estimate_glm_trended_disp(y: Any, **kwargs: Any) -> Any:
    """Estimate abundance-dependent (trended) dispersions.

    References:
        https://rdrr.io/bioc/edgeR/man/estimateGLMTrendedDisp.html
    """
    return r_edger.estimateGLMTrendedDisp(y, **kwargs)


def estimate_glm_tagwise_disp(y: Any, **kwargs: Any) -> Any:
    """Estimate gene-wise dispersions, squeezed towards the trended ones.

    References:
        https://rdrr.io/bioc/edgeR/man/estimateGLMTagwiseDisp.html
    """
    return r_edger.estimateGLMTagwiseDisp(y, **kwargs)


def exact_test(y: Any, **kwargs: Any) -> Any:
    """Compute gene-wise exact tests for differences in the means between two groups.

    By default the second level of the DGEList group factor is compared
    against the first one.

    Args:
        y: A DGEList object with estimated dispersions.
        **kwargs: Additional arguments to pass to the exactTest function.
            Common parameters include:
            - pair: The two group levels to compare.
            - dispersion: Which dispersion to use ("auto", "common", "trended",
              "tagwise").

    Returns:
        Any: A DGEExact object.

    References:
        https://rdrr.io/bioc/edgeR/man/exactTest.html
    """
    return r_edger.exactTest(y, **kwargs)


def top_tags(obj: Any, **kwargs: Any) -> rpy2.robjects.DataFrame:
    """Extract a table of genes from an exact test or GLM test result.

    Args:
        obj: A DGEExact or DGELRT object.
        **kwargs: Additional arguments to pass to the topTags function.
            Common parameters include:
            - n: Maximum number of genes to return.
            - sort_by: How to sort the results ("none" keeps input order).
            - adjust_method: Method for adjusting p-values (default: "BH").

    Returns:
        rpy2.robjects.DataFrame: Columns logFC, logCPM, PValue and FDR.

    References:
        https://rdrr.io/bioc/edgeR/man/topTags.html
    """
    return ro.r("as.data.frame")(r_edger.topTags(obj, **kwargs))


def tagwise_dispersion(y: Any) -> Any:
    """Gene-wise dispersions stored in a DGEList."""
    f = ro.r(
        """
        f <- function(y) {
            return(y$tagwise.dispersion)
        }
        """
    )
    return f(y)
