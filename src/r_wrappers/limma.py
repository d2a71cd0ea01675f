"""
Wrappers for R package limma

All functions have pythonic inputs and outputs.

Note that the arguments in python use "_" instead of ".".
rpy2 does this transformation for us.

Example:
R --> data.category
Python --> data_category
"""

from typing import Any

import rpy2
from rpy2.robjects.packages import importr

r_limma = importr("limma")


def linear_model_fit(obj: Any, design: Any, **kwargs: Any) -> Any:
    """Fit a linear model for each gene given a series of arrays.

    Args:
        obj: A matrix-like data object containing log-expression values, with
            rows corresponding to genes and columns to samples.
        design: The design matrix of the experiment, with rows corresponding to
            samples and columns to coefficients to be estimated.
        **kwargs: Additional arguments to pass to the lmFit function.
            Common parameters include:
            - weights: Optional numeric matrix of weights.
            - method: Fitting method ("ls" or "robust").

    Returns:
        Any: An MArrayLM object containing the fitted linear model.

    References:
        https://rdrr.io/bioc/limma/man/lmFit.html
    """
    return r_limma.lmFit(obj, design, **kwargs)


def fit_contrasts(fit: Any, contrasts: Any) -> Any:
    """Compute estimated coefficients and standard errors for a given set of contrasts.

    Args:
        fit: An MArrayLM object produced by linear_model_fit.
        contrasts: Numeric matrix with rows corresponding to coefficients in fit
            and one column per contrast.

    Returns:
        Any: An MArrayLM object re-parametrized in terms of the contrasts.

    References:
        https://rdrr.io/bioc/limma/man/contrasts.fit.html
    """
    return r_limma.contrasts_fit(fit=fit, contrasts=contrasts)


def empirical_bayes(fit: Any, **kwargs: Any) -> Any:
    """Apply empirical Bayes moderation of standard errors.

    Gene-wise residual variances are shrunk towards a pooled estimate, which
    stabilizes inference for experiments with few replicates. The resulting
    moderated t-statistics have more degrees of freedom than ordinary ones.

    Args:
        fit: An MArrayLM object produced by linear_model_fit or fit_contrasts.
        **kwargs: Additional arguments to pass to the eBayes function.
            Common parameters include:
            - trend: Whether to fit a mean-variance trend.
            - robust: Whether to use robust estimation of the prior variance.

    Returns:
        Any: An MArrayLM object with moderated t-statistics, p-values and
        log-odds of differential expression.

    References:
        https://rdrr.io/bioc/limma/man/ebayes.html
    """
    return r_limma.eBayes(fit=fit, **kwargs)


def top_table(fit: Any, **kwargs: Any) -> rpy2.robjects.DataFrame:
    """Extract a table of genes from a linear model fit.

    Args:
        fit: An MArrayLM object as produced by empirical_bayes.
        **kwargs: Additional arguments to pass to the topTable function.
            Common parameters include:
            - coef: Which coefficient/contrast to extract results for.
            - sort_by: How to sort the results ("none" keeps input order).
            - number: Maximum number of genes to return.
            - adjust_method: Method for adjusting p-values.

    Returns:
        rpy2.robjects.DataFrame: Columns logFC, AveExpr, t, P.Value, adj.P.Val
        and B, one row per gene.

    References:
        https://rdrr.io/bioc/limma/man/toptable.html
    """
    return r_limma.topTable(fit, **kwargs)
