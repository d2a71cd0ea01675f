from typing import Any, Iterable

import pandas as pd
import rpy2.robjects as ro
from rpy2.robjects import pandas2ri
from rpy2.robjects.conversion import localconverter


def rpy2_df_to_pd_df(rpy2_df: Any) -> pd.DataFrame:
    """
    Converts a rpy2 DataFrame object to a pandas Dataframe object.

    (docs in https://rpy2.github.io/doc/latest/html/pandas.html)
    """
    # 0. Ensure rpy2 object is (or is convertible to) an R dataframe
    with localconverter(ro.default_converter):
        rpy2_df = ro.r("as.data.frame")(rpy2_df)

    with localconverter(ro.default_converter + pandas2ri.converter):
        pd_from_r_df = ro.conversion.rpy2py(rpy2_df)

    return pd_from_r_df


def pd_df_to_rpy2_df(pd_df: pd.DataFrame) -> ro.DataFrame:
    """
    Converts a pandas DataFrame object to a rpy2 Dataframe object.

        (docs in https://rpy2.github.io/doc/latest/html/pandas.html)
    """

    with localconverter(ro.default_converter + pandas2ri.converter):
        r_from_pd_df = ro.conversion.py2rpy(pd_df)
    return r_from_pd_df


def pd_df_to_r_matrix(pd_df: pd.DataFrame) -> Any:
    """
    Converts a numeric pandas DataFrame into an R matrix, keeping row and column
        names as strings.
    """
    pd_df = pd_df.copy()
    pd_df.index = pd_df.index.map(str)
    pd_df.columns = pd_df.columns.map(str)

    with localconverter(ro.default_converter):
        return ro.r("as.matrix")(pd_df_to_rpy2_df(pd_df))


def get_design_matrix(groups: pd.Series) -> Any:
    """
    Get a no-intercept design matrix for a categorical grouping of samples.

    There is one indicator column per category of `groups`, in category order,
        named after the categories. Rows are named after the index of `groups`.

    Args:
        groups: Categorical series, indexed by sample ID.
    """
    design_df = pd.get_dummies(groups.astype("category")).astype(float)
    return pd_df_to_r_matrix(design_df)


def get_contrast_matrix(levels: Iterable[str], weights: Iterable[float], name: str):
    """
    Build a one-column numeric contrast matrix.

    Args:
        levels: Coefficient names, matching the design matrix columns.
        weights: Weight of each coefficient in the contrast.
        name: Name of the contrast (column name of the matrix).
    """
    levels = [str(level) for level in levels]
    weights = [float(w) for w in weights]
    if len(levels) != len(weights):
        raise ValueError("A weight must be given for each level of the contrast.")

    with localconverter(ro.default_converter):
        return ro.r("matrix")(
            ro.FloatVector(weights),
            ncol=1,
            dimnames=ro.r("list")(ro.StrVector(levels), ro.StrVector([name])),
        )
