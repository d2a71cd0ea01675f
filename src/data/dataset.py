"""Container for an expression matrix and its paired annotations.

The container plays the role of an ExpressionSet: a features x samples matrix,
per-sample metadata (rows aligned with the matrix columns) and per-feature
metadata (rows aligned with the matrix rows).
"""

from copy import deepcopy
from typing import Any, Iterable, Optional

import pandas as pd
from pydantic import ConfigDict
from pydantic.dataclasses import dataclass


@dataclass(config=ConfigDict(arbitrary_types_allowed=True))
class LabeledDataset:
    """
    Expression matrix with samples and features annotations.

    Args:
        expr_df: Measurements with shape [n_features, n_samples]. Rows are
            features (genes, probes) and columns are samples.
        sample_annot: Samples annotation, indexed by sample ID in the same order
            as the columns of expr_df.
        feature_annot: Features annotation (e.g. symbol, description), indexed
            by feature ID in the same order as the rows of expr_df. If not
            provided, an annotation without columns is used.

    Raises:
        ValueError: If IDs are duplicated or annotations are not aligned with
            the expression matrix.
    """

    expr_df: pd.DataFrame
    sample_annot: pd.DataFrame
    feature_annot: Optional[pd.DataFrame] = None

    def __post_init__(self):
        if self.feature_annot is None:
            self.feature_annot = pd.DataFrame(index=self.expr_df.index)

        # 1. IDs must be unique, otherwise joins by ID are ambiguous
        for name, idx in (
            ("feature", self.expr_df.index),
            ("sample", self.expr_df.columns),
        ):
            if idx.has_duplicates:
                raise ValueError(
                    f"Duplicated {name} IDs: {idx[idx.duplicated()].unique().tolist()}"
                )

        # 2. Annotations must match the matrix, in the same order
        if not self.sample_annot.index.equals(self.expr_df.columns):
            raise ValueError(
                "Samples annotation index must match the expression matrix columns"
                f" ({len(self.sample_annot)} annotated vs"
                f" {self.expr_df.shape[1]} samples)."
            )
        if not self.feature_annot.index.equals(self.expr_df.index):
            raise ValueError(
                "Features annotation index must match the expression matrix rows"
                f" ({len(self.feature_annot)} annotated vs"
                f" {self.expr_df.shape[0]} features)."
            )

    @property
    def n_features(self) -> int:
        return self.expr_df.shape[0]

    @property
    def n_samples(self) -> int:
        return self.expr_df.shape[1]

    def subset_samples(self, sample_ids: Iterable[Any]) -> "LabeledDataset":
        """Return a copy restricted to (and ordered by) the given samples."""
        sample_ids = list(sample_ids)
        return LabeledDataset(
            expr_df=deepcopy(self.expr_df.loc[:, sample_ids]),
            sample_annot=deepcopy(self.sample_annot.loc[sample_ids, :]),
            feature_annot=deepcopy(self.feature_annot),
        )
