import logging
from pathlib import Path
from typing import Optional

import pandas as pd

from data.dataset import LabeledDataset

logger = logging.getLogger(__name__)


def read_table(file_path: Path) -> pd.DataFrame:
    """Read a CSV or TSV table whose first column holds the row IDs.

    Args:
        file_path: Path to a ".csv", ".tsv" or ".txt" (tab-separated) file,
            optionally gzip-compressed.

    Returns:
        pd.DataFrame: The table, indexed by its first column.

    Raises:
        ValueError: If the file extension is not supported.
    """
    suffixes = [s.lower() for s in file_path.suffixes if s.lower() != ".gz"]
    if not suffixes or suffixes[-1] not in (".csv", ".tsv", ".txt"):
        raise ValueError(
            f'Unsupported table format for "{file_path}", use .csv, .tsv or .txt'
        )
    sep = "," if suffixes[-1] == ".csv" else "\t"
    return pd.read_csv(file_path, sep=sep, index_col=0)


def load_labeled_dataset(
    expr_path: Path,
    sample_annot_path: Path,
    feature_annot_path: Optional[Path] = None,
) -> LabeledDataset:
    """Load an expression matrix and its annotations into a LabeledDataset.

    Only samples present both in the matrix and in the samples annotation are
    kept, in the order of the matrix columns. Features annotation, if given,
    is aligned to the matrix rows; features without annotation get missing
    values.

    Args:
        expr_path: Expression matrix with shape [n_features, n_samples].
        sample_annot_path: Samples annotation, one row per sample.
        feature_annot_path: Optional features annotation, one row per feature.

    Returns:
        LabeledDataset: The aligned dataset.
    """
    # 1. Load tables
    expr_df = read_table(expr_path)
    sample_annot = read_table(sample_annot_path)

    # 2. Keep only samples for which annotation is available and vice-versa
    common_samples = expr_df.columns.intersection(sample_annot.index, sort=False)
    dropped = expr_df.columns.difference(common_samples).union(
        sample_annot.index.difference(common_samples)
    )
    if len(dropped) > 0:
        logging.warning(
            f"{len(dropped)} samples without both expression values and annotation"
            f" will be ignored: {dropped.tolist()}"
        )
    expr_df = expr_df.loc[:, common_samples]
    sample_annot = sample_annot.loc[common_samples, :]

    # 3. Align features annotation
    feature_annot = None
    if feature_annot_path is not None:
        feature_annot = read_table(feature_annot_path)
        n_missing = len(expr_df.index.difference(feature_annot.index))
        if n_missing > 0:
            logging.warning(f"{n_missing} features have no annotation.")
        feature_annot = feature_annot[
            ~feature_annot.index.duplicated(keep="first")
        ].reindex(expr_df.index)

    logger.info(
        f"Loaded dataset with {expr_df.shape[0]} features and"
        f" {expr_df.shape[1]} samples from {expr_path}"
    )
    return LabeledDataset(
        expr_df=expr_df, sample_annot=sample_annot, feature_annot=feature_annot
    )
