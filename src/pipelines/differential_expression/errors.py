"""
Exceptions raised by the differential expression pipeline.

All of them are deterministic usage or data errors: nothing is retried and no
partial results are returned once one of them is raised.
"""

from typing import Any, Iterable


class DiffExprError(Exception):
    """Base class for all differential expression pipeline errors."""


class ColumnNotFoundError(DiffExprError):
    """The requested class column is not part of the samples annotation."""

    def __init__(self, column: str, available: Iterable[str]):
        self.column = column
        self.available = list(available)
        super().__init__(
            f'Column "{column}" not found in samples annotation. '
            f"Available columns: {self.available}"
        )


class LabelNotFoundError(DiffExprError):
    """A group label does not occur in the class column."""

    def __init__(self, label: Any, column: str):
        self.label = label
        self.column = column
        super().__init__(f'Label "{label}" not found in column "{column}".')


class EngineFitError(DiffExprError):
    """The statistical engine could not fit the two-group model."""

    def __init__(self, engine: str, reason: str):
        self.engine = engine
        self.reason = reason
        super().__init__(f"[{engine}] {reason}")


class JoinMismatchError(DiffExprError):
    """Some features of a result table are missing from the dataset."""

    def __init__(self, missing: Iterable[Any]):
        self.missing = list(missing)
        shown = self.missing[:10]
        more = f" (and {len(self.missing) - 10} more)" if len(self.missing) > 10 else ""
        super().__init__(
            f"{len(self.missing)} result features not found in dataset: {shown}{more}"
        )
