import hashlib
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Literal, Union

from pydantic import ConfigDict, Field
from pydantic.dataclasses import dataclass

EngineName = Literal["limma", "deseq2", "edger", "ttest"]
LfcLevel = Literal["all", "up", "down"]


@dataclass(frozen=True)
class Contrast:
    """
    Two-group comparison on a single samples annotation column.

    The contrast is always oriented as treatment - control, so positive log2
    fold changes mean higher values in the treatment group.

    Args:
        class_column: Column of the samples annotation holding the group labels.
        control: Label of the baseline group.
        treatment: Label of the group compared against the baseline.

    Examples:
        >>> contrast = Contrast("sample_type", control="normal", treatment="tumor")
        >>> contrast.label
        'tumor_vs_normal'
    """

    class_column: str
    control: Union[str, int]
    treatment: Union[str, int]

    def __post_init__(self):
        if self.control == self.treatment:
            raise ValueError(
                f'Control and treatment labels must differ, got "{self.control}" twice.'
            )

    @property
    def label(self) -> str:
        """Name of the contrast as <treatment>_vs_<control>, with characters
        unsafe in file names replaced by underscores."""
        return re.sub(r"[^\w.-]", "_", f"{self.treatment}_vs_{self.control}")

    @classmethod
    def from_str(cls, class_column: str, levels: str, sep: str = ":") -> "Contrast":
        """Build a contrast from a "treatment:control" string."""
        try:
            treatment, control = levels.split(sep)
        except ValueError:
            raise ValueError(
                f'Contrast levels must look like "treatment{sep}control", got "{levels}".'
            )
        return cls(class_column=class_column, control=control, treatment=treatment)


@dataclass(config=ConfigDict(arbitrary_types_allowed=True))
class DiffExprConfig:
    """
    Explicit configuration of one differential expression run.

    Args:
        engine: Statistical engine used to test the contrast.
        p_cols: P-value columns used to filter results (e.g. "pvalue", "padj").
        p_ths: P-value thresholds applied to each column in p_cols.
        lfc_levels: Which genes to keep: "up"-regulated, "down"-regulated or "all".
        lfc_ths: Absolute log2 fold change thresholds.
        overwrite: Whether existing results on disk are recomputed. If False,
            previously saved results are loaded instead.
        engine_kwargs: Extra arguments passed to the engine fitting function.
            Results computed with different engine_kwargs are saved to
            different files (see `run_tag`).
    """

    engine: EngineName = "limma"
    p_cols: List[str] = Field(default_factory=lambda: ["padj"])
    p_ths: List[float] = Field(default_factory=lambda: [0.05])
    lfc_levels: List[LfcLevel] = Field(default_factory=lambda: ["all", "up", "down"])
    lfc_ths: List[float] = Field(default_factory=lambda: [1.0])
    overwrite: bool = False
    engine_kwargs: Dict[str, Any] = Field(default_factory=dict)

    @property
    def run_tag(self) -> str:
        """Engine name, followed by a digest of engine_kwargs when given."""
        if not self.engine_kwargs:
            return self.engine
        digest = hashlib.md5(
            json.dumps(self.engine_kwargs, sort_keys=True, default=str).encode()
        ).hexdigest()[:8]
        return f"{self.engine}_{digest}"

    def results_file(self, results_path: Path, exp_prefix: str, contrast: Contrast) -> Path:
        return results_path.joinpath(
            f"{exp_prefix}_{contrast.label}_{self.run_tag}_results.csv"
        )
