import argparse
import functools
import logging
import multiprocessing
import warnings
from itertools import product
from multiprocessing import freeze_support
from pathlib import Path
from typing import Iterable

from rich import traceback
from rpy2.rinterface_lib.callbacks import logger as rpy2_logger
from tqdm.rich import tqdm

from components.contrast import Contrast, DiffExprConfig
from data.io import load_labeled_dataset
from data.utils import parallelize_map
from pipelines.differential_expression.engines import ENGINES
from pipelines.differential_expression.utils import differential_expression
from utils import run_func_dict

_ = traceback.install()
rpy2_logger.setLevel(logging.ERROR)
logging.basicConfig(force=True)
logging.getLogger().setLevel(logging.INFO)
warnings.filterwarnings("ignore")

parser = argparse.ArgumentParser(
    description=(
        "Differential expression between pairs of sample groups, with one or"
        " more statistical engines."
    )
)
parser.add_argument("--expr-path", type=str, required=True, help="Expression matrix")
parser.add_argument(
    "--samples-path", type=str, required=True, help="Samples annotation table"
)
parser.add_argument(
    "--features-path",
    type=str,
    help="Features annotation table",
    nargs="?",
    default=None,
)
parser.add_argument(
    "--class-column",
    type=str,
    required=True,
    help="Samples annotation column holding the groups",
)
parser.add_argument(
    "--contrasts",
    type=str,
    nargs="+",
    required=True,
    help='Contrasts to test, each one as "treatment:control"',
)
parser.add_argument(
    "--engines",
    type=str,
    nargs="+",
    choices=list(ENGINES),
    default=["limma"],
    help="Statistical engines (limma/ttest for log-expression, deseq2/edger for counts)",
)
parser.add_argument("--results-dir", type=str, required=True, help="Output directory")
parser.add_argument(
    "--exp-prefix", type=str, help="Output files prefix", nargs="?", default="diff_expr"
)
parser.add_argument(
    "--overwrite",
    action="store_true",
    help="Recompute results even if they already exist",
)
parser.add_argument(
    "--threads",
    type=int,
    help="Number of threads for parallel processing",
    nargs="?",
    default=max(multiprocessing.cpu_count() - 2, 1),
)

user_args = vars(parser.parse_args())
RESULTS_PATH: Path = Path(user_args["results_dir"])
RESULTS_PATH.mkdir(exist_ok=True, parents=True)
CLASS_COLUMN: str = user_args["class_column"]
CONTRASTS: Iterable[Contrast] = [
    Contrast.from_str(CLASS_COLUMN, levels) for levels in user_args["contrasts"]
]
P_COLS: Iterable[str] = ["padj"]
P_THS: Iterable[float] = (0.05,)
LFC_LEVELS: Iterable[str] = ("all", "up", "down")
LFC_THS: Iterable[float] = (1.0,)
PARALLEL: bool = user_args["threads"] > 1

dataset = load_labeled_dataset(
    expr_path=Path(user_args["expr_path"]),
    sample_annot_path=Path(user_args["samples_path"]),
    feature_annot_path=(
        Path(user_args["features_path"]) if user_args["features_path"] else None
    ),
)

input_collection = []
for contrast, engine in product(CONTRASTS, user_args["engines"]):
    input_collection.append(
        dict(
            dataset=dataset,
            contrast=contrast,
            results_path=RESULTS_PATH,
            exp_prefix=user_args["exp_prefix"],
            config=DiffExprConfig(
                engine=engine,
                p_cols=P_COLS,
                p_ths=P_THS,
                lfc_levels=LFC_LEVELS,
                lfc_ths=LFC_THS,
                overwrite=user_args["overwrite"],
            ),
        )
    )

# Run differential expression
if __name__ == "__main__":
    freeze_support()
    if PARALLEL and len(input_collection) > 1:
        parallelize_map(
            functools.partial(run_func_dict, func=differential_expression),
            input_collection,
            processes=user_args["threads"],
        )
    else:
        for ins in tqdm(input_collection):
            differential_expression(**ins)
