"""Utility functions for data processing and parallel computation."""

import contextlib
import os
from multiprocessing import get_context
from typing import Callable, Iterable, List, TypeVar

from tqdm.rich import tqdm

T = TypeVar("T")
R = TypeVar("R")


def parallelize_map(
    func: Callable[[T], R],
    inputs: Iterable[T],
    processes: int = 8,
    method: str = "spawn",
) -> List[R]:
    """Execute a function on multiple inputs in parallel using imap_unordered.

    Runs a function on multiple single arguments in parallel using a process pool
    with progress tracking via tqdm.

    Args:
        func: Function to execute in parallel (taking a single argument)
        inputs: Iterable of arguments to pass to the function
        processes: Number of parallel processes to use, defaults to 8
        method: Multiprocessing start method ('spawn', 'fork', or 'forkserver')

    Returns:
        List[R]: List of function results in potentially different order from inputs

    Note:
        Each differential expression invocation is independent of the others,
        so completion order does not matter.
    """
    inputs = list(inputs)
    with get_context(method).Pool(processes, maxtasksperchild=1) as pool:
        return list(
            tqdm(
                pool.imap_unordered(func, inputs),
                total=len(inputs),
            )
        )


def supress_stdout(func: Callable[..., R]) -> Callable[..., R]:
    """Decorator to suppress standard output from a function.

    Wraps a function to redirect its stdout to /dev/null, effectively
    silencing any print statements or R console output written to stdout.
    """

    def wrapper(*a, **ka):
        with open(os.devnull, "w") as devnull:
            with contextlib.redirect_stdout(devnull):
                return func(*a, **ka)

    return wrapper
