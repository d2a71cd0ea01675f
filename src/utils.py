import contextvars
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@contextmanager
def context_wrapper():
    ctx = contextvars.copy_context()
    yield lambda func, *args, **kwargs: ctx.run(func, *args, **kwargs)


def run_func_dict(kwargs: Dict, func: Callable) -> Optional[Any]:
    """
    Run `func(**kwargs)` for batched executions (e.g. one call per contrast).

    A failing call is logged, with its traceback, and returns None so that the
    remaining calls of the batch are not affected.
    """
    logger.info(f"Starting execution of {func.__name__} with arguments: {list(kwargs)}")
    try:
        with context_wrapper() as run_in_context:
            result = run_in_context(func, **kwargs)
            logger.info(f"Successfully executed {func.__name__}")
            return result
    except Exception as e:
        logger.exception(f"Error occurred while executing {func.__name__}: {e}")
        return None
