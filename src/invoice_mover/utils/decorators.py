"""Decorator utilities for cross-cutting concerns."""
import time
import logging
import functools
from typing import Any, Callable, TypeVar, cast

from invoice_mover.errors import InconsistencyError, InvoiceMoverError

# Setup logging
logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def log_execution_time(func: F) -> F:
    """Decorator to log function execution time.

    Pipeline errors are logged with their kind before being re-raised, so the
    invocation log shows validation failures apart from infrastructure ones.

    Args:
        func: The function to decorate

    Returns:
        Decorated function that logs execution time
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        try:
            result = func(*args, **kwargs)
            duration = time.time() - start_time
            logger.info(f"{func.__name__} completed in {duration:.2f}s")
            return result
        except InconsistencyError as e:
            duration = time.time() - start_time
            logger.error(f"{func.__name__} left a partial move after {duration:.2f}s: {str(e)}")
            raise
        except InvoiceMoverError as e:
            duration = time.time() - start_time
            logger.error(f"{func.__name__} failed ({e.kind.value}) after {duration:.2f}s: {e.message}")
            raise
        except Exception as e:
            duration = time.time() - start_time
            logger.error(f"{func.__name__} failed after {duration:.2f}s: {str(e)}")
            raise
    return cast(F, wrapper)
