"""Retry decorator for transient connection errors."""

import functools
import logging
import time
from typing import Tuple, Type
from sqlalchemy.exc import InterfaceError, OperationalError

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: Tuple[Type[Exception], ...] = (OperationalError, InterfaceError)


def retry(tries: int = 3, delay: float = 1.0, backoff: float = 2.0,
          errors: Tuple[Type[Exception], ...] = TRANSIENT_ERRORS):
    """Call the wrapped function up to ``tries`` times, sleeping ``delay * backoff**n`` between attempts."""
    if tries < 1:
        raise ValueError('tries must be at least 1')

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            wait = delay
            for attempt in range(1, tries + 1):
                try:
                    return fn(*args, **kwargs)
                except errors as e:
                    if attempt == tries:
                        logger.error(f'{fn.__name__} failed after {tries} attempts: {e}')
                        raise
                    logger.warning(f'{fn.__name__} attempt {attempt}/{tries} failed, retrying in {wait:.1f}s: {e}')
                    time.sleep(wait)
                    wait *= backoff
        return wrapper
    return decorator
