"""
Circuit Breakers and Retry Logic
Retries transient failures of external services (Nango, Gmail) before giving up
"""
import inspect
import logging
from functools import wraps
from typing import Tuple, Type

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

logger = logging.getLogger(__name__)


# ============================================================================
# GENERIC CIRCUIT BREAKER
# ============================================================================

def with_retry(
    max_attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 10,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)
):
    """
    Generic retry decorator for any function.

    Only exceptions in `retry_on` are retried; anything else propagates
    on the first failure. The last error is re-raised once attempts run out.

    Usage:
        @with_retry(max_attempts=3, min_wait=2, max_wait=8, retry_on=(httpx.TransportError,))
        async def my_api_call():
            ...
    """
    def decorator(func):
        policy = dict(
            retry=retry_if_exception_type(retry_on),
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        )

        @retry(**policy)
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            return await func(*args, **kwargs)

        @retry(**policy)
        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            return func(*args, **kwargs)

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        else:
            return sync_wrapper

    return decorator
