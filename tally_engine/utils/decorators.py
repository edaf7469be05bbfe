"""
Decorators Module
Timing and transport error classification decorators
"""

import asyncio
import functools
import time
from typing import Callable
from .exceptions import TallyTransportError
from .logger import logger


def timed(func: Callable):
    """
    Decorator to log execution time of a function
    """
    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
            return result
        finally:
            elapsed = time.perf_counter() - start_time
            logger.debug(f"{func.__name__} executed in {elapsed:.3f}s")

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            result = func(*args, **kwargs)
            return result
        finally:
            elapsed = time.perf_counter() - start_time
            logger.debug(f"{func.__name__} executed in {elapsed:.3f}s")

    if asyncio.iscoroutinefunction(func):
        return async_wrapper
    return sync_wrapper


def classifies_transport_errors(func: Callable):
    """
    Turn a TallyTransportError escaping an async method into the owner's
    classified result.

    The decorated method's instance must provide an async
    ``classify_transport_error(error)``.
    """
    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except TallyTransportError as e:
            logger.warning(f"{func.__name__} failed with transport error ({e.kind}): {e.message}")
            return await self.classify_transport_error(e)

    return wrapper
