"""
AgentPRD async utilities.

Bridges typer commands to asyncio, and wraps LLM calls in retries and
timeouts.
"""

import asyncio
import functools
import logging
from typing import TypeVar, Callable, Any, Optional, Coroutine
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from agentprd.utils.logger import get_logger

T = TypeVar('T')
F = TypeVar('F', bound=Callable[..., Any])

logger = get_logger(__name__)


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run an async function from sync context (e.g., CLI commands).

    Example:
        reply = run_async(client.stream_message("hi"))
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        # Already inside a loop (notebooks, nested tools)
        import nest_asyncio
        nest_asyncio.apply()
        return asyncio.get_event_loop().run_until_complete(coro)


def retry_with_backoff(
    max_attempts: int = 3,
    initial_wait: float = 1.0,
    max_wait: float = 10.0,
    multiplier: float = 2.0,
    retry_on: Optional[tuple[type[Exception], ...]] = None,
) -> Callable[[F], F]:
    """
    Retry decorator with exponential backoff for LLM API calls.

    Args:
        max_attempts: Maximum number of attempts
        initial_wait: Initial wait time in seconds
        max_wait: Maximum wait time in seconds
        multiplier: Multiplier for exponential backoff
        retry_on: Exception types to retry on (defaults to connection/timeout errors)
    """
    if retry_on is None:
        retry_on = (ConnectionError, TimeoutError)

    def decorator(func: F) -> F:
        policy = retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(
                multiplier=multiplier,
                min=initial_wait,
                max=max_wait
            ),
            retry=retry_if_exception_type(retry_on),
            before_sleep=before_sleep_log(logger, logging.INFO),
            reraise=True
        )

        if asyncio.iscoroutinefunction(func):
            @policy
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                return await func(*args, **kwargs)
            return async_wrapper

        @policy
        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            return func(*args, **kwargs)
        return sync_wrapper

    return decorator


def timeout(seconds: float) -> Callable[[F], F]:
    """
    Timeout decorator for async functions.

    Raises the builtin ``TimeoutError`` so callers do not depend on asyncio.
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=seconds)
            except asyncio.TimeoutError:
                func_name = f"{func.__module__}.{func.__qualname__}"
                logger.error(f"Timeout after {seconds}s: {func_name}")
                raise TimeoutError(f"Operation timed out after {seconds} seconds")
        return async_wrapper

    return decorator


__all__ = [
    'run_async',
    'retry_with_backoff',
    'timeout',
]
