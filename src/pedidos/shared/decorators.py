import inspect
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from loguru import logger

P = ParamSpec("P")
R = TypeVar("R")


def _log(func: Callable, exc: Exception) -> None:
    logger.error(f"[{func.__qualname__}] {type(exc).__name__}: {exc}")


def log_errors(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Catch, log, and re-raise any exception raised by the decorated coroutine.

    The log line includes the fully-qualified function name, exception type,
    and message so the failing gateway call is identifiable without a traceback.
    Plain (non-async) callables are wrapped the same way.

    Usage::

        @log_errors
        async def list(self) -> list[Order]: ...
    """

    if not inspect.iscoroutinefunction(func):

        @wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as exc:
                _log(func, exc)
                raise

        return sync_wrapper

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await func(*args, **kwargs)
        except Exception as exc:
            _log(func, exc)
            raise

    return wrapper
