"""Utility helpers for the YouTubio service."""

from __future__ import annotations

import functools
import inspect
import logging
from typing import Any, Callable, TypeVar

from .errors import AddonError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def fail_open(
    default_factory: Callable[[], Any],
    *,
    label: str,
    errors: tuple[type[BaseException], ...] = (AddonError,),
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Replace ``errors`` raised by the wrapped callable with a safe default.

    This is the only place where component failures are swallowed. The
    failure is logged at warning level and ``default_factory()`` is returned
    instead. Works for both plain and ``async`` callables.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                try:
                    return await func(*args, **kwargs)
                except errors as exc:
                    logger.warning("%s failed, using default: %s", label, exc)
                    return default_factory()

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except errors as exc:
                logger.warning("%s failed, using default: %s", label, exc)
                return default_factory()

        return wrapper  # type: ignore[return-value]

    return decorator


def coerce_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in {"1", "true", "yes", "on"}
    if isinstance(value, (int, float)):
        return bool(value)
    return False
