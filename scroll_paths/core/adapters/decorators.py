from __future__ import annotations

from collections.abc import Callable, Coroutine
from functools import wraps
from typing import Any, TypeVar

from scroll_paths.core.errors import ScrollPathsError

T = TypeVar("T")


def status_tuple(
    fn: Callable[..., Coroutine[Any, Any, T]],
) -> Callable[..., Coroutine[Any, Any, tuple[bool, T | str]]]:
    """Wrap an async adapter method to return ``(True, result)`` or ``(False, error_str)``.

    Failures are logged via ``self.logger``. Errors from ``core.errors`` are
    logged with their kind and whether a fresh attempt may succeed.
    """

    @wraps(fn)
    async def wrapper(self: Any, *args: Any, **kwargs: Any) -> tuple[bool, T | str]:
        try:
            return (True, await fn(self, *args, **kwargs))
        except ScrollPathsError as exc:
            self.logger.error(
                f"{fn.__name__} failed: {type(exc).__name__} "
                f"(retryable={exc.retryable}): {exc}"
            )
            return (False, str(exc))
        except Exception as exc:
            self.logger.error(f"Error in {fn.__name__}: {exc}")
            return (False, str(exc))

    return wrapper  # type: ignore[return-value]
