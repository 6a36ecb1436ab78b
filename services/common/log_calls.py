import inspect
import time
from functools import wraps
from typing import Any, Callable, Dict, Optional

from .logging import jlog
from .sanitize import sanitize_value

CALL_LOGGER_ENABLED = True

def _sanitized_args(func: Callable, args: tuple, kwargs: dict) -> Dict[str, Any]:
    bound = inspect.signature(func).bind_partial(*args, **kwargs)
    bound.apply_defaults()
    return {
        name: sanitize_value(name, value)
        for name, value in bound.arguments.items()
        if name not in ("self", "cls")
    }


class _CallRecord:
    """Start, end and error events for one call."""

    def __init__(self, fn_name: str, func: Callable, args: tuple, kwargs: dict):
        self.fn_name = fn_name
        self.started = time.perf_counter()
        jlog(event="call_start", fn=fn_name, args=_sanitized_args(func, args, kwargs))

    def _elapsed_ms(self) -> int:
        return int((time.perf_counter() - self.started) * 1000)

    def done(self) -> None:
        jlog(event="call_end", fn=self.fn_name, duration_ms=self._elapsed_ms())

    def failed(self, exc: BaseException) -> None:
        jlog(
            event="call_error",
            severity="ERROR",
            fn=self.fn_name,
            duration_ms=self._elapsed_ms(),
            error=str(exc),
            error_type=type(exc).__name__,
        )


def log_calls(name: Optional[str] = None):
    """
    Log entry, exit and failures of a sync or async function as structured events.

    Arguments pass through sanitize_value first, so transcripts and prompts only
    appear as hash previews. Failures are logged and re-raised.
    """
    def decorator(func: Callable):
        fn_name = name or func.__name__

        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                if not CALL_LOGGER_ENABLED:
                    return await func(*args, **kwargs)
                record = _CallRecord(fn_name, func, args, kwargs)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    record.failed(e)
                    raise
                record.done()
                return result
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            if not CALL_LOGGER_ENABLED:
                return func(*args, **kwargs)
            record = _CallRecord(fn_name, func, args, kwargs)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                record.failed(e)
                raise
            record.done()
            return result
        return sync_wrapper
    return decorator
