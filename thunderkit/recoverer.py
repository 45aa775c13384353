"""Turning recovered panics into logged errors."""

from __future__ import annotations

from typing import Any

from .context import Context
from .errors import ThunderError, wrap
from .logger import PANIC, logger_from_context


def recover(ctx: Context, panic_value: Any) -> ThunderError:
    """Log a recovered value at panic level and return it as a wrapped error."""
    if isinstance(panic_value, BaseException):
        err: BaseException = panic_value
    else:
        err = ThunderError(str(panic_value))

    wrapped = wrap(err, "recovered from panic")
    assert wrapped is not None
    logger_from_context(ctx).log(
        PANIC, "panic", extra={"ctx": ctx, "fields": {"error": str(wrapped)}}
    )
    return wrapped