"""Errors that carry log level, HTTP, gRPC and message-broker handling hints."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any

from .context import Context
from .logger import PANIC, TRACE, logger_from_context


class LogLevel(enum.Enum):
    DISABLED = "disabled"
    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    PANIC = "panic"
    FATAL = "fatal"


class MessageAction(enum.Enum):
    SUCCESS = "success"
    DROP = "drop"
    REQUEUE = "requeue"


class GrpcCode(enum.IntEnum):
    OK = 0
    CANCELLED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16


@dataclass(frozen=True)
class HTTPResponse:
    message: str
    status: int


@dataclass(frozen=True)
class GrpcResponse:
    message: str
    code: GrpcCode


class ThunderError(Exception):
    """An error that may wrap another one and carry handling hints.

    Hints not set on an error are looked up on the errors it wraps.
    """

    def __init__(
        self,
        message: str = "",
        cause: BaseException | None = None,
        *,
        log_level: LogLevel | None = None,
        http_response: HTTPResponse | None = None,
        grpc_response: GrpcResponse | None = None,
        message_action: MessageAction | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.__cause__ = cause
        self.log_level = log_level
        self.http_response = http_response
        self.grpc_response = grpc_response
        self.message_action = message_action

    def __str__(self) -> str:
        if self.message and self.cause is not None:
            return f"{self.message}: {self.cause}"
        if self.message:
            return self.message
        if self.cause is not None:
            return str(self.cause)
        return ""


def _lookup(err: BaseException | None, attribute: str) -> Any:
    while isinstance(err, ThunderError):
        found = getattr(err, attribute)
        if found is not None:
            return found
        err = err.cause
    return None


def wrap(err: BaseException | None, message: str) -> ThunderError | None:
    """Wrap ``err`` with a message; None stays None."""
    if err is None:
        return None
    return ThunderError(message, err)


def cause(err: BaseException | None) -> BaseException | None:
    """Return the innermost wrapped error."""
    while isinstance(err, ThunderError) and err.cause is not None:
        err = err.cause
    return err


def get_error_log_level(err: BaseException | None) -> LogLevel:
    if err is None:
        return LogLevel.DISABLED
    return _lookup(err, "log_level") or LogLevel.ERROR


def set_error_log_level(err: BaseException | None, level: LogLevel) -> ThunderError | None:
    if err is None:
        return None
    return ThunderError("", err, log_level=level)


def get_default_http_response(err: BaseException | None) -> HTTPResponse:
    if err is None:
        return HTTPResponse(HTTPStatus.OK.phrase, int(HTTPStatus.OK))
    found = _lookup(err, "http_response")
    if found is not None:
        return found
    return HTTPResponse(
        HTTPStatus.INTERNAL_SERVER_ERROR.phrase, int(HTTPStatus.INTERNAL_SERVER_ERROR)
    )


def set_default_http_response(
    err: BaseException | None, response: HTTPResponse
) -> ThunderError | None:
    if err is None:
        return None
    return ThunderError("", err, http_response=response)


def get_default_grpc_response(err: BaseException | None) -> GrpcResponse:
    if err is None:
        return GrpcResponse("", GrpcCode.OK)
    found = _lookup(err, "grpc_response")
    if found is not None:
        return found
    return GrpcResponse("internal error", GrpcCode.INTERNAL)


def get_default_message_action(err: BaseException | None) -> MessageAction:
    if err is None:
        return MessageAction.SUCCESS
    return _lookup(err, "message_action") or MessageAction.REQUEUE


def set_default_message_action(
    err: BaseException | None, action: MessageAction
) -> ThunderError | None:
    if err is None:
        return None
    return ThunderError("", err, message_action=action)


_LOGGING_LEVELS = {
    LogLevel.TRACE: TRACE,
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.PANIC: PANIC,
    LogLevel.FATAL: logging.CRITICAL,
}


def log_error(ctx: Context, err: BaseException | None) -> None:
    """Log ``err`` with the context's logger at the error's own log level.

    A panic-level error raises RuntimeError after logging and a fatal-level
    error raises SystemExit.
    """
    if err is None:
        return
    level = get_error_log_level(err)
    if level is LogLevel.DISABLED:
        return

    message = str(cause(err))
    logger = logger_from_context(ctx)
    logger.log(
        _LOGGING_LEVELS.get(level, logging.ERROR),
        message,
        extra={"ctx": ctx, "fields": {"error": str(err)}},
    )
    if level is LogLevel.PANIC:
        raise RuntimeError(message) from err
    if level is LogLevel.FATAL:
        raise SystemExit(1)