"""Translation of errors into GraphQL errors."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from .context import Context
from .errors import LogLevel, get_default_http_response, log_error, set_error_log_level


class GraphQLError(Exception):
    """A GraphQL error with a message and extensions."""

    def __init__(self, message: str, extensions: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.extensions = dict(extensions or {})

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"GraphQLError({self.message!r}, {self.extensions!r})"


def _status_text(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


def handle_error(ctx: Context, err: BaseException | None) -> GraphQLError | None:
    """Log ``err`` and return it as a GraphQL error; 2xx responses yield None.

    4xx errors are logged at info level and 5xx errors hide their message.
    """
    response = get_default_http_response(err)
    message = response.message
    status = response.status

    if 200 <= status <= 299:
        return None
    if 400 <= status <= 499:
        err = set_error_log_level(err, LogLevel.INFO)
    if 500 <= status <= 599:
        message = _status_text(status)
    if not message:
        message = _status_text(status)

    log_error(ctx, err)
    return GraphQLError(message, {"status": status})