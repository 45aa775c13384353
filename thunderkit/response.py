"""Standard response values with HTTP status codes."""

from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus


@dataclass(frozen=True)
class Response:
    message: str
    status: int


def success() -> Response:
    return Response(HTTPStatus.OK.phrase, int(HTTPStatus.OK))


def bad_request(message: str) -> Response:
    return Response(message, int(HTTPStatus.BAD_REQUEST))


def unauthorized() -> Response:
    return Response(HTTPStatus.UNAUTHORIZED.phrase, int(HTTPStatus.UNAUTHORIZED))


def forbidden() -> Response:
    return Response(HTTPStatus.FORBIDDEN.phrase, int(HTTPStatus.FORBIDDEN))


def not_found(message: str) -> Response:
    return Response(message, int(HTTPStatus.NOT_FOUND))


def conflict(message: str) -> Response:
    return Response(message, int(HTTPStatus.CONFLICT))


def internal_server_error() -> Response:
    return Response(
        HTTPStatus.INTERNAL_SERVER_ERROR.phrase, int(HTTPStatus.INTERNAL_SERVER_ERROR)
    )