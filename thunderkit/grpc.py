"""Translation of errors to and from gRPC statuses, and metadata propagation."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Callable, Mapping, Sequence

from .context import Context, Metadata, context_with_metadata, metadata_from_context
from .errors import (
    GrpcCode,
    HTTPResponse,
    ThunderError,
    get_default_grpc_response,
    log_error,
    set_default_http_response,
)
from .graphql import GraphQLError
from .graphql import handle_error as _graphql_handle_error

_INTERNAL_MESSAGE = "internal error"


def _code_name(code: GrpcCode) -> str:
    if code is GrpcCode.OK:
        return "OK"
    return "".join(part.capitalize() for part in code.name.split("_"))


class StatusError(Exception):
    """An error carrying a gRPC status code and message."""

    def __init__(self, code: GrpcCode, message: str) -> None:
        super().__init__(message)
        self.code = GrpcCode(code)
        self.message = message

    def __str__(self) -> str:
        return f"rpc error: code = {_code_name(self.code)} desc = {self.message}"


def handle_error(ctx: Context, err: BaseException | None) -> StatusError | None:
    """Log ``err`` and return it as a status error; OK yields None."""
    response = get_default_grpc_response(err)
    if response.code is GrpcCode.OK:
        return None
    log_error(ctx, err)
    return StatusError(response.code, response.message)


def _status_of(err: BaseException | None) -> tuple[GrpcCode, str] | None:
    bare = err.cause if isinstance(err, ThunderError) else err
    if bare is None:
        return GrpcCode.OK, ""
    node: BaseException | None = bare
    while node is not None:
        if isinstance(node, StatusError):
            return node.code, node.message
        node = node.cause if isinstance(node, ThunderError) else None
    return None


def get_status_code_from_raw_error(err: BaseException | None) -> GrpcCode:
    """Return the status code carried by ``err``, or INTERNAL."""
    status = _status_of(err)
    return status[0] if status is not None else GrpcCode.INTERNAL


def _as_graphql(ctx: Context, err: BaseException | None, message: str, status: HTTPStatus):
    return _graphql_handle_error(
        ctx, set_default_http_response(err, HTTPResponse(message, int(status)))
    )


def _translate(
    ctx: Context, err: BaseException | None, ignore_not_found: bool
) -> GraphQLError | None:
    status = _status_of(err)
    if status is None:
        return _as_graphql(ctx, err, _INTERNAL_MESSAGE, HTTPStatus.INTERNAL_SERVER_ERROR)
    code, message = status
    if code is GrpcCode.NOT_FOUND:
        if ignore_not_found:
            return None
        return _as_graphql(ctx, err, message, HTTPStatus.NOT_FOUND)
    if code is GrpcCode.INVALID_ARGUMENT:
        return _as_graphql(ctx, err, message, HTTPStatus.BAD_REQUEST)
    if code is GrpcCode.ALREADY_EXISTS:
        return _as_graphql(ctx, err, message, HTTPStatus.CONFLICT)
    return _as_graphql(ctx, err, _INTERNAL_MESSAGE, HTTPStatus.INTERNAL_SERVER_ERROR)


def handle_grpc_error(ctx: Context, err: BaseException | None) -> GraphQLError | None:
    """Turn an error from a gRPC call into a GraphQL error."""
    return _translate(ctx, err, ignore_not_found=False)


def handle_grpc_error_ignoring_not_found(
    ctx: Context, err: BaseException | None
) -> GraphQLError | None:
    """Like handle_grpc_error, but NOT_FOUND yields None."""
    return _translate(ctx, err, ignore_not_found=True)


def stringify_snapshot(resp: Any) -> str:
    """Render a message as text with every double space collapsed."""
    return str(resp).replace("  ", " ")


def unary_server_metadata_propagator(
    ctx: Context,
    req: Any,
    incoming_metadata: Mapping[str, Sequence[str]] | None,
    handler: Callable[[Context, Any], Any],
) -> Any:
    """Call ``handler`` with the thunder metadata of the incoming call in its context."""
    if incoming_metadata is None:
        return handler(ctx, req)

    flat = {key: ",".join(values) for key, values in incoming_metadata.items() if values}
    metadata = Metadata()
    metadata.unmarshal_map(flat)
    return handler(context_with_metadata(ctx, metadata), req)


def unary_client_metadata_propagator(
    ctx: Context,
    method: str,
    req: Any,
    invoker: Callable[[Context, str, Any, list[tuple[str, str]]], Any],
) -> Any:
    """Call ``invoker`` with the context's metadata as outgoing call metadata."""
    outgoing = [
        (key.lower(), value) for key, value in metadata_from_context(ctx).marshal_map().items()
    ]
    return invoker(ctx, method, req, outgoing)