from __future__ import annotations

from http import HTTPStatus

from thunderkit.context import (
    Metadata,
    background,
    context_with_metadata,
    metadata_from_context,
)
from thunderkit.errors import GrpcCode, GrpcResponse, ThunderError, wrap
from thunderkit.grpc import (
    StatusError,
    get_status_code_from_raw_error,
    handle_error,
    handle_grpc_error,
    handle_grpc_error_ignoring_not_found,
    stringify_snapshot,
    unary_client_metadata_propagator,
    unary_server_metadata_propagator,
)


class _Snapshot:
    def __init__(self, text):
        self.text = text

    def __str__(self):
        return self.text


def test_handle_error_none():
    assert handle_error(background(), None) is None


def test_handle_error_plain_is_internal():
    status = handle_error(background(), ValueError("boom"))
    assert status.code is GrpcCode.INTERNAL
    assert status.message == "internal error"


def test_handle_error_uses_carried_response():
    err = ThunderError("", ValueError("x"), grpc_response=GrpcResponse("nope", GrpcCode.NOT_FOUND))
    status = handle_error(background(), err)
    assert (status.code, status.message) == (GrpcCode.NOT_FOUND, "nope")


def test_status_code_from_raw_error():
    assert get_status_code_from_raw_error(StatusError(GrpcCode.NOT_FOUND, "x")) is GrpcCode.NOT_FOUND
    wrapped = wrap(StatusError(GrpcCode.ALREADY_EXISTS, "x"), "calling")
    assert get_status_code_from_raw_error(wrapped) is GrpcCode.ALREADY_EXISTS
    assert get_status_code_from_raw_error(ValueError("x")) is GrpcCode.INTERNAL


def test_not_found_maps_to_404():
    gql = handle_grpc_error(background(), StatusError(GrpcCode.NOT_FOUND, "no user"))
    assert gql.message == "no user"
    assert gql.extensions["status"] == int(HTTPStatus.NOT_FOUND)


def test_invalid_argument_maps_to_400():
    gql = handle_grpc_error(background(), StatusError(GrpcCode.INVALID_ARGUMENT, "bad id"))
    assert gql.message == "bad id"
    assert gql.extensions["status"] == int(HTTPStatus.BAD_REQUEST)


def test_already_exists_maps_to_409():
    gql = handle_grpc_error(background(), StatusError(GrpcCode.ALREADY_EXISTS, "dup"))
    assert gql.extensions["status"] == int(HTTPStatus.CONFLICT)


def test_other_codes_are_internal():
    for err in (StatusError(GrpcCode.UNAVAILABLE, "down"), ValueError("x")):
        gql = handle_grpc_error(background(), err)
        assert gql.extensions["status"] == int(HTTPStatus.INTERNAL_SERVER_ERROR)
        assert gql.message == HTTPStatus.INTERNAL_SERVER_ERROR.phrase


def test_ignoring_not_found():
    assert handle_grpc_error_ignoring_not_found(
        background(), StatusError(GrpcCode.NOT_FOUND, "x")
    ) is None
    gql = handle_grpc_error_ignoring_not_found(
        background(), StatusError(GrpcCode.INVALID_ARGUMENT, "bad")
    )
    assert gql.extensions["status"] == int(HTTPStatus.BAD_REQUEST)


def test_stringify_snapshot():
    assert stringify_snapshot(_Snapshot("a  b")) == "a b"
    assert stringify_snapshot(_Snapshot("plain text")) == "plain text"


def test_server_propagator_reads_metadata():
    incoming = {
        "x-thunder-metadata-key": ["value"],
        "x-thunder-metadata-multi": ["a", "b"],
        "x-thunder-metadata-empty": [],
        "user-agent": ["grpc"],
    }

    def handler(ctx, req):
        return req, metadata_from_context(ctx)

    req, metadata = unary_server_metadata_propagator(background(), "req", incoming, handler)
    assert req == "req"
    assert metadata.get("key") == "value"
    assert metadata.get("multi") == "a,b"
    assert sorted(metadata.keys()) == ["key", "multi"]


def test_server_propagator_without_metadata_keeps_context():
    ctx = background()
    result = unary_server_metadata_propagator(ctx, 1, None, lambda c, r: c)
    assert result is ctx


def test_client_propagator_sends_metadata():
    metadata = Metadata()
    metadata.set("Key", "value")
    ctx = context_with_metadata(background(), metadata)
    captured = {}

    def invoker(call_ctx, method, req, outgoing):
        captured["outgoing"] = outgoing
        return method, req

    assert unary_client_metadata_propagator(ctx, "/svc/Call", "req", invoker) == ("/svc/Call", "req")
    assert ("x-thunder-metadata-key", "value") in captured["outgoing"]