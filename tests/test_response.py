from http import HTTPStatus

import pytest

from thunderkit.response import (
    Response,
    bad_request,
    conflict,
    forbidden,
    internal_server_error,
    not_found,
    success,
    unauthorized,
)


@pytest.mark.parametrize(
    "factory, status",
    [
        (success, HTTPStatus.OK),
        (unauthorized, HTTPStatus.UNAUTHORIZED),
        (forbidden, HTTPStatus.FORBIDDEN),
        (internal_server_error, HTTPStatus.INTERNAL_SERVER_ERROR),
    ],
)
def test_fixed_responses(factory, status):
    assert factory() == Response(status.phrase, int(status))


@pytest.mark.parametrize(
    "factory, status",
    [
        (bad_request, HTTPStatus.BAD_REQUEST),
        (not_found, HTTPStatus.NOT_FOUND),
        (conflict, HTTPStatus.CONFLICT),
    ],
)
def test_responses_with_message(factory, status):
    response = factory("something went wrong")
    assert response.message == "something went wrong"
    assert response.status == int(status)


def test_success_pins_ok():
    assert success().status == 200


def test_response_is_immutable():
    response = success()
    with pytest.raises(AttributeError):
        response.status = 500  # type: ignore[misc]
    assert response.status == 200
    assert response.message == "OK"