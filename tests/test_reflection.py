from __future__ import annotations

import pytest

from thunderkit.reflection import (
    InvalidArgumentTypeError,
    InvalidNumberOfArgumentsError,
    MethodNotFoundError,
    has_method,
    safe_call_method,
)


class Greeter:
    def greet(self, name: str, times: int) -> str:
        return " ".join([name] * times)

    def total(self, label: str, *values: int) -> tuple:
        return label, sum(values)

    def anything(self, value):
        return value


def test_has_method():
    assert has_method(Greeter(), "greet") is True
    assert has_method(Greeter(), "missing") is False


def test_safe_call_method_calls():
    assert safe_call_method(Greeter(), "greet", ["hi", 2]) == "hi hi"


def test_missing_method():
    with pytest.raises(MethodNotFoundError):
        safe_call_method(Greeter(), "missing", [])


def test_wrong_number_of_arguments():
    with pytest.raises(InvalidNumberOfArgumentsError):
        safe_call_method(Greeter(), "greet", ["hi"])


def test_wrong_argument_type():
    with pytest.raises(InvalidArgumentTypeError, match="argument 2"):
        safe_call_method(Greeter(), "greet", ["hi", "two"])


def test_variadic_call():
    assert safe_call_method(Greeter(), "total", ["sum", 1, 2, 3]) == ("sum", 6)
    assert safe_call_method(Greeter(), "total", ["none"]) == ("none", 0)


def test_variadic_wrong_type():
    with pytest.raises(InvalidArgumentTypeError, match="argument 3"):
        safe_call_method(Greeter(), "total", ["sum", 1, "x"])


def test_variadic_missing_fixed_argument():
    with pytest.raises(InvalidNumberOfArgumentsError):
        safe_call_method(Greeter(), "total", [])


def test_unannotated_accepts_any_type():
    value = object()
    assert safe_call_method(Greeter(), "anything", [value]) is value