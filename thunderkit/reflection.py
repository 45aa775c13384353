"""Checked dynamic method calls."""

from __future__ import annotations

import inspect
from typing import Any, Sequence

_CO_VARARGS = 0x04

_BUILTIN_TYPES: dict[str, type] = {
    cls.__name__: cls
    for cls in (
        bool,
        bytearray,
        bytes,
        complex,
        dict,
        float,
        frozenset,
        int,
        list,
        memoryview,
        object,
        range,
        set,
        slice,
        str,
        tuple,
        type,
    )
}

_MISSING = object()


class MethodNotFoundError(AttributeError):
    """The object has no such method."""


class InvalidNumberOfArgumentsError(TypeError):
    """The method takes a different number of arguments."""


class InvalidArgumentTypeError(TypeError):
    """An argument does not match the method's annotated type."""


def _lookup(obj: Any, method_name: str) -> Any:
    """Find ``method_name`` on the type of ``obj`` without running descriptors."""
    attr = inspect.getattr_static(type(obj), method_name, _MISSING)
    if attr is _MISSING:
        return _MISSING
    if isinstance(attr, (staticmethod, classmethod)) or callable(attr):
        return attr
    return _MISSING


def has_method(obj: Any, method_name: str) -> bool:
    """Report whether the type of ``obj`` has a callable named ``method_name``."""
    return _lookup(obj, method_name) is not _MISSING


def _resolve(annotation: Any, namespace: dict[str, Any]) -> Any:
    """Turn a plain-name string annotation into the object it names, if known."""
    if not isinstance(annotation, str):
        return annotation
    name = annotation.strip()
    if name in namespace:
        return namespace[name]
    return _BUILTIN_TYPES.get(name)


def _check_type(position: int, arg: Any, expected: Any) -> None:
    if isinstance(expected, type) and not isinstance(arg, expected):
        raise InvalidArgumentTypeError(
            f"argument {position} is of type {type(arg).__name__}, "
            f"expected {expected.__name__}"
        )


def safe_call_method(obj: Any, method_name: str, args: Sequence[Any]) -> Any:
    """Call ``obj.method_name(*args)`` after checking the count and annotated types."""
    attr = _lookup(obj, method_name)
    if attr is _MISSING:
        raise MethodNotFoundError("method not found")
    binder = inspect.getattr_static(type(attr), "__get__", None)
    method = attr.__get__(obj, type(obj)) if binder is not None else attr
    function = getattr(method, "__func__", method)
    code = getattr(function, "__code__", None)
    if code is None:
        return method(*args)

    names = list(code.co_varnames[: code.co_argcount])
    if function is not method and getattr(method, "__self__", None) is not None:
        names = names[1:]
    variadic = None
    if code.co_flags & _CO_VARARGS:
        variadic = code.co_varnames[code.co_argcount + code.co_kwonlyargcount]

    if (variadic is None and len(args) != len(names)) or (
        variadic is not None and len(args) < len(names)
    ):
        raise InvalidNumberOfArgumentsError(
            f"invalid number of arguments: expected {len(names)} arguments, got {len(args)}"
        )

    annotations = getattr(function, "__annotations__", {}) or {}
    namespace = getattr(function, "__globals__", {})
    for position, arg in enumerate(args, start=1):
        name = names[position - 1] if position <= len(names) else variadic
        _check_type(position, arg, _resolve(annotations.get(name), namespace))

    return method(*args)