"""HTTP routing with the standard middleware stack, as a WSGI application."""

from __future__ import annotations

import abc
import base64
import ipaddress
import itertools
import logging
import os
import re
import socket
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Sequence
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from .context import Context, background, context_with_correlation_id
from .errors import ThunderError
from .logger import context_with_logger

CONTEXT_KEY = "thunderkit.context"
"""Environ key holding the request's Context."""

URL_PARAMS_KEY = "thunderkit.url_params"
"""Environ key holding the path parameters of the matched route."""

HEALTH_PATH = "/health"
ANY_METHOD = "*"

READ_TIMEOUT = 5.0

WSGIApp = Callable[[dict, Callable[..., Any]], Iterable[bytes]]
Middleware = Callable[[WSGIApp], WSGIApp]
RouteHandler = Callable[[Context, dict, Callable[..., Any]], Iterable[bytes]]


def _context_of(environ: Mapping[str, Any]) -> Context:
    ctx = environ.get(CONTEXT_KEY)
    return ctx if isinstance(ctx, Context) else background()


def _with_context(environ: dict, ctx: Context) -> dict:
    updated = dict(environ)
    updated[CONTEXT_KEY] = ctx
    return updated


class HTTPHandler(abc.ABC):
    """A request handler that knows its own method and route pattern."""

    @abc.abstractmethod
    def method(self) -> str:
        """Return the HTTP method the handler answers."""

    @abc.abstractmethod
    def pattern(self) -> str:
        """Return the route pattern, such as ``/items/{id}``."""

    @abc.abstractmethod
    def serve(
        self, ctx: Context, environ: dict, start_response: Callable[..., Any]
    ) -> Iterable[bytes]:
        """Serve one request, WSGI style, with the request context."""

    def __call__(
        self, ctx: Context, environ: dict, start_response: Callable[..., Any]
    ) -> Iterable[bytes]:
        return self.serve(ctx, environ, start_response)


_PARAM = re.compile(r"\{([^{}:]+)(?::([^{}]+))?\}")


def _compile_pattern(pattern: str) -> tuple[re.Pattern[str], bool]:
    """Compile a route pattern; report whether it is purely static."""
    parts: list[str] = []
    position = 0
    static = True
    for match in _PARAM.finditer(pattern):
        static = False
        parts.append(re.escape(pattern[position : match.start()]))
        name, expression = match.group(1), match.group(2)
        parts.append(f"(?P<{name}>{expression or '[^/]+'})")
        position = match.end()
    rest = pattern[position:]
    if rest.endswith("*"):
        static = False
        parts.append(re.escape(rest[:-1]))
        parts.append("(?P<_wildcard>.*)")
    else:
        parts.append(re.escape(rest))
    return re.compile("".join(parts)), static


@dataclass
class _Route:
    pattern: str
    regex: re.Pattern[str]
    static: bool
    handlers: dict[str, RouteHandler] = field(default_factory=dict)


class Router:
    """A WSGI application dispatching requests by method and route pattern."""

    def __init__(self) -> None:
        self._middlewares: list[Middleware] = []
        self._routes: dict[str, _Route] = {}

    def use(self, middleware: Middleware) -> None:
        """Add a middleware; the first one added sees requests first."""
        self._middlewares.append(middleware)

    def handle(self, method: str | None, pattern: str, handler: RouteHandler) -> None:
        """Route ``method`` requests for ``pattern``; None routes every method."""
        route = self._routes.get(pattern)
        if route is None:
            regex, static = _compile_pattern(pattern)
            route = _Route(pattern, regex, static)
            self._routes[pattern] = route
        route.handlers[(method or ANY_METHOD).upper()] = handler

    def _ordered_routes(self) -> list[_Route]:
        return sorted(self._routes.values(), key=lambda route: not route.static)

    def _dispatch(self, environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
        path = environ.get("PATH_INFO", "") or "/"
        method = environ.get("REQUEST_METHOD", "GET").upper()
        path_matched = False
        for route in self._ordered_routes():
            match = route.regex.fullmatch(path)
            if match is None:
                continue
            path_matched = True
            handler = route.handlers.get(method) or route.handlers.get(ANY_METHOD)
            if handler is None:
                continue
            params = {k: v for k, v in match.groupdict().items()}
            if "_wildcard" in params:
                params["*"] = params.pop("_wildcard")
            routed = dict(environ)
            routed[URL_PARAMS_KEY] = params
            return handler(_context_of(routed), routed, start_response)

        if path_matched:
            start_response("405 Method Not Allowed", [])
            return [b""]
        start_response("404 Not Found", [("Content-Type", "text/plain; charset=utf-8")])
        return [b"404 page not found\n"]

    def __call__(self, environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
        app: WSGIApp = self._dispatch
        for middleware in reversed(self._middlewares):
            app = middleware(app)
        return app(environ, start_response)


def _heartbeat(endpoint: str) -> Middleware:
    def middleware(app: WSGIApp) -> WSGIApp:
        def wrapped(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
            method = environ.get("REQUEST_METHOD", "GET").upper()
            path = environ.get("PATH_INFO", "")
            if method in ("GET", "HEAD") and path.lower() == endpoint.lower():
                start_response("200 OK", [("Content-Type", "text/plain")])
                return [b"."]
            return app(environ, start_response)

        return wrapped

    return middleware


def correlation_id_middleware(app: WSGIApp) -> WSGIApp:
    """Put the X-Correlation-ID header, or a fresh ID, into the request context."""

    def wrapped(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
        correlation_id = environ.get("HTTP_X_CORRELATION_ID", "")
        ctx = context_with_correlation_id(_context_of(environ), correlation_id)
        return app(_with_context(environ, ctx), start_response)

    return wrapped


def _valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def _real_ip(app: WSGIApp) -> WSGIApp:
    def wrapped(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
        if environ.get("HTTP_TRUE_CLIENT_IP"):
            candidate = environ["HTTP_TRUE_CLIENT_IP"]
        elif environ.get("HTTP_X_REAL_IP"):
            candidate = environ["HTTP_X_REAL_IP"]
        elif environ.get("HTTP_X_FORWARDED_FOR"):
            candidate = environ["HTTP_X_FORWARDED_FOR"].split(",")[0].strip()
        else:
            candidate = ""
        if candidate and _valid_ip(candidate):
            environ = dict(environ)
            environ["REMOTE_ADDR"] = candidate
        return app(environ, start_response)

    return wrapped


class _RequestIDKey:
    def __repr__(self) -> str:
        return "<request id key>"


_REQUEST_ID_KEY = _RequestIDKey()


def _request_id_prefix() -> str:
    hostname = socket.gethostname() or "localhost"
    random_part = ""
    while len(random_part) < 10:
        encoded = base64.b64encode(os.urandom(12)).decode("ascii")
        random_part = encoded.replace("+", "").replace("/", "")[:10]
    return f"{hostname}/{random_part}"


_REQUEST_ID_PREFIX = _request_id_prefix()
_request_counter = itertools.count(1)


def _request_id(app: WSGIApp) -> WSGIApp:
    def wrapped(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
        request_id = environ.get("HTTP_X_REQUEST_ID", "")
        if not request_id:
            request_id = f"{_REQUEST_ID_PREFIX}-{next(_request_counter):06d}"
        ctx = _context_of(environ).with_value(_REQUEST_ID_KEY, request_id)
        return app(_with_context(environ, ctx), start_response)

    return wrapped


class _FieldsFilter(logging.Filter):
    def __init__(self, fields: Mapping[str, Any]) -> None:
        super().__init__()
        self._fields = dict(fields)

    def filter(self, record: logging.LogRecord) -> bool:
        record.fields = {**self._fields, **(getattr(record, "fields", None) or {})}
        return True


def _logger_with_fields(logger: logging.Logger, fields: Mapping[str, Any]) -> logging.Logger:
    child = logging.Logger(logger.name, logger.level)
    child.propagate = False
    for handler in logger.handlers:
        child.addHandler(handler)
    for existing in logger.filters:
        child.addFilter(existing)
    child.addFilter(_FieldsFilter(fields))
    return child


def logger_middleware(logger: logging.Logger) -> Middleware:
    """Return a middleware that puts ``logger``, tagged with the client IP, in the context."""

    def middleware(app: WSGIApp) -> WSGIApp:
        def wrapped(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
            request_logger = _logger_with_fields(
                logger, {"ip": environ.get("REMOTE_ADDR", "")}
            )
            ctx = context_with_logger(_context_of(environ), request_logger)
            return app(_with_context(environ, ctx), start_response)

        return wrapped

    return middleware


def new_router(logger: logging.Logger) -> Router:
    """Build a router with the default middleware stack."""
    router = Router()
    # The heartbeat comes first to keep health checks lean.
    router.use(_heartbeat(HEALTH_PATH))
    router.use(correlation_id_middleware)
    router.use(_real_ip)
    router.use(_request_id)
    router.use(logger_middleware(logger))
    return router


def _health(ctx: Context, environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
    start_response("200 OK", [])
    return [b""]


def register_routes(
    handlers: Sequence[HTTPHandler], logger: logging.Logger, router: Router
) -> None:
    """Register a health route and every handler on ``router``."""
    # Keeps health checks answering even when no route is registered.
    router.handle(None, HEALTH_PATH, _health)
    for handler in handlers:
        logger.debug(f"Registering {handler.pattern()} {handler.method()}")
        router.handle(handler.method(), handler.pattern(), handler)


def _make_request_handler(logger: logging.Logger) -> type[WSGIRequestHandler]:
    class _RequestHandler(WSGIRequestHandler):
        timeout = READ_TIMEOUT

        def log_message(self, format: str, *args: Any) -> None:
            logger.debug(format % args)

    return _RequestHandler


def create_server(
    handlers: Sequence[HTTPHandler], logger: logging.Logger, router: Router
) -> WSGIServer:
    """Register the handlers and return a server bound to the PORT environment variable."""
    register_routes(handlers, logger, router)
    port_text = os.environ.get("PORT", "")
    try:
        port = int(port_text) if port_text else 0
        return make_server("", port, router, handler_class=_make_request_handler(logger))
    except (OSError, ValueError, OverflowError) as exc:
        raise ThunderError("failed to listen on port", exc) from exc