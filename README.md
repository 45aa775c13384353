# thunderkit

Building blocks for services written in Python. The package has no
dependencies outside the standard library.

## What is in it

- `thunderkit.context`: `Context` is an immutable chain of key/value pairs,
  with `background()` as its empty root. `Metadata` is a thread-safe string map
  whose keys are stored lower-cased behind the `x-thunder-metadata-` prefix.
  `marshal_map()` returns the prefixed entries. `unmarshal_map()` takes back
  only prefixed entries and ignores the rest, so metadata can travel through
  broker headers and gRPC metadata.
  `context_with_metadata(ctx, md)` merges `md` into a copy of the metadata
  already in the context. `context_replace_metadata` replaces that metadata.
  `metadata_from_context` returns it, or a new empty `Metadata`.
  `context_with_correlation_id` / `correlation_id_from_context` and
  `context_with_message_id` / `message_id_from_context` are built on top of
  these. An empty correlation ID is replaced by a freshly generated UUIDv7.
- `thunderkit.response`: the frozen dataclass `Response(message, status)` and
  the constructors `success()`, `bad_request(message)`, `unauthorized()`,
  `forbidden()`, `not_found(message)`, `conflict(message)` and
  `internal_server_error()`.
- `thunderkit.logger`: `new_logger(output)` builds a `logging.Logger` that
  writes to `output`.
  - The level comes from `LOG_LEVEL`: `none` turns logging off, `trace` selects
    trace, `debug` or an unset variable selects debug, and any other value
    selects info.
  - The format comes from `ENVIRONMENT`: `test`, `local` or an unset variable
    give one human-readable line per record. Any other value gives JSON lines.
  - `CorrelationIDFilter` tags a record with the correlation ID of the
    `Context` passed as `extra={"ctx": ctx}`.
  - `context_with_logger` stores a logger in a context, and
    `logger_from_context` reads it back. A context without a logger yields a
    logger that discards everything.
- `thunderkit.errors`: `ThunderError` wraps another error and may carry a
  `LogLevel`, an `HTTPResponse`, a `GrpcResponse` and a `MessageAction`. A hint
  that an error does not set is looked up on the errors it wraps.
  - The helpers are `wrap`, `cause`, `get_error_log_level`,
    `set_error_log_level`, `get_default_http_response`,
    `set_default_http_response`, `get_default_grpc_response`,
    `get_default_message_action` and `set_default_message_action`.
  - Defaults for an error without hints: log level error, HTTP 500, gRPC
    `INTERNAL` with the message "internal error", and message action requeue.
  - `log_error(ctx, err)` logs the innermost cause with the context's logger at
    the error's level. A panic-level error raises `RuntimeError` after logging,
    and a fatal-level error raises `SystemExit`.
- `thunderkit.recoverer`: `recover(ctx, value)` wraps a recovered value as
  "recovered from panic", logs it at panic level and returns the error.
- `thunderkit.events`: the abstract `Handler`, `NamedHandler`, `EventDecoder`,
  `EventConsumer` and `EventPublisher`, and the `HandlerResponse` enum
  (`SUCCESS`, `DEAD_LETTER`, `RETRY`, `RETRY_BACKOFF`).
  - `new_named_handler_from_handler` gives a handler a queue postfix.
  - `handle_error` maps the error's message action to a response. Success and
    drop give `SUCCESS`, requeue gives `RETRY`. `handle_error_backoff` gives
    `RETRY_BACKOFF` for requeue instead.
  - `handle_error_with_custom_map` takes its own map and dead-letters any
    action the map does not list.
  - `match_topic_and_formats_message` is deprecated. It decodes the message
    when the topic matches a regular expression.
- `thunderkit.graphql`: `handle_error(ctx, err)` returns `None` for a 2xx HTTP
  response. Otherwise it logs the error and returns a `GraphQLError` with
  `extensions={"status": status}`. 4xx errors are logged at info level. 5xx
  errors show only the standard status text.
- `thunderkit.grpc`: `StatusError(code, message)`.
  - `handle_error` turns an error into a `StatusError`, or `None` when the code
    is OK.
  - `handle_grpc_error` and `handle_grpc_error_ignoring_not_found` turn the
    status of a failed gRPC call into a `GraphQLError`: not found gives 404,
    invalid argument 400, already exists 409, and anything else 500 with
    "internal error".
  - `get_status_code_from_raw_error` returns the status code an error carries.
  - `stringify_snapshot` collapses double spaces in a message's text form.
  - `unary_server_metadata_propagator` and `unary_client_metadata_propagator`
    carry thunder metadata in and out of unary calls. They take plain mappings
    and callables.
- `thunderkit.reflection`: `has_method(obj, name)` and
  `safe_call_method(obj, name, args)`. The call checks the number of arguments
  and the annotated argument types before calling. It raises
  `MethodNotFoundError`, `InvalidNumberOfArgumentsError` or
  `InvalidArgumentTypeError`.
- `thunderkit.router`: `Router` is a WSGI application that routes by method and
  pattern, with patterns such as `/items/{id}` and a trailing `*` wildcard.
  - `new_router(logger)` adds the default middleware in this order: a
    `/health` heartbeat, `correlation_id_middleware` (reads
    `X-Correlation-ID`), a real-IP middleware, a request-ID middleware, and
    `logger_middleware` (puts the logger, tagged with the client IP, in the
    request context).
  - `register_routes` adds a `/health` route and every `HTTPHandler`.
  - `create_server` registers the handlers and returns a `wsgiref` server
    bound to the port in `PORT`. An unset `PORT` binds any free port. A
    failure to listen raises `ThunderError`.

## Example

```python
import sys

from thunderkit.context import background, context_with_correlation_id
from thunderkit.errors import HTTPResponse, ThunderError
from thunderkit.graphql import handle_error
from thunderkit.logger import context_with_logger, new_logger

logger = new_logger(sys.stdout)
ctx = context_with_logger(context_with_correlation_id(background(), ""), logger)

err = ThunderError("lookup failed", http_response=HTTPResponse("item not found", 404))
gql = handle_error(ctx, err)  # logged at info level
print(gql.message, gql.extensions)  # item not found {'status': 404}
```

Serving HTTP handlers:

```python
import sys

from thunderkit.logger import new_logger
from thunderkit.router import URL_PARAMS_KEY, HTTPHandler, create_server, new_router


class Hello(HTTPHandler):
    def method(self):
        return "GET"

    def pattern(self):
        return "/hello/{name}"

    def serve(self, ctx, environ, start_response):
        start_response("200 OK", [("Content-Type", "text/plain")])
        return [f"hello {environ[URL_PARAMS_KEY]['name']}".encode()]


logger = new_logger(sys.stdout)
server = create_server([Hello()], logger, new_router(logger))
server.serve_forever()
```

## What it does not do

The package defines the event consumer and publisher interfaces but has no
message broker client. It defines no outbox storage, no gRPC server, no
GraphQL executor and no tracing integration. `create_server` returns the
single-threaded `wsgiref` server from the standard library. The package has no
command-line entry point.

## Running the tests

```
pip install -e ".[test]"
pytest
```