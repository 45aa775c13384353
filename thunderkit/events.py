"""Event handler contracts and translation of handler errors into broker responses."""

from __future__ import annotations

import abc
import enum
import logging
import re
from typing import Any, Mapping

from .context import Context
from .errors import MessageAction, ThunderError, get_default_message_action, log_error
from .logger import logger_from_context


class HandlerResponse(enum.IntEnum):
    """What the broker should do with a handled message."""

    SUCCESS = 0
    """Remove the message from the queue."""
    DEAD_LETTER = 1
    """Deliver the message to the server's dead-letter queue."""
    RETRY = 2
    """Deliver the message to a different worker."""
    RETRY_BACKOFF = 3
    """Deliver the message again after a backoff delay."""


ErrorMap = Mapping[MessageAction, HandlerResponse]

DEFAULT_ERROR_MAP: dict[MessageAction, HandlerResponse] = {
    MessageAction.SUCCESS: HandlerResponse.SUCCESS,
    MessageAction.DROP: HandlerResponse.SUCCESS,
    MessageAction.REQUEUE: HandlerResponse.RETRY,
}

RETRY_BACKOFF_ERROR_MAP: dict[MessageAction, HandlerResponse] = {
    MessageAction.SUCCESS: HandlerResponse.SUCCESS,
    MessageAction.DROP: HandlerResponse.SUCCESS,
    MessageAction.REQUEUE: HandlerResponse.RETRY_BACKOFF,
}

HANDLER_RESPONSE_LOG_ACTIONS: dict[HandlerResponse, str] = {
    HandlerResponse.SUCCESS: "message processed successfully",
    HandlerResponse.DEAD_LETTER: "dead lettering message",
    HandlerResponse.RETRY: "requeuing message",
    HandlerResponse.RETRY_BACKOFF: "requeuing message with backoff",
}

_UNKNOWN_ACTION_LOG = "message handled with unknown action"


class EventDecoder(abc.ABC):
    """Decodes an event payload."""

    @abc.abstractmethod
    def decode(self, message: Any) -> Any:
        """Decode the payload into the shape of ``message`` and return it.

        Raises if the payload cannot be decoded.
        """


class Handler(abc.ABC):
    """Handles the messages of the topics it subscribes to."""

    @abc.abstractmethod
    def topics(self) -> list[str]:
        """Return the topics the consumer subscribes to."""

    @abc.abstractmethod
    def handle(self, ctx: Context, topic: str, decoder: EventDecoder) -> HandlerResponse:
        """Handle one received message."""


class NamedHandler(Handler):
    """A handler with a queue name postfix of its own."""

    @abc.abstractmethod
    def queue_posfix(self) -> str:
        """Return the postfix appended to the queue name."""


class EventConsumer(abc.ABC):
    """Delivers subscribed messages to a handler."""

    @abc.abstractmethod
    def subscribe(self, ctx: Context, handler: Handler) -> None:
        """Subscribe ``handler`` to its topics; raise if the subscription fails."""

    @abc.abstractmethod
    def close(self, ctx: Context) -> None:
        """Close gracefully, making sure all messages are processed."""


class EventPublisher(abc.ABC):
    """Publishes messages to topics."""

    @abc.abstractmethod
    def start_publisher(self, ctx: Context) -> None:
        """Start publishing in the background; raise if it fails to start."""

    @abc.abstractmethod
    def publish(self, ctx: Context, topic: str, payload: Any) -> None:
        """Publish ``payload`` to ``topic`` asynchronously."""

    @abc.abstractmethod
    def close(self, ctx: Context) -> None:
        """Close gracefully, making sure all messages are published."""


class _NamedHandler(NamedHandler):
    def __init__(self, handler: Handler, queue_posfix: str) -> None:
        self._handler = handler
        self._queue_posfix = queue_posfix

    def topics(self) -> list[str]:
        return self._handler.topics()

    def handle(self, ctx: Context, topic: str, decoder: EventDecoder) -> HandlerResponse:
        return self._handler.handle(ctx, topic, decoder)

    def queue_posfix(self) -> str:
        return self._queue_posfix


def new_named_handler_from_handler(handler: Handler, queue_posfix: str) -> NamedHandler:
    """Give ``handler`` a queue name postfix."""
    return _NamedHandler(handler, queue_posfix)


def _handle_error(
    ctx: Context, err: BaseException | None, error_map: ErrorMap
) -> HandlerResponse:
    action = get_default_message_action(err)
    response = error_map.get(action, HandlerResponse.DEAD_LETTER)
    log_message = HANDLER_RESPONSE_LOG_ACTIONS.get(response, _UNKNOWN_ACTION_LOG)

    fields = {"error": str(err)} if err is not None else {}
    logger_from_context(ctx).log(
        logging.INFO, log_message, extra={"ctx": ctx, "fields": fields}
    )
    log_error(ctx, err)
    return response


def handle_error(ctx: Context, err: BaseException | None) -> HandlerResponse:
    """Translate an error into a handler response; requeued errors are retried."""
    return _handle_error(ctx, err, DEFAULT_ERROR_MAP)


def handle_error_backoff(ctx: Context, err: BaseException | None) -> HandlerResponse:
    """Translate an error into a handler response; requeued errors back off."""
    return _handle_error(ctx, err, RETRY_BACKOFF_ERROR_MAP)


def handle_error_with_custom_map(
    ctx: Context, err: BaseException | None, error_map: ErrorMap
) -> HandlerResponse:
    """Translate an error using ``error_map``; unmapped actions dead-letter."""
    return _handle_error(ctx, err, error_map)


def match_topic_and_formats_message(
    ctx: Context,
    decoder: EventDecoder,
    reference_topic: str,
    topic: str,
    message: Any,
) -> Any:
    """Decode the message if ``topic`` matches the ``reference_topic`` pattern.

    Deprecated. Returns None when the topic does not match.
    """
    try:
        matched = re.search(reference_topic, topic) is not None
    except re.error as exc:
        raise ThunderError("Failed to match topic", exc) from exc
    if not matched:
        return None
    return decoder.decode(message)