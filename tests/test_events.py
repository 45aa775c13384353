from __future__ import annotations

import io
import json

import pytest

from thunderkit.context import background
from thunderkit.errors import (
    MessageAction,
    ThunderError,
    set_default_message_action,
)
from thunderkit.events import (
    HANDLER_RESPONSE_LOG_ACTIONS,
    EventConsumer,
    EventDecoder,
    Handler,
    HandlerResponse,
    handle_error,
    handle_error_backoff,
    handle_error_with_custom_map,
    match_topic_and_formats_message,
    new_named_handler_from_handler,
)
from thunderkit.logger import context_with_logger, new_logger


class _DictDecoder(EventDecoder):
    def __init__(self, payload):
        self.payload = payload

    def decode(self, message):
        merged = dict(message)
        merged.update(self.payload)
        return merged


class _FailingDecoder(EventDecoder):
    def decode(self, message):
        raise ValueError("bad payload")


class _TopicHandler(Handler):
    def topics(self):
        return ["user.created", "user.deleted"]

    def handle(self, ctx, topic, decoder):
        return HandlerResponse.RETRY if topic == "user.deleted" else HandlerResponse.SUCCESS


def _capturing_context(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    stream = io.StringIO()
    return context_with_logger(background(), new_logger(stream)), stream


def _records(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


def test_no_error_is_success():
    assert handle_error(background(), None) is HandlerResponse.SUCCESS


def test_plain_error_is_retried():
    assert handle_error(background(), ValueError("boom")) is HandlerResponse.RETRY


def test_plain_error_backs_off():
    assert handle_error_backoff(background(), ValueError("boom")) is HandlerResponse.RETRY_BACKOFF


def test_dropped_error_is_success():
    err = set_default_message_action(ValueError("boom"), MessageAction.DROP)
    assert handle_error(background(), err) is HandlerResponse.SUCCESS
    assert handle_error_backoff(background(), err) is HandlerResponse.SUCCESS


def test_custom_map_without_action_dead_letters():
    error_map = {MessageAction.SUCCESS: HandlerResponse.SUCCESS}
    result = handle_error_with_custom_map(background(), ValueError("boom"), error_map)
    assert result is HandlerResponse.DEAD_LETTER


def test_custom_map_is_used():
    error_map = {MessageAction.REQUEUE: HandlerResponse.DEAD_LETTER}
    result = handle_error_with_custom_map(background(), ValueError("boom"), error_map)
    assert result is HandlerResponse.DEAD_LETTER


def test_handle_error_logs_action_and_error(monkeypatch):
    ctx, stream = _capturing_context(monkeypatch)
    handle_error(ctx, ThunderError("wrapped", ValueError("root cause")))
    records = _records(stream)
    assert records[0]["message"] == HANDLER_RESPONSE_LOG_ACTIONS[HandlerResponse.RETRY]
    assert records[0]["level"] == "info"
    assert records[1]["level"] == "error"
    assert records[1]["message"] == "root cause"


def test_named_handler_delegates():
    inner = _TopicHandler()
    named = new_named_handler_from_handler(inner, "audit")
    assert named.queue_posfix() == "audit"
    assert named.topics() == inner.topics()
    assert named.handle(background(), "user.deleted", _DictDecoder({})) is HandlerResponse.RETRY


def test_match_topic_decodes_on_match():
    decoder = _DictDecoder({"name": "ada"})
    result = match_topic_and_formats_message(
        background(), decoder, r"user\..*", "user.created", {"id": 1}
    )
    assert result == {"id": 1, "name": "ada"}


def test_match_topic_returns_none_without_match():
    decoder = _DictDecoder({"name": "ada"})
    assert (
        match_topic_and_formats_message(background(), decoder, "^order", "user.created", {})
        is None
    )


def test_match_topic_invalid_pattern_raises():
    with pytest.raises(ThunderError):
        match_topic_and_formats_message(background(), _DictDecoder({}), "(", "user", {})


def test_match_topic_decoder_error_propagates():
    with pytest.raises(ValueError, match="bad payload"):
        match_topic_and_formats_message(background(), _FailingDecoder(), "user", "user", {})


def test_interfaces_are_abstract():
    with pytest.raises(TypeError):
        EventConsumer()