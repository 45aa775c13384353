"""Request-scoped context values and broker-compatible metadata."""

from __future__ import annotations

import os
import threading
import time
import uuid
from typing import Any, Iterable, Mapping

METADATA_PREFIX = "x-thunder-metadata-"
THUNDER_CORRELATION_ID_METADATA_KEY = "x-thunder-correlation-id"
THUNDER_ID_METADATA_KEY = "x-thunder-id"

_ROOT = object()


class _MetadataKey:
    """Private key under which metadata is stored in a context."""

    def __repr__(self) -> str:
        return "<metadata key>"


_METADATA_KEY = _MetadataKey()


class Context:
    """An immutable chain of key/value pairs, like a request context."""

    __slots__ = ("_parent", "_key", "_value")

    def __init__(self) -> None:
        self._parent: Context | None = None
        self._key: Any = _ROOT
        self._value: Any = None

    def with_value(self, key: Any, value: Any) -> "Context":
        """Return a child context that holds ``value`` under ``key``."""
        child = Context()
        child._parent = self
        child._key = key
        child._value = value
        return child

    def value(self, key: Any) -> Any:
        """Return the nearest value stored under ``key``, or None."""
        node: Context | None = self
        while node is not None:
            if node._key is not _ROOT and node._key == key:
                return node._value
            node = node._parent
        return None


_BACKGROUND = Context()


def background() -> Context:
    """Return the empty root context."""
    return _BACKGROUND


class Metadata:
    """A thread-safe string map whose keys carry the thunder metadata prefix."""

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        self._lock = threading.RLock()
        self._m: dict[str, str] = dict(entries) if entries else {}

    @staticmethod
    def _build_key(key: str) -> str:
        return METADATA_PREFIX + key.lower()

    def get(self, key: str) -> str:
        """Return the value for ``key``, or an empty string."""
        with self._lock:
            return self._m.get(self._build_key(key), "")

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._m[self._build_key(key)] = value

    def set_map(self, m: Mapping[str, str]) -> None:
        with self._lock:
            for key, value in m.items():
                self._m[self._build_key(key)] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._m.pop(self._build_key(key), None)

    def keys(self) -> list[str]:
        """Return the stored keys without the metadata prefix."""
        with self._lock:
            return [key.removeprefix(METADATA_PREFIX) for key in self._m]

    def unmarshal_map(self, m: Mapping[str, str]) -> None:
        """Add entries whose keys carry the metadata prefix; ignore the rest."""
        with self._lock:
            for key, value in m.items():
                if key.startswith(METADATA_PREFIX):
                    self._m[key] = value

    def marshal_map(self) -> dict[str, str]:
        """Return a copy of the entries with their prefixed keys."""
        with self._lock:
            return dict(self._m)

    def _clone(self) -> "Metadata":
        with self._lock:
            return Metadata(self._m)

    def _apply(self, other: "Metadata") -> "Metadata":
        merged = self._clone()
        merged._m.update(other.marshal_map())
        return merged

    def __repr__(self) -> str:
        return f"Metadata({self.marshal_map()!r})"


def new_metadata_from_map(m: Mapping[str, str]) -> Metadata:
    """Build metadata from unprefixed keys."""
    metadata = Metadata()
    metadata.set_map(m)
    return metadata


def context_with_metadata(ctx: Context, metadata: Metadata) -> Context:
    """Return a context whose metadata is the current one merged with ``metadata``."""
    current = metadata_from_context(ctx)
    return ctx.with_value(_METADATA_KEY, current._apply(metadata))


def context_replace_metadata(ctx: Context, metadata: Metadata) -> Context:
    """Return a context holding ``metadata``, replacing any existing metadata."""
    return ctx.with_value(_METADATA_KEY, metadata)


def metadata_from_context(ctx: Context) -> Metadata:
    """Return the context's metadata, or a new empty one."""
    found = ctx.value(_METADATA_KEY)
    if isinstance(found, Metadata):
        return found
    return Metadata()


def _uuid7() -> uuid.UUID:
    millis = time.time_ns() // 1_000_000
    random_bits = int.from_bytes(os.urandom(10), "big")
    value = ((millis & ((1 << 48) - 1)) << 80) | (random_bits & ((1 << 80) - 1))
    value = (value & ~(0xF << 76)) | (0x7 << 76)
    value = (value & ~(0x3 << 62)) | (0x2 << 62)
    return uuid.UUID(int=value)


def correlation_id_from_context(ctx: Context) -> str:
    return metadata_from_context(ctx).get(THUNDER_CORRELATION_ID_METADATA_KEY)


def context_with_correlation_id(ctx: Context, correlation_id: str) -> Context:
    """Store the correlation ID, generating a UUIDv7 when it is empty."""
    metadata = Metadata()
    metadata.set(THUNDER_CORRELATION_ID_METADATA_KEY, correlation_id or str(_uuid7()))
    return context_with_metadata(ctx, metadata)


def message_id_from_context(ctx: Context) -> str:
    return metadata_from_context(ctx).get(THUNDER_ID_METADATA_KEY)


def context_with_message_id(ctx: Context, message_id: str) -> Context:
    metadata = Metadata()
    metadata.set(THUNDER_ID_METADATA_KEY, message_id)
    return context_with_metadata(ctx, metadata)


def _all_keys(metadatas: Iterable[Metadata]) -> set[str]:
    return {key for md in metadatas for key in md.keys()}