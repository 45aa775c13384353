"""Service building blocks: context metadata, logging, error mapping, events and a WSGI router."""

__version__ = "0.1.0"

__all__ = [
    "context",
    "errors",
    "events",
    "graphql",
    "grpc",
    "logger",
    "recoverer",
    "reflection",
    "response",
    "router",
]