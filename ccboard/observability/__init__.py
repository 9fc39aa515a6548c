"""Observability helpers."""

from ccboard.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_reload,
    record_parser_failure,
    record_hook_events,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_reload",
    "record_parser_failure",
    "record_hook_events",
]
