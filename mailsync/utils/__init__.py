"""Utility modules."""

from mailsync.utils.logger import bind_context, clear_context, get_logger, unbind_context
from mailsync.utils.tracing import get_tracer, init_tracing, mark_span_failed, shutdown_tracing

__all__ = [
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "get_tracer",
    "mark_span_failed",
    "init_tracing",
    "shutdown_tracing",
]
