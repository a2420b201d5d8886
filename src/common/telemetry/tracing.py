"""
Tracing Utilities.

Provides decorators and helpers for distributed tracing.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from src.common.telemetry.setup import get_tracer

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def trace_async(
    name: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> Callable[[F], F]:
    """
    Decorator for tracing async functions.

    Args:
        name: Span name (defaults to function name)
        attributes: Static attributes to add to span

    Example:
        @trace_async("relation_action.process")
        async def process(ctx, msg) -> bool:
            ...
    """

    def decorator(func: F) -> F:
        span_name = name or func.__name__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            tracer = get_tracer()
            with tracer.start_as_current_span(span_name) as span:
                if attributes:
                    span.set_attributes(attributes)
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    record_exception(e, span)
                    raise

        return wrapper  # type: ignore

    return decorator


def add_span_attributes(attributes: dict[str, Any]) -> None:
    """
    Add attributes to the current span.

    Example:
        add_span_attributes({"entity.type": "DEVICE", "entity.name": name})
    """
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attributes(attributes)


def record_exception(exception: BaseException, span: Any = None) -> None:
    """
    Record an exception on the current or specified span.

    Args:
        exception: The exception to record
        span: Optional span (uses current span if not provided)
    """
    if span is None:
        span = trace.get_current_span()

    if span.is_recording():
        span.record_exception(exception)
        span.set_status(Status(StatusCode.ERROR, str(exception)))
