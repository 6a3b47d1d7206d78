"""
Span creation for migration components.

Writers, handlers, stores and repositories take an optional ``tracer``
argument and fall back to ``create_tracer(__name__, enable_tracing)``.
Spans reach an exporter only when the host application installs an
OpenTelemetry SDK tracer provider.

Example:
    >>> class Copier:
    ...     def __init__(self, tracer: Tracer | None = None, enable_tracing: bool = True):
    ...         self._tracer = tracer or create_tracer(__name__, enable_tracing)
    ...
    ...     async def copy(self, job_id: str) -> None:
    ...         with self._tracer.span("feedmigrate.copier.copy", {ATTR_JOB_ID: job_id}):
    ...             ...
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from opentelemetry import trace

if TYPE_CHECKING:
    from opentelemetry.trace import Span

SpanAttributes = dict[str, Any]


@runtime_checkable
class Tracer(Protocol):
    """Something that opens spans around a block of work."""

    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> AbstractContextManager[Span | None]:
        """Open a span named ``name``; the context yields the span or None."""
        ...

    @property
    def enabled(self) -> bool:
        """Whether spans are actually produced."""
        ...


class NullTracer:
    """Tracer used when tracing is switched off."""

    @contextlib.contextmanager
    def span(self, name: str, attributes: SpanAttributes | None = None) -> Iterator[None]:
        yield None

    @property
    def enabled(self) -> bool:
        return False


class OpenTelemetryTracer:
    """
    Tracer backed by ``opentelemetry.trace``.

    Without a configured provider the API returns non-recording spans, so
    this is safe to use even when nothing collects traces.
    """

    def __init__(self, tracer_name: str) -> None:
        self._tracer = trace.get_tracer(tracer_name)

    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> AbstractContextManager[Span | None]:
        return self._tracer.start_as_current_span(name, attributes=attributes or {})

    @property
    def enabled(self) -> bool:
        return True


class MockTracer:
    """
    Tracer that remembers every span it was asked to open.

    >>> tracer = MockTracer()
    >>> with tracer.span("feedmigrate.bulk_writer.execute", {"feedmigrate.batch.size": 3}):
    ...     pass
    >>> tracer.span_names
    ['feedmigrate.bulk_writer.execute']
    """

    def __init__(self) -> None:
        self.spans: list[tuple[str, SpanAttributes | None]] = []

    @contextlib.contextmanager
    def span(self, name: str, attributes: SpanAttributes | None = None) -> Iterator[None]:
        self.spans.append((name, attributes))
        yield None

    @property
    def enabled(self) -> bool:
        return True

    @property
    def span_names(self) -> list[str]:
        return [name for name, _ in self.spans]

    def clear(self) -> None:
        self.spans.clear()


def create_tracer(name: str, enable_tracing: bool = True) -> Tracer:
    """Return an OpenTelemetryTracer named ``name``, or a NullTracer when disabled."""
    return OpenTelemetryTracer(name) if enable_tracing else NullTracer()


__all__ = [
    "SpanAttributes",
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
]
