"""Optional OpenTelemetry instrumentation for waec_insights.

Call ``waec_insights.instrument()`` once at startup to enable tracing.
Requires ``opentelemetry-api`` to be installed; the client works
identically without it.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "waec_insights") -> None:
    """Enable OpenTelemetry tracing for chat turns and backend requests.

    Call once at startup, after configuring your TracerProvider.
    Requires ``opentelemetry-api``: ``pip install waec-insights[otel]``

    Example::

        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import (
            ConsoleSpanExporter, SimpleSpanProcessor,
        )

        provider = TracerProvider()
        provider.add_span_processor(
            SimpleSpanProcessor(ConsoleSpanExporter())
        )
        trace.set_tracer_provider(provider)

        import waec_insights
        waec_insights.instrument()

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install waec-insights[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured; spans will be "
            "discarded. Set up a TracerProvider to export "
            "traces."
        )
    else:
        logger.info("waec_insights instrumentation enabled")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing."""
    global _tracer
    _tracer = None


@asynccontextmanager
async def chat_span(session_id: str):
    """Wrap one submitted question in a ``chat_turn`` span."""
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(
        "chat_turn",
        attributes={
            "waec.session.id": session_id,
        },
    ) as span:
        yield span


@asynccontextmanager
async def request_span(method: str, path: str):
    """Wrap a backend HTTP call in a client span."""
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    with _tracer.start_as_current_span(
        f"{method} {path}",
        kind=SpanKind.CLIENT,
        attributes={
            "http.request.method": method,
            "url.path": path,
        },
    ) as span:
        yield span


def record_stream_stats(span, fragments: int, characters: int, anomalies: int = 0) -> None:
    """Set streamed-answer size attributes on a span."""
    if span is None:
        return
    span.set_attribute("waec.answer.fragments", fragments)
    span.set_attribute("waec.answer.characters", characters)
    if anomalies:
        span.set_attribute("waec.answer.decode_anomalies", anomalies)


def record_error(span, exception: BaseException) -> None:
    """Record an exception and set ERROR status on a span.

    No-ops when *span* is ``None`` (tracing disabled).
    """
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute(
        "error.type", type(exception).__qualname__
    )
