"""Unit tests for the instrumentation module.

Tests use unittest.mock for OTel interactions.  ``opentelemetry-api``
is a test dependency so we can import ``SpanKind`` / ``StatusCode``
directly for assertion accuracy.
"""

import logging
from unittest.mock import MagicMock, patch

import pytest
from opentelemetry.trace import SpanKind, StatusCode

import waec_insights.instrumentation as inst
from waec_insights.instrumentation import (
    chat_span,
    record_error,
    record_stream_stats,
    request_span,
    uninstrument,
)


@pytest.fixture(autouse=True)
def _reset_tracer():
    """Ensure _tracer is reset to None before and after each test."""
    inst._tracer = None
    yield
    inst._tracer = None


# -------------------------------------------------------------------
# instrument()
# -------------------------------------------------------------------


class TestInstrument:
    def test_raises_without_otel_installed(self):
        with patch(
            "importlib.util.find_spec", return_value=None
        ):
            with pytest.raises(
                ImportError, match="pip install"
            ):
                inst.instrument()

    def _mock_otel(self, mock_trace):
        """Patch find_spec + sys.modules for a mock OTel env."""
        return (
            patch(
                "importlib.util.find_spec",
                return_value=MagicMock(),
            ),
            patch.dict(
                "sys.modules",
                {
                    "opentelemetry": MagicMock(
                        trace=mock_trace
                    ),
                    "opentelemetry.trace": mock_trace,
                },
            ),
        )

    def test_sets_global_tracer(self):
        mock_tracer = MagicMock()
        mock_trace = MagicMock()
        mock_trace.get_tracer.return_value = mock_tracer
        mock_trace.NoOpTracer = type("NoOpTracer", (), {})

        p1, p2 = self._mock_otel(mock_trace)
        with p1, p2:
            inst.instrument()

        assert inst._tracer is mock_tracer
        mock_trace.get_tracer.assert_called_once_with(
            "waec_insights"
        )

    def test_logs_message_for_noop_tracer(self, caplog):
        NoOpTracer = type("NoOpTracer", (), {})
        mock_trace = MagicMock()
        mock_trace.get_tracer.return_value = NoOpTracer()
        mock_trace.NoOpTracer = NoOpTracer

        p1, p2 = self._mock_otel(mock_trace)
        with p1, p2:
            with caplog.at_level(
                logging.INFO,
                logger="waec_insights.instrumentation",
            ):
                inst.instrument()

        assert any(
            "No TracerProvider configured" in r.message
            for r in caplog.records
        )


class TestUninstrument:
    def test_clears_tracer(self):
        inst._tracer = MagicMock()
        uninstrument()
        assert inst._tracer is None


# -------------------------------------------------------------------
# Span helpers
# -------------------------------------------------------------------


class TestSpansUninstrumented:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "span_fn,args",
        [
            (chat_span, ("s1",)),
            (request_span, ("POST", "/chat")),
        ],
        ids=["chat_span", "request_span"],
    )
    async def test_span_yields_none_without_tracer(
        self, span_fn, args
    ):
        async with span_fn(*args) as s:
            assert s is None


class TestSpansInstrumented:
    @pytest.fixture(autouse=True)
    def _set_mock_tracer(self):
        self.mock_span = MagicMock()
        self.mock_tracer = MagicMock()
        self.mock_tracer.start_as_current_span.return_value.__enter__ = (
            MagicMock(return_value=self.mock_span)
        )
        self.mock_tracer.start_as_current_span.return_value.__exit__ = (
            MagicMock(return_value=False)
        )
        inst._tracer = self.mock_tracer

    @pytest.mark.asyncio
    async def test_chat_span_creates_span(self):
        async with chat_span("s1") as s:
            assert s is self.mock_span

        self.mock_tracer.start_as_current_span.assert_called_once_with(
            "chat_turn",
            attributes={"waec.session.id": "s1"},
        )

    @pytest.mark.asyncio
    async def test_request_span_creates_client_span(self):
        async with request_span("GET", "/dashboard-data") as s:
            assert s is self.mock_span

        self.mock_tracer.start_as_current_span.assert_called_once_with(
            "GET /dashboard-data",
            kind=SpanKind.CLIENT,
            attributes={
                "http.request.method": "GET",
                "url.path": "/dashboard-data",
            },
        )


# -------------------------------------------------------------------
# record_stream_stats / record_error
# -------------------------------------------------------------------


class TestRecordStreamStats:
    def test_noop_on_none_span(self):
        record_stream_stats(None, 3, 16)

    def test_sets_sizes(self):
        span = MagicMock()
        record_stream_stats(span, 3, 16)

        span.set_attribute.assert_any_call("waec.answer.fragments", 3)
        span.set_attribute.assert_any_call("waec.answer.characters", 16)
        assert span.set_attribute.call_count == 2

    def test_sets_anomalies_when_present(self):
        span = MagicMock()
        record_stream_stats(span, 1, 1, anomalies=2)

        span.set_attribute.assert_any_call("waec.answer.decode_anomalies", 2)


class TestRecordError:
    def test_sets_status_and_records_exception(self):
        span = MagicMock()
        exc = RuntimeError("boom")
        record_error(span, exc)

        span.set_status.assert_called_once_with(
            StatusCode.ERROR, "boom"
        )
        span.record_exception.assert_called_once_with(exc)
        span.set_attribute.assert_called_once_with(
            "error.type", "RuntimeError"
        )

    def test_noop_on_none_span(self):
        record_error(None, RuntimeError("boom"))
