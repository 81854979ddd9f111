import asyncio
import json

import httpx
import pytest

from waec_insights.chat import ChatSession
from waec_insights.config import ChatConfig
from waec_insights.transport import ChatTransport


BACKEND = "http://waec.test"


# ---------------------------------------------------------------------------
# Fake transport (no network)
# ---------------------------------------------------------------------------

class FakeStream:
    """Byte stream that replays scripted reads.

    Each item in *script* is ``bytes`` (a chunk) or an exception
    instance, raised when reached. ``done`` is reported after the last
    item. With *gate* set, every read first waits for the event.
    """

    def __init__(self, script: list, gate: asyncio.Event | None = None):
        self.script = list(script)
        self.gate = gate
        self.reads = 0
        self.close_count = 0

    async def read(self) -> tuple[bytes, bool]:
        self.reads += 1
        if self.gate is not None:
            await self.gate.wait()
        if not self.script:
            return b"", True
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item, False

    async def aclose(self) -> None:
        self.close_count += 1

    @property
    def closed(self) -> bool:
        return self.close_count > 0


class FakeTransport:
    """Transport that hands out pre-queued FakeStreams.

    Queue an exception instead of a stream to make ``open_chat`` fail.
    """

    def __init__(self):
        self.streams: list = []
        self.questions: list[str] = []

    def queue(self, script: list, gate: asyncio.Event | None = None) -> FakeStream:
        stream = FakeStream(script, gate=gate)
        self.streams.append(stream)
        return stream

    def queue_error(self, error: BaseException) -> None:
        self.streams.append(error)

    async def open_chat(self, question: str) -> FakeStream:
        self.questions.append(question)
        item = self.streams.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


# ---------------------------------------------------------------------------
# httpx mock backend helpers
# ---------------------------------------------------------------------------

class ChunkedBody(httpx.AsyncByteStream):
    """Response body delivered as the given chunks, optionally failing."""

    def __init__(self, chunks: list[bytes], error: Exception | None = None):
        self.chunks = chunks
        self.error = error
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.closed = True


def streaming_response(chunks: list[bytes], error: Exception | None = None) -> httpx.Response:
    return httpx.Response(
        200,
        headers={"content-type": "text/plain; charset=utf-8"},
        stream=ChunkedBody(chunks, error),
    )


def json_response(status: int, payload) -> httpx.Response:
    return httpx.Response(status, content=json.dumps(payload).encode(), headers={
        "content-type": "application/json",
    })


def make_transport(handler) -> ChatTransport:
    """ChatTransport whose HTTP traffic is served by *handler*."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ChatTransport(ChatConfig(backend_url=BACKEND), client=client)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def make_chat(fake_transport):
    """Factory fixture for ChatSessions over the fake transport.

    Sessions start with an empty transcript unless ``greeting`` is given.
    """
    def _make(transport=None, greeting=None, **config):
        return ChatSession(
            transport or fake_transport,
            config=ChatConfig(greeting=greeting, deep_link_delay=0, **config),
        )
    return _make


@pytest.fixture
def dashboard_payload():
    return {
        "gender_trend": [
            {"year": 2016, "Male": 41.2, "Female": 38.9},
            {"year": 2017, "Male": 44.0, "Female": 43.1},
        ],
        "school_performance": [
            {"year": 2016, "Public": 30.5, "Private": 62.3},
        ],
        "subject_performance": [
            {"year": 2016, "English": 55.0, "Math": 48.7, "Both": 39.9},
        ],
    }
