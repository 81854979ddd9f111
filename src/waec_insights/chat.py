import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import Enum
from typing import Protocol

from waec_insights.config import ChatConfig
from waec_insights.decoder import Utf8StreamDecoder
from waec_insights.errors import BackendUnavailable, ValidationError
from waec_insights.events import ChatEvent, TurnCompleteEvent, TurnDeltaEvent, TurnFailedEvent
from waec_insights.instrumentation import chat_span, record_error, record_stream_stats
from waec_insights.message import Turn
from waec_insights.session import Session

logger = logging.getLogger(__name__)


class ByteStream(Protocol):
    async def read(self) -> tuple[bytes, bool]: ...

    async def aclose(self) -> None: ...


class Transport(Protocol):
    async def open_chat(self, question: str) -> ByteStream: ...


class ChatState(Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"


def validate_question(question: str) -> str:
    """Return *question* unchanged, or raise if it has no content."""
    if not isinstance(question, str) or not question.strip():
        raise ValidationError("Question cannot be empty.")
    return question


class ChatSession:
    """Owns one transcript and streams answers into it.

    A question appends a user turn and an empty assistant turn, then
    pulls the answer from the transport one chunk at a time, decoding
    and appending each fragment in arrival order. Only one question may
    be in flight; submissions while busy are ignored, not queued.

    Any transport or decoding failure replaces the partial answer with
    ``config.apology_message``. The underlying error is logged and kept
    on ``last_error`` but never written to the transcript.

    ``submit()`` drains ``iter()``.  ``iter()`` is the streaming entry point.

    Args:
        transport: Anything with ``open_chat(question)`` returning a
            stream with ``read()`` and ``aclose()``.
        config: Apology text, greeting and response timeout.
        session: Existing transcript to continue. A fresh one, seeded
            with ``config.greeting``, is created when omitted.
        on_event: Optional callback invoked with every emitted event.
    """

    def __init__(
        self,
        transport: Transport,
        config: ChatConfig | None = None,
        session: Session | None = None,
        on_event: Callable[[ChatEvent], None] | None = None,
    ):
        self.transport = transport
        self.config = config or ChatConfig()
        if session is None:
            session = Session(session_id=str(uuid.uuid4()))
            if self.config.greeting:
                session.transcript.append(
                    Turn.assistant(self.config.greeting, finalized=True)
                )
        self.session = session
        self.on_event = on_event
        self.state = ChatState.IDLE
        self.last_error: Exception | None = None
        self._closed = False

    @property
    def busy(self) -> bool:
        return self.state is ChatState.AWAITING_RESPONSE

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def transcript(self) -> list[Turn]:
        return self.session.transcript

    def close(self) -> None:
        """Detach the surface. An in-flight answer stops receiving fragments."""
        self._closed = True

    async def submit(self, question: str) -> Turn | None:
        """Ask *question* and wait for the answer.

        Returns the finalized assistant turn, or ``None`` if the question
        was rejected.
        """
        turn: Turn | None = None
        async for event in self.iter(question):
            if isinstance(event, (TurnCompleteEvent, TurnFailedEvent)):
                turn = event.turn
        return turn

    async def iter(self, question: str) -> AsyncIterator[ChatEvent]:
        """Ask *question*, yielding events as the answer streams in."""
        if self._closed:
            logger.debug("Ignoring question: chat session is closed")
            return
        try:
            validate_question(question)
        except ValidationError as e:
            logger.debug(f"Ignoring question: {e}")
            return
        if self.busy:
            logger.debug("Ignoring question: an answer is still streaming")
            return

        # No await may happen before the busy flag is set.
        self.transcript.append(Turn.user(question))
        turn = Turn.assistant()
        self.transcript.append(turn)
        self.state = ChatState.AWAITING_RESPONSE
        self.last_error = None

        stream: ByteStream | None = None
        decoder = Utf8StreamDecoder()
        fragments = 0
        deadline = self._deadline()
        try:
            async with chat_span(self.session.session_id) as span:
                failure: Exception | None = None
                done = False
                try:
                    stream = await self._before(deadline, lambda: self.transport.open_chat(question))
                    while not done:
                        chunk, done = await self._before(deadline, stream.read)
                        if self._closed:
                            break
                        text = decoder.finish() if done else decoder.feed(chunk)
                        if text:
                            turn.append(text)
                            fragments += 1
                            yield self._emit(TurnDeltaEvent(content=text))
                except Exception as e:
                    failure = e
                    record_error(span, e)

                if failure is not None:
                    logger.warning(f"Chat answer failed ({type(failure).__name__}): {failure}")
                    self.last_error = failure
                    turn.replace(self.config.apology_message)
                    await self._settle(turn, stream)
                    stream = None
                    yield self._emit(TurnFailedEvent(turn=turn, reason=type(failure).__name__))
                    return

                if self._closed:
                    logger.debug("Chat session closed while an answer was streaming")
                    return

                record_stream_stats(span, fragments, len(turn.content), decoder.anomalies)
                await self._settle(turn, stream)
                stream = None
                yield self._emit(TurnCompleteEvent(turn=turn))
        finally:
            await self._settle(turn, stream)

    async def _settle(self, turn: Turn, stream: ByteStream | None) -> None:
        turn.finalize()
        self.state = ChatState.IDLE
        if stream is not None:
            await stream.aclose()

    def _deadline(self) -> float | None:
        if self.config.response_timeout is None:
            return None
        return asyncio.get_running_loop().time() + self.config.response_timeout

    async def _before(self, deadline: float | None, call: Callable[[], Awaitable]):
        """Await ``call()``, failing with BackendUnavailable past *deadline*."""
        if deadline is None:
            return await call()
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise BackendUnavailable("No answer within the response timeout")
        try:
            return await asyncio.wait_for(call(), remaining)
        except asyncio.TimeoutError as e:
            raise BackendUnavailable("No answer within the response timeout") from e

    def _emit(self, event: ChatEvent) -> ChatEvent:
        if self.on_event is not None:
            self.on_event(event)
        return event
