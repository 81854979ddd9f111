"""Errors raised by the chat client.

Everything derives from :class:`ChatError`. Transport and decoding
failures never escape :class:`~waec_insights.chat.ChatSession`; they
are turned into a fixed apology in the transcript. The dashboard and
prediction calls raise them to the caller.
"""


class ChatError(Exception):
    """Base class for all waec_insights errors."""


class ValidationError(ChatError):
    """The question was empty or whitespace-only."""


class RequestFailed(ChatError):
    """The backend answered with a non-success status or an unusable body.

    Args:
        message: Human-readable detail, taken from the backend's
            ``detail`` field when it sent one.
        status_code: HTTP status, if a response was received.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.detail = message
        self.status_code = status_code


class BackendUnavailable(ChatError):
    """The backend could not be reached (connection, DNS, timeout)."""


class DecodeAnomaly(ChatError):
    """Malformed bytes in the answer stream.

    Recorded by the decoder and logged; substituted with U+FFFD rather
    than raised.
    """


class TurnFinalizedError(ChatError):
    """A finalized turn was mutated."""
