"""Events emitted while a chat turn streams in."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ChatEvent:
    """Base for all chat events."""


@dataclass
class TurnDeltaEvent(ChatEvent):
    """A decoded fragment appended to the open assistant turn."""

    content: str = ""


@dataclass
class TurnCompleteEvent(ChatEvent):
    """The answer finished streaming. Always the last event of a
    successful turn."""

    turn: Any = None


@dataclass
class TurnFailedEvent(ChatEvent):
    """The answer failed and the turn now holds the apology text.

    ``reason`` is the exception class name, for logging only.
    """

    turn: Any = None
    reason: str = ""
