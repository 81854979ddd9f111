"""Incremental UTF-8 decoding for streamed answers.

The backend streams raw bytes with no regard for character boundaries.
:class:`Utf8StreamDecoder` holds back an incomplete trailing sequence
until the next chunk completes it, so the concatenated output never
depends on where the chunks were split.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

REPLACEMENT_CHAR = "\ufffd"


def _sequence_length(lead: int) -> int:
    """Expected byte length of the UTF-8 sequence starting with *lead*."""
    if lead < 0x80 or lead in (0xC0, 0xC1) or lead >= 0xF5:
        # ASCII, or a byte that can never start a valid sequence.
        return 1
    if lead >= 0xF0:
        return 4
    if lead >= 0xE0:
        return 3
    if lead >= 0xC0:
        return 2
    # Stray continuation byte.
    return 1


def _complete_prefix_length(data: bytes) -> int:
    """Length of *data* that can be decoded without splitting a character.

    Only the last three bytes can belong to an unfinished sequence.
    """
    end = len(data)
    for pos in range(end - 1, max(end - 4, -1), -1):
        byte = data[pos]
        if byte & 0xC0 == 0x80:
            continue
        if byte >= 0xC0 and end - pos < _sequence_length(byte):
            return pos
        break
    return end


class Utf8StreamDecoder:
    """Stateful byte-to-text converter with a pending partial-sequence buffer."""

    def __init__(self) -> None:
        self._pending = b""
        self.anomalies = 0

    @property
    def pending(self) -> bytes:
        return self._pending

    def feed(self, chunk: bytes) -> str:
        """Decode *chunk*, holding back any unfinished trailing character."""
        data = self._pending + chunk
        split = _complete_prefix_length(data)
        self._pending = data[split:]
        return self._decode(data[:split])

    def finish(self) -> str:
        """Flush the pending buffer and reset.

        Leftover bytes can never become a character at end of stream and
        are substituted with U+FFFD.
        """
        data, self._pending = self._pending, b""
        return self._decode(data)

    def _decode(self, data: bytes) -> str:
        text = data.decode("utf-8", errors="replace")
        # Count substitutions introduced here, not ones encoded in the input.
        introduced = text.count(REPLACEMENT_CHAR) - data.count(REPLACEMENT_CHAR.encode("utf-8"))
        if introduced > 0:
            self.anomalies += introduced
            logger.warning(f"Substituted {introduced} malformed byte sequence(s) in answer stream")
        return text
