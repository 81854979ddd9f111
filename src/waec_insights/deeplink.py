"""Hand-off of a question from another screen into the chat.

The prediction screen links to ``/chat?q=<question>``. When the chat
surface mounts, :class:`DeepLinkIntake` submits that question once.
The session's ``deep_link_consumed`` latch keeps later mounts, reloads
of the same link, or re-renders from submitting it again.
"""

import asyncio
import logging
from urllib.parse import parse_qs, quote, urlsplit

from waec_insights.chat import ChatSession
from waec_insights.message import Turn
from waec_insights.transport import PredictInput, PredictResponse

logger = logging.getLogger(__name__)

QUESTION_PARAM = "q"


def extract_question(url_or_query: str | None) -> str | None:
    """Return the URL-decoded ``q`` parameter, or ``None``.

    Accepts a full URL (``https://host/chat?q=...``), a path with a
    query, or a bare query string with or without the leading ``?``.
    """
    if not url_or_query:
        return None
    try:
        head, sep, _ = url_or_query.partition("?")
        # A bare query may carry an unescaped "?" inside a value.
        if sep and "=" not in head:
            query = urlsplit(url_or_query).query
        else:
            query = url_or_query
        values = parse_qs(query.lstrip("?"), strict_parsing=False).get(QUESTION_PARAM)
    except (TypeError, ValueError) as e:
        logger.error(f"Failed to read query param for chat page: {e}")
        return None
    if not values or not values[0].strip():
        return None
    return values[0]


class DeepLinkIntake:
    """One-shot submitter for a deep-linked question.

    Args:
        session: The chat session to submit into.
        delay: Seconds to wait before submitting, so the surface has
            finished mounting. Defaults to ``session.config.deep_link_delay``.
    """

    def __init__(self, session: ChatSession, delay: float | None = None):
        self.chat = session
        self.delay = session.config.deep_link_delay if delay is None else delay

    async def consume(self, url_or_query: str | None) -> Turn | None:
        """Submit the linked question if this session has not done so yet."""
        if self.chat.session.deep_link_consumed:
            return None
        question = extract_question(url_or_query)
        if question is None:
            return None
        self.chat.session.deep_link_consumed = True
        logger.info("Submitting deep-linked question")
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        return await self.chat.submit(question)


def prediction_question(data: PredictInput, prediction: PredictResponse) -> str:
    """The follow-up question offered after a forecast."""
    rate = prediction.predicted_pass_rate
    if rate.is_integer():
        rate = int(rate)
    return (
        f"I just predicted a {rate}% pass rate for "
        f"{data.gender} students in {data.school_type} schools for year "
        f"{data.year} with a class size of {data.total_sat}. Can you explain "
        f"what factors might influence this prediction and provide insights "
        f"on how to improve it?"
    )


def build_chat_link(base_url: str, question: str) -> str:
    """URL of the chat surface with *question* pre-filled."""
    return f"{base_url.rstrip('/')}/chat?{QUESTION_PARAM}={quote(question, safe='')}"
