from waec_insights.answer import AnswerProvider, OpenAIAnswerProvider, ask_question
from waec_insights.chat import ChatSession, ChatState
from waec_insights.config import ChatConfig
from waec_insights.decoder import Utf8StreamDecoder
from waec_insights.deeplink import DeepLinkIntake, build_chat_link, extract_question
from waec_insights.instrumentation import instrument, uninstrument
from waec_insights.message import Turn, TurnRole
from waec_insights.session import Session
from waec_insights.transport import ChatStream, ChatTransport

__all__ = [
    "AnswerProvider",
    "ChatConfig",
    "ChatSession",
    "ChatState",
    "ChatStream",
    "ChatTransport",
    "DeepLinkIntake",
    "OpenAIAnswerProvider",
    "Session",
    "Turn",
    "TurnRole",
    "Utf8StreamDecoder",
    "ask_question",
    "build_chat_link",
    "extract_question",
    "instrument",
    "uninstrument",
]
