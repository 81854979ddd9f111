import os

from pydantic import BaseModel, field_validator


DEFAULT_BACKEND_URL = "https://waec-api.onrender.com"

APOLOGY_MESSAGE = "Sorry, I encountered an error connecting to the server."

GREETING = (
    "Hello! I have access to the Kano WAEC data (2016-2021). Ask me "
    "anything about pass rates, gender gaps, or school performance."
)


class ChatConfig(BaseModel):
    """Settings for the chat client.

    Args:
        backend_url: Base URL of the answer-serving backend.
        response_timeout: Upper bound in seconds for a whole streamed
            answer. ``None`` waits indefinitely.
        connect_timeout: Seconds allowed to establish the connection.
        deep_link_delay: Pause before a deep-linked question is
            submitted.
        apology_message: Text shown in place of a failed answer.
        greeting: Opening assistant turn, or ``None`` for an empty
            transcript.
    """

    backend_url: str = DEFAULT_BACKEND_URL
    response_timeout: float | None = None
    connect_timeout: float = 10.0
    deep_link_delay: float = 0.1
    apology_message: str = APOLOGY_MESSAGE
    greeting: str | None = GREETING

    @field_validator("backend_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @classmethod
    def from_env(cls, **overrides) -> "ChatConfig":
        """Build a config from ``WAEC_*`` environment variables.

        Keyword arguments win over the environment.
        """
        values: dict = {}
        backend_url = os.getenv("WAEC_API_BASE_URL")
        if backend_url:
            values["backend_url"] = backend_url
        response_timeout = os.getenv("WAEC_CHAT_TIMEOUT")
        if response_timeout:
            values["response_timeout"] = float(response_timeout)
        connect_timeout = os.getenv("WAEC_CONNECT_TIMEOUT")
        if connect_timeout:
            values["connect_timeout"] = float(connect_timeout)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
