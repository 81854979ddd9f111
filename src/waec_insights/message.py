from enum import Enum
from pydantic import BaseModel, field_serializer

from waec_insights.errors import TurnFinalizedError


class TurnRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Turn(BaseModel):
    """One message in the chat transcript.

    User turns are created finalized. Assistant turns start empty and
    open, grow through ``append`` while the answer streams in, and are
    closed with ``finalize``.
    """

    role: TurnRole
    content: str = ""
    finalized: bool = False

    @field_serializer('role')
    def serialize_role(self, role: TurnRole, _info) -> str:
        return role.value

    @classmethod
    def user(cls, content: str) -> "Turn":
        return cls(role=TurnRole.USER, content=content, finalized=True)

    @classmethod
    def assistant(cls, content: str = "", finalized: bool = False) -> "Turn":
        return cls(role=TurnRole.ASSISTANT, content=content, finalized=finalized)

    def append(self, fragment: str) -> None:
        if self.finalized:
            raise TurnFinalizedError(f"cannot append to a finalized {self.role.value} turn")
        self.content += fragment

    def replace(self, content: str) -> None:
        if self.finalized:
            raise TurnFinalizedError(f"cannot replace a finalized {self.role.value} turn")
        self.content = content

    def finalize(self) -> None:
        self.finalized = True
