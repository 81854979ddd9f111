from pydantic import BaseModel, Field

from waec_insights.message import Turn


class Session(BaseModel):
    """Memory-resident transcript for one chat surface.

    ``deep_link_consumed`` latches once a deep-linked question has been
    submitted and is never reset for the life of the session.
    """

    session_id: str
    transcript: list[Turn] = Field(default_factory=list)
    deep_link_consumed: bool = False

    @property
    def open_turn(self) -> Turn | None:
        """The assistant turn still receiving fragments, if any."""
        if self.transcript and not self.transcript[-1].finalized:
            return self.transcript[-1]
        return None
