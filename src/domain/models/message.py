"""Message domain model.

One conversation turn half: either the user's text or the assistant's reply.
Messages are immutable once stored and read back in creation order.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Speaker role, mirrored in the text-generation request format."""

    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """Single persisted message."""

    id: str
    session_id: str
    role: Role
    content: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"from_attributes": True}

    def as_turn(self) -> dict:
        """Render as a {"role", "content"} turn for the LLM client."""
        return {"role": self.role.value, "content": self.content}
