from pydantic import BaseModel, Field
from typing import Literal, Optional, Dict, Any, List
from datetime import datetime, timezone
from uuid import uuid4

from .domain import Location

Role = Literal["user", "assistant"]

TITLE_MAX_CHARS = 50

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

class TranscriptMessage(BaseModel):
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)

class Conversation(BaseModel):
    """Persisted transcript of one voice call; append-only from the core's side."""
    id: str = Field(default_factory=lambda: uuid4().hex)
    user_id: str
    title: str = "New Conversation"
    messages: List[TranscriptMessage] = []
    is_active: bool = True
    duration: int = 0  # seconds
    started_at: datetime = Field(default_factory=_utcnow)
    ended_at: Optional[datetime] = None

    def append(self, role: Role, content: str) -> TranscriptMessage:
        msg = TranscriptMessage(role=role, content=content)
        self.messages.append(msg)
        return msg

    def user_message_count(self) -> int:
        return sum(1 for m in self.messages if m.role == "user")

    def generate_title(self) -> str:
        first = next((m for m in self.messages if m.role == "user"), None)
        if first:
            title = first.content[:TITLE_MAX_CHARS]
            self.title = title + "..." if len(title) < len(first.content) else title
        return self.title

    def end(self) -> "Conversation":
        self.is_active = False
        self.ended_at = _utcnow()
        self.duration = round((self.ended_at - self.started_at).total_seconds())
        return self

class UserProfile(BaseModel):
    id: str
    name: str = ""
    email: Optional[str] = None
    location: Location = Field(default_factory=Location)
    farming_profile: Dict[str, Any] = {}
