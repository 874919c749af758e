from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field

from kisanvaani.core.models.domain import Location
from kisanvaani.core.models.io import Conversation, TranscriptMessage


# ---------- Request models ----------

class SendMessageRequest(BaseModel):
    message: str = Field(..., description="Transcribed user utterance")
    location: Optional[Location] = Field(None, description="Overrides the profile location for enrichment")

class UpdateLocationRequest(BaseModel):
    location: Location
    farming_profile: Optional[Dict[str, Any]] = Field(None, description="Crops, land size, irrigation etc.")


# ---------- Response models ----------

class ConversationSummary(BaseModel):
    id: str
    title: str
    is_active: bool
    duration: int
    started_at: datetime
    ended_at: Optional[datetime] = None
    message_count: int = 0

    @classmethod
    def of(cls, conv: Conversation) -> "ConversationSummary":
        return cls(
            id=conv.id, title=conv.title, is_active=conv.is_active, duration=conv.duration,
            started_at=conv.started_at, ended_at=conv.ended_at, message_count=len(conv.messages),
        )

class ConversationResponse(BaseModel):
    success: bool = True
    conversation: Conversation

class ConversationStartResponse(ConversationResponse):
    welcome_message: TranscriptMessage

class ConversationListResponse(BaseModel):
    success: bool = True
    conversations: List[ConversationSummary] = Field(default_factory=list)

class MessageResponse(BaseModel):
    success: bool = True
    user_message: TranscriptMessage
    ai_message: TranscriptMessage

class DataResponse(BaseModel):
    success: bool = True
    data: Dict[str, Any]

class ClearCacheResponse(BaseModel):
    success: bool = True
    cleared: int
    message: str = "Cache cleared successfully"
