from typing import List, Optional, Protocol
from ..models.io import Conversation, UserProfile

class ConversationStore(Protocol):
    async def create(self, conversation: Conversation) -> Conversation:
        ...

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        ...

    async def save(self, conversation: Conversation) -> Conversation:
        """Persist the full conversation (messages, title, status)."""
        ...

    async def delete(self, conversation_id: str) -> bool:
        ...

    async def list_for_user(self, user_id: str) -> List[Conversation]:
        """Newest first."""
        ...

class ProfileStore(Protocol):
    async def get(self, user_id: str) -> Optional[UserProfile]:
        ...

    async def save(self, profile: UserProfile) -> UserProfile:
        ...
