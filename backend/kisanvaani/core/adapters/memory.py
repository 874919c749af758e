import asyncio
from typing import Dict, List, Optional

from .base import ConversationStore, ProfileStore
from ..models.io import Conversation, UserProfile

class InMemoryConversationStore(ConversationStore):
    """Process-local store; conversations are deep-copied in and out."""

    def __init__(self):
        self._items: Dict[str, Conversation] = {}
        self._lock = asyncio.Lock()

    async def create(self, conversation: Conversation) -> Conversation:
        async with self._lock:
            self._items[conversation.id] = conversation.model_copy(deep=True)
        return conversation

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        item = self._items.get(conversation_id)
        return item.model_copy(deep=True) if item else None

    async def save(self, conversation: Conversation) -> Conversation:
        async with self._lock:
            self._items[conversation.id] = conversation.model_copy(deep=True)
        return conversation

    async def delete(self, conversation_id: str) -> bool:
        async with self._lock:
            return self._items.pop(conversation_id, None) is not None

    async def list_for_user(self, user_id: str) -> List[Conversation]:
        items = [c.model_copy(deep=True) for c in self._items.values() if c.user_id == user_id]
        return sorted(items, key=lambda c: c.started_at, reverse=True)

class InMemoryProfileStore(ProfileStore):
    def __init__(self):
        self._items: Dict[str, UserProfile] = {}

    async def get(self, user_id: str) -> Optional[UserProfile]:
        item = self._items.get(user_id)
        return item.model_copy(deep=True) if item else None

    async def save(self, profile: UserProfile) -> UserProfile:
        self._items[profile.id] = profile.model_copy(deep=True)
        return profile
