# core/services/conversation.py
"""
Conversation turns for the voice UI: persistence around the chat manager.

The transcript store is the source of truth for what the user said; the
chat manager only keeps the model-side dialogue. The user's words are saved
before the model is called so a failed call never loses them.

Every read-modify-write of one conversation (a whole turn, end, delete) runs
under that conversation's lock, so a REST call and a socket, or two sockets,
never overwrite each other's transcript.
"""
import logging
from typing import List, Optional, Tuple

from ...errors import ConversationEndedError, ConversationNotFoundError, InvalidInputError
from ...utils.locks import KeyedLocks
from ..adapters.base import ConversationStore
from ..models.domain import Location
from ..models.io import Conversation, TranscriptMessage, UserProfile
from .chat import ChatSessionManager

logger = logging.getLogger(__name__)


class ConversationService:
    def __init__(self, store: ConversationStore, chat: ChatSessionManager):
        self.store = store
        self.chat = chat
        self._locks = KeyedLocks()

    async def _owned(self, user: UserProfile, conversation_id: str) -> Conversation:
        conv = await self.store.get(conversation_id) if conversation_id else None
        if conv is None or conv.user_id != user.id:
            raise ConversationNotFoundError()
        return conv

    @staticmethod
    def _location_for(user: UserProfile, override: Optional[Location]) -> Optional[Location]:
        if override is not None and override.state:
            return override
        if user.location and user.location.state:
            return user.location
        return None

    def _restore_session(self, conv: Conversation) -> None:
        if not self.chat.has_session(conv.id):
            self.chat.start_session(conv.id, history=[(m.role, m.content) for m in conv.messages])
            logger.info("🔁 Chat session restored for %s (%d messages)", conv.id, len(conv.messages))

    async def start_conversation(self, user: UserProfile) -> Tuple[Conversation, TranscriptMessage]:
        conv = Conversation(user_id=user.id)
        await self.store.create(conv)
        self.chat.start_session(conv.id)

        welcome = conv.append("assistant", self.chat.get_welcome_message())
        await self.store.save(conv)
        logger.info("📞 Conversation started: %s (user %s)", conv.id, user.id)
        return conv, welcome

    async def join_conversation(self, user: UserProfile, conversation_id: str) -> Conversation:
        async with self._locks.hold(conversation_id or ""):
            conv = await self._owned(user, conversation_id)
            if conv.is_active:
                self._restore_session(conv)
            return conv

    async def send(self, user: UserProfile, conversation_id: str, text: str,
                   location: Optional[Location] = None) -> Tuple[TranscriptMessage, TranscriptMessage]:
        """Returns (user message, assistant message)."""
        if not isinstance(text, str) or not text.strip():
            raise InvalidInputError("message must not be empty")

        async with self._locks.hold(conversation_id or ""):
            conv = await self._owned(user, conversation_id)
            if not conv.is_active:
                raise ConversationEndedError()
            # sessions can be swept or lost on restart; the transcript rebuilds them
            self._restore_session(conv)

            user_msg = conv.append("user", text)
            if conv.user_message_count() == 1:
                conv.generate_title()
            await self.store.save(conv)

            reply = await self.chat.send_message(conv.id, text, self._location_for(user, location))

            assistant_msg = conv.append("assistant", reply)
            await self.store.save(conv)
            return user_msg, assistant_msg

    async def end_conversation(self, user: UserProfile, conversation_id: str) -> Conversation:
        async with self._locks.hold(conversation_id or ""):
            conv = await self._owned(user, conversation_id)
            if conv.is_active:
                conv.end()
                await self.store.save(conv)
            self.chat.end_session(conv.id)
        logger.info("📴 Conversation ended: %s (%ds)", conv.id, conv.duration)
        return conv

    async def delete_conversation(self, user: UserProfile, conversation_id: str) -> None:
        async with self._locks.hold(conversation_id or ""):
            conv = await self._owned(user, conversation_id)
            await self.store.delete(conv.id)
            self.chat.end_session(conv.id)

    async def list_conversations(self, user: UserProfile) -> List[Conversation]:
        return await self.store.list_for_user(user.id)

    async def get_conversation(self, user: UserProfile, conversation_id: str) -> Conversation:
        return await self._owned(user, conversation_id)
