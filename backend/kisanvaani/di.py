"""
Dependency injection container for the application.
Constructs singletons and provides them to routes/handlers.
"""
from typing import Optional

from fastapi import Depends, Header

from kisanvaani.config import settings
from kisanvaani.errors import InvalidInputError
from kisanvaani.core.adapters.memory import InMemoryConversationStore, InMemoryProfileStore
from kisanvaani.core.models.io import UserProfile
from kisanvaani.core.services.aggregator import DataAggregator
from kisanvaani.core.services.chat import ChatSessionManager
from kisanvaani.core.services.conversation import ConversationService
from kisanvaani.core.services.external_data import ExternalDataService
from kisanvaani.utils.auth import bearer_token, decode_token
from kisanvaani.utils.cache import ExternalDataCache

# Singletons - created once and reused
_cache = None
_external_data_service = None
_aggregator = None
_chat_manager = None
_conversation_store = None
_profile_store = None
_conversation_service = None

def get_cache() -> ExternalDataCache:
    """Get singleton external data cache."""
    global _cache
    if _cache is None:
        _cache = ExternalDataCache(ttl=settings.CACHE_TTL_SEC)
    return _cache

def get_external_data_service() -> ExternalDataService:
    global _external_data_service
    if _external_data_service is None:
        _external_data_service = ExternalDataService(get_cache())
    return _external_data_service

def get_aggregator() -> DataAggregator:
    global _aggregator
    if _aggregator is None:
        _aggregator = DataAggregator(get_external_data_service())
    return _aggregator

def get_chat_manager() -> ChatSessionManager:
    """Get singleton chat session manager (owns the model rotation state)."""
    global _chat_manager
    if _chat_manager is None:
        _chat_manager = ChatSessionManager(get_aggregator())
    return _chat_manager

def get_conversation_store() -> InMemoryConversationStore:
    global _conversation_store
    if _conversation_store is None:
        _conversation_store = InMemoryConversationStore()
    return _conversation_store

def get_profile_store() -> InMemoryProfileStore:
    global _profile_store
    if _profile_store is None:
        _profile_store = InMemoryProfileStore()
    return _profile_store

def get_conversation_service() -> ConversationService:
    """Get singleton conversation service."""
    global _conversation_service
    if _conversation_service is None:
        _conversation_service = ConversationService(
            store=get_conversation_store(),
            chat=get_chat_manager(),
        )
    return _conversation_service

def reset_singletons() -> None:
    """Drop every singleton so the next getter call builds fresh state."""
    global _cache, _external_data_service, _aggregator, _chat_manager
    global _conversation_store, _profile_store, _conversation_service
    _cache = _external_data_service = _aggregator = _chat_manager = None
    _conversation_store = _profile_store = _conversation_service = None

async def load_user(user_id: str) -> UserProfile:
    """Profile for a token subject; first sight creates an empty one."""
    store = get_profile_store()
    profile = await store.get(user_id)
    if profile is None:
        profile = await store.save(UserProfile(id=user_id))
    return profile

async def get_current_user(authorization: Optional[str] = Header(None)) -> UserProfile:
    user_id = decode_token(bearer_token(authorization))
    return await load_user(user_id)

def require_state(user: UserProfile = Depends(get_current_user)) -> UserProfile:
    if not user.location or not user.location.state:
        raise InvalidInputError("Please set your location in profile first")
    return user
