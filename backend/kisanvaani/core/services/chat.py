# core/services/chat.py
"""
Per-conversation chat sessions against the hosted LLM.

One ChatSession per conversation id holds the dialogue the model has seen
(system prompt, two seed turns, then every exchanged message). The manager
owns the ordered list of candidate models: a quota/rate-limit error moves to
the next model, which drops every session because another model cannot
continue them. When the list is exhausted it sleeps once, starts over from the
first model and retries a single time before giving up.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import openai
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from ...config import settings
from ...errors import InvalidInputError, ProviderError, QuotaExceededError
from ...utils.locks import KeyedLocks
from ..models.domain import Location
from .aggregator import DataAggregator

logger = logging.getLogger(__name__)

def t(): return time.perf_counter()

SYSTEM_PROMPT = """You are an expert Agricultural Assistant designed to help Indian farmers. Your role is to:

1. Provide accurate, practical farming advice
2. Answer questions about crops, soil, weather, pests, and diseases
3. Suggest modern and traditional farming techniques
4. Help with crop selection based on season and region
5. Provide market information and pricing guidance when asked
6. Explain government schemes and subsidies for farmers
7. Give advice in simple, easy-to-understand language

Guidelines:
- Keep responses concise (2-3 paragraphs max) since this is a voice conversation
- Be respectful and patient
- If you don't know something, say so honestly
- Provide region-specific advice when the farmer mentions their location
- Consider seasonal factors in your advice
- Prioritize sustainable and cost-effective solutions

Remember: Farmers may ask questions in simple language. Interpret their queries with context and provide helpful responses."""

SEED_USER = "You are my agricultural assistant. Please help me with farming queries."
SEED_ASSISTANT = "Namaste! I am your assistant. How can I assist you today?"
WELCOME_MESSAGE = "Namaste! I am your Assistant. Please speak your question, and I'll do my best to help you!"

_QUOTA_MARKERS = ("429", "quota", "rate limit", "too many requests", "resource exhausted")

LLMFactory = Callable[[str], "ChatModel"]


class ChatModel:
    """Structural type of what the manager needs from a chat model."""

    async def ainvoke(self, messages: List[BaseMessage]): ...


def is_quota_error(exc: BaseException) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    text = str(exc).lower()
    return any(m in text for m in _QUOTA_MARKERS)


def default_llm_factory(model: str) -> ChatOpenAI:
    return ChatOpenAI(
        model=model,
        api_key=settings.OPENAI_API_KEY or None,
        temperature=settings.LLM_TEMPERATURE,
        max_tokens=settings.LLM_MAX_TOKENS,
        timeout=settings.LLM_TIMEOUT_SEC,
        max_retries=0,  # rotation/backoff is handled here
    )


def seed_history(system_prompt: str = SYSTEM_PROMPT) -> List[BaseMessage]:
    return [
        SystemMessage(content=system_prompt),
        HumanMessage(content=SEED_USER),
        AIMessage(content=SEED_ASSISTANT),
    ]


@dataclass
class ChatSession:
    conversation_id: str
    model: str
    messages: List[BaseMessage] = field(default_factory=seed_history)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_used: float = 0.0


class ChatSessionManager:
    def __init__(self,
                 aggregator: Optional[DataAggregator],
                 models: Optional[Sequence[str]] = None,
                 llm_factory: Optional[LLMFactory] = None,
                 backoff_seconds: Optional[float] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 system_prompt: str = SYSTEM_PROMPT,
                 clock: Callable[[], float] = time.monotonic):
        self.aggregator = aggregator
        self.models: List[str] = list(models or settings.OPENAI_MODELS)
        if not self.models:
            raise ValueError("At least one model name is required")
        self._llm_factory = llm_factory or default_llm_factory
        self.backoff_seconds = settings.QUOTA_BACKOFF_SEC if backoff_seconds is None else backoff_seconds
        self._sleep = sleep
        self.system_prompt = system_prompt
        self._clock = clock

        self.current_model_index = 0
        self._llms: Dict[str, ChatModel] = {}
        self._sessions: Dict[str, ChatSession] = {}
        self._locations: Dict[str, Location] = {}
        self._locks = KeyedLocks()
        logger.info("🤖 Chat sessions using model: %s", self.current_model)

    # ---------- model rotation ----------
    @property
    def current_model(self) -> str:
        return self.models[self.current_model_index]

    def _llm(self, model: str) -> ChatModel:
        llm = self._llms.get(model)
        if llm is None:
            llm = self._llms[model] = self._llm_factory(model)
        return llm

    def switch_to_next_model(self) -> bool:
        """Advance to the next candidate; False when the list is exhausted."""
        if self.current_model_index >= len(self.models) - 1:
            return False
        self.current_model_index += 1
        self._sessions.clear()
        logger.warning("🔄 Switched to model: %s (all chat sessions reset)", self.current_model)
        return True

    def reset_models(self) -> None:
        self.current_model_index = 0
        self._sessions.clear()
        logger.info("🤖 Model rotation reset to: %s", self.current_model)

    # ---------- session lifecycle ----------
    def start_session(self, conversation_id: str,
                      history: Optional[Sequence[tuple[str, str]]] = None) -> ChatSession:
        """Create (or replace) the session; ``history`` replays stored (role, content) turns."""
        session = ChatSession(conversation_id=conversation_id, model=self.current_model,
                              messages=seed_history(self.system_prompt), last_used=self._clock())
        for role, content in history or []:
            session.messages.append(HumanMessage(content=content) if role == "user" else AIMessage(content=content))
        self._sessions[conversation_id] = session
        return session

    def get_session(self, conversation_id: str) -> ChatSession:
        session = self._sessions.get(conversation_id)
        if session is None:
            session = self.start_session(conversation_id)
        return session

    def has_session(self, conversation_id: str) -> bool:
        return conversation_id in self._sessions

    def end_session(self, conversation_id: str) -> None:
        self._sessions.pop(conversation_id, None)
        self._locations.pop(conversation_id, None)

    def sweep_idle(self, max_idle_sec: float) -> int:
        """Drop sessions unused for ``max_idle_sec``; busy conversations are kept."""
        cutoff = self._clock() - max_idle_sec
        stale = [cid for cid, s in self._sessions.items()
                 if s.last_used < cutoff and not self._locks.locked(cid)]
        for cid in stale:
            self.end_session(cid)
        return len(stale)

    @staticmethod
    def get_welcome_message() -> str:
        return WELCOME_MESSAGE

    # ---------- messaging ----------
    async def send_message(self, conversation_id: str, message: str,
                           location: Optional[Location] = None) -> str:
        if not conversation_id:
            raise InvalidInputError("conversation id is required")
        if not isinstance(message, str) or not message.strip():
            raise InvalidInputError("message must not be empty")

        async with self._locks.hold(conversation_id):
            if location is not None:
                self._locations[conversation_id] = location
            effective = location or self._locations.get(conversation_id)

            prompt = message
            if effective is not None and effective.state and self.aggregator is not None:
                data = await self.aggregator.fetch_relevant_data(message, effective)
                if data.context:
                    prompt = message + data.context
                    logger.info("📊 Enriched message for %s with real-time data", conversation_id)

            return await self._send_with_recovery(conversation_id, prompt)

    async def _send_with_recovery(self, conversation_id: str, prompt: str) -> str:
        backed_off = False
        while True:
            try:
                return await self._send_once(conversation_id, prompt)
            except Exception as e:
                if not is_quota_error(e):
                    logger.error("❌ LLM error for %s: %s", conversation_id, e)
                    raise ProviderError(f"Failed to get AI response: {e}") from e
                if backed_off:
                    logger.error("❌ Quota still exceeded after backoff for %s", conversation_id)
                    raise QuotaExceededError(
                        "API quota exceeded. Please try again in a few minutes or check your API billing settings."
                    ) from e
                if self.switch_to_next_model():
                    continue
                logger.warning("⏳ All models quota exceeded, waiting %.0f seconds before retry...",
                               self.backoff_seconds)
                await self._sleep(self.backoff_seconds)
                self.reset_models()
                backed_off = True

    async def _send_once(self, conversation_id: str, prompt: str) -> str:
        session = self.get_session(conversation_id)
        start = t()
        human = HumanMessage(content=prompt)
        resp = await self._llm(session.model).ainvoke(session.messages + [human])
        text = getattr(resp, "content", str(resp))
        if not isinstance(text, str):
            text = str(text)
        text = text.strip()
        session.messages.extend([human, AIMessage(content=text)])
        session.last_used = self._clock()
        logger.info("⏱️  LLM (%s) reply for %s: %dms", session.model, conversation_id,
                    round((t() - start) * 1000))
        return text


async def run_session_sweeper(manager: ChatSessionManager, max_idle_sec: float, every_sec: int = 600):
    """Background task: drop chat sessions nobody has used for a while."""
    while True:
        await asyncio.sleep(every_sec)
        try:
            n = manager.sweep_idle(max_idle_sec)
            if n:
                logger.info("🧹 Session sweep removed %d idle chat sessions", n)
        except Exception:
            logger.exception("Session sweep error")
