import asyncio
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pytest
from langchain_core.messages import AIMessage

from kisanvaani.core.models.domain import AggregatedData

Outcome = Union[str, Exception]


class FakeChatModel:
    def __init__(self, factory: "FakeLLMFactory", model: str):
        self.factory = factory
        self.model = model

    async def ainvoke(self, messages):
        self.factory.calls.append((self.model, list(messages)))
        if self.factory.delay:
            await asyncio.sleep(self.factory.delay)
        script = self.factory.script.get(self.model)
        outcome: Outcome = self.factory.default_reply
        if isinstance(script, list) and script:
            outcome = script.pop(0)
        elif isinstance(script, (str, Exception)):
            outcome = script
        if isinstance(outcome, Exception):
            raise outcome
        return AIMessage(content=outcome)


class FakeLLMFactory:
    """Stands in for ChatOpenAI: scripted replies/errors per model name."""

    def __init__(self, script: Optional[Dict[str, Any]] = None, default_reply: str = "fake reply",
                 delay: float = 0):
        self.script = script or {}
        self.default_reply = default_reply
        self.delay = delay
        self.calls: List[tuple] = []

    def __call__(self, model: str) -> FakeChatModel:
        return FakeChatModel(self, model)

    @property
    def models_called(self) -> List[str]:
        return [m for m, _ in self.calls]


class SleepRecorder:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def quota_error() -> Exception:
    return Exception("Error code: 429 - You exceeded your current quota")


def offline_client() -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def routed_client(routes: Dict[str, Callable[[httpx.Request], httpx.Response]],
                  seen: Optional[List[httpx.Request]] = None) -> httpx.AsyncClient:
    """First route whose key is a substring of the URL answers; others 404."""
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        url = str(request.url)
        for needle, respond in routes.items():
            if needle in url:
                return respond(request)
        return httpx.Response(404, json={"error": "not found"})
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def fake_llm() -> FakeLLMFactory:
    return FakeLLMFactory()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


class StubAggregator:
    """Records enrichment requests and returns a fixed context block."""

    def __init__(self, context: str = ""):
        self.context = context
        self.calls = []

    async def fetch_relevant_data(self, message, location):
        self.calls.append((message, location))
        return AggregatedData(fetched=bool(self.context), context=self.context)
