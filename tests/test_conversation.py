import asyncio

import pytest

from kisanvaani.errors import ConversationEndedError, ConversationNotFoundError, InvalidInputError, ProviderError
from kisanvaani.core.adapters.memory import InMemoryConversationStore
from kisanvaani.core.models.domain import Location
from kisanvaani.core.models.io import UserProfile
from kisanvaani.core.services.chat import WELCOME_MESSAGE, ChatSessionManager
from kisanvaani.core.services.conversation import ConversationService

from conftest import FakeLLMFactory, StubAggregator

FARMER = UserProfile(id="farmer-1", name="Ramesh", location=Location(state="Punjab", district="Ludhiana"))
OTHER = UserProfile(id="farmer-2")


def _service(llm=None, aggregator=None, store=None):
    chat = ChatSessionManager(aggregator, models=["model-a"], llm_factory=llm or FakeLLMFactory())
    return ConversationService(store or InMemoryConversationStore(), chat)


def test_start_saves_welcome_message():
    svc = _service()

    async def run():
        conv, welcome = await svc.start_conversation(FARMER)
        return conv, welcome, await svc.store.get(conv.id)

    conv, welcome, stored = asyncio.run(run())
    assert welcome.role == "assistant" and welcome.content == WELCOME_MESSAGE
    assert stored.title == "New Conversation"
    assert [m.content for m in stored.messages] == [WELCOME_MESSAGE]
    assert svc.chat.has_session(conv.id)


def test_send_persists_both_turns_and_titles_conversation():
    svc = _service(llm=FakeLLMFactory(default_reply="Use certified seed."))
    question = "Which wheat variety should I sow this season in my irrigated field?"

    async def run():
        conv, _ = await svc.start_conversation(FARMER)
        user_msg, ai_msg = await svc.send(FARMER, conv.id, question)
        await svc.send(FARMER, conv.id, "And the seed rate?")
        return user_msg, ai_msg, await svc.store.get(conv.id)

    user_msg, ai_msg, stored = asyncio.run(run())
    assert user_msg.content == question
    assert ai_msg.content == "Use certified seed."
    assert stored.title == question[:50] + "..."
    assert [m.role for m in stored.messages] == ["assistant", "user", "assistant", "user", "assistant"]


def test_short_first_message_is_title_as_is():
    svc = _service()

    async def run():
        conv, _ = await svc.start_conversation(FARMER)
        await svc.send(FARMER, conv.id, "Tomato price?")
        return await svc.store.get(conv.id)

    assert asyncio.run(run()).title == "Tomato price?"


def test_transcript_keeps_unenriched_text():
    llm = FakeLLMFactory()
    agg = StubAggregator("\n\n--- REAL-TIME DATA FOR Ludhiana, Punjab ---")
    svc = _service(llm=llm, aggregator=agg)

    async def run():
        conv, _ = await svc.start_conversation(FARMER)
        await svc.send(FARMER, conv.id, "wheat price?")
        return await svc.store.get(conv.id)

    stored = asyncio.run(run())
    assert stored.messages[1].content == "wheat price?"
    assert llm.calls[0][1][-1].content.endswith("REAL-TIME DATA FOR Ludhiana, Punjab ---")
    # profile location drives enrichment
    assert agg.calls[0][1].district == "Ludhiana"


def test_user_message_survives_model_failure():
    llm = FakeLLMFactory(script={"model-a": RuntimeError("boom")})
    svc = _service(llm=llm)

    async def run():
        conv, _ = await svc.start_conversation(FARMER)
        with pytest.raises(ProviderError):
            await svc.send(FARMER, conv.id, "hello?")
        return await svc.store.get(conv.id)

    stored = asyncio.run(run())
    assert [m.role for m in stored.messages] == ["assistant", "user"]
    assert stored.messages[-1].content == "hello?"


def test_end_marks_conversation_and_blocks_new_messages():
    svc = _service()

    async def run():
        conv, _ = await svc.start_conversation(FARMER)
        ended = await svc.end_conversation(FARMER, conv.id)
        assert not svc.chat.has_session(conv.id)
        with pytest.raises(ConversationEndedError):
            await svc.send(FARMER, conv.id, "still there?")
        return ended

    ended = asyncio.run(run())
    assert ended.is_active is False
    assert ended.ended_at is not None
    assert ended.duration >= 0


def test_other_users_cannot_see_conversation():
    svc = _service()

    async def run():
        conv, _ = await svc.start_conversation(FARMER)
        with pytest.raises(ConversationNotFoundError):
            await svc.get_conversation(OTHER, conv.id)
        with pytest.raises(ConversationNotFoundError):
            await svc.send(OTHER, conv.id, "hi")
        with pytest.raises(ConversationNotFoundError):
            await svc.get_conversation(FARMER, "missing")
        return await svc.list_conversations(OTHER)

    assert asyncio.run(run()) == []


def test_blank_message_rejected():
    svc = _service()

    async def run():
        conv, _ = await svc.start_conversation(FARMER)
        with pytest.raises(InvalidInputError):
            await svc.send(FARMER, conv.id, "  ")
        return await svc.store.get(conv.id)

    assert len(asyncio.run(run()).messages) == 1


def test_join_after_restart_replays_transcript():
    store = InMemoryConversationStore()
    first = _service(store=store)

    async def before_restart():
        conv, _ = await first.start_conversation(FARMER)
        await first.send(FARMER, conv.id, "hello")
        return conv.id

    cid = asyncio.run(before_restart())

    llm = FakeLLMFactory()
    second = _service(llm=llm, store=store)

    async def after_restart():
        await second.join_conversation(FARMER, cid)
        await second.send(FARMER, cid, "continue")

    asyncio.run(after_restart())
    _, sent = llm.calls[0]
    # 3 seed turns + welcome, user, assistant + the new message
    assert len(sent) == 7
    assert sent[4].content == "hello"


def test_join_keeps_live_session():
    llm = FakeLLMFactory()
    svc = _service(llm=llm)

    async def run():
        conv, _ = await svc.start_conversation(FARMER)
        await svc.send(FARMER, conv.id, "one")
        await svc.join_conversation(FARMER, conv.id)
        await svc.send(FARMER, conv.id, "two")

    asyncio.run(run())
    assert len(llm.calls[-1][1]) == 6


def test_delete_and_list():
    svc = _service()

    async def run():
        a, _ = await svc.start_conversation(FARMER)
        b, _ = await svc.start_conversation(FARMER)
        await svc.delete_conversation(FARMER, a.id)
        assert not svc.chat.has_session(a.id)
        return b, await svc.list_conversations(FARMER)

    b, convs = asyncio.run(run())
    assert [c.id for c in convs] == [b.id]


def test_overlapping_sends_keep_every_message():
    svc = _service(llm=FakeLLMFactory(delay=0.02))

    async def run():
        conv, _ = await svc.start_conversation(FARMER)
        await asyncio.gather(svc.send(FARMER, conv.id, "first"), svc.send(FARMER, conv.id, "second"))
        return await svc.store.get(conv.id)

    stored = asyncio.run(run())
    assert [(m.role, m.content) for m in stored.messages[1:]] == [
        ("user", "first"), ("assistant", "fake reply"),
        ("user", "second"), ("assistant", "fake reply"),
    ]


def test_end_during_send_stays_ended():
    svc = _service(llm=FakeLLMFactory(delay=0.02))

    async def run():
        conv, _ = await svc.start_conversation(FARMER)
        sending = asyncio.create_task(svc.send(FARMER, conv.id, "hello"))
        await asyncio.sleep(0.005)
        await svc.end_conversation(FARMER, conv.id)
        await sending
        return await svc.store.get(conv.id)

    stored = asyncio.run(run())
    assert stored.is_active is False
    assert stored.ended_at is not None
    # the in-flight turn finished before the end took effect
    assert [m.role for m in stored.messages] == ["assistant", "user", "assistant"]


def test_delete_during_send_is_not_undone():
    svc = _service(llm=FakeLLMFactory(delay=0.02))

    async def run():
        conv, _ = await svc.start_conversation(FARMER)
        sending = asyncio.create_task(svc.send(FARMER, conv.id, "hello"))
        await asyncio.sleep(0.005)
        await svc.delete_conversation(FARMER, conv.id)
        await sending
        return conv.id, await svc.store.get(conv.id)

    cid, stored = asyncio.run(run())
    assert stored is None
    assert not svc.chat.has_session(cid)


def test_send_restores_swept_session_from_transcript():
    llm = FakeLLMFactory()
    svc = _service(llm=llm)

    async def run():
        conv, _ = await svc.start_conversation(FARMER)
        await svc.send(FARMER, conv.id, "hello")
        svc.chat.end_session(conv.id)
        await svc.send(FARMER, conv.id, "continue")

    asyncio.run(run())
    _, sent = llm.calls[-1]
    assert len(sent) == 7
    assert sent[4].content == "hello"
