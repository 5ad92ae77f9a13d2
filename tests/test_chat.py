import asyncio

import pytest

from fitcheck_client.chat import ChatList, ChatThread, chat_partner
from fitcheck_client.http import ApiHttpError


@pytest.fixture
def thread_factory(make_session, signed_in_store, apis, coordinator_factory):
    def _make(chat_id="chat-1"):
        session = make_session(store=signed_in_store)
        coordinator = coordinator_factory()
        return session, coordinator, ChatThread(chat_id, session, apis["messages"], coordinator)

    return _make


def _echo_server(http, chat_id="chat-1"):
    """Accept sends without echoing them and serve them back on reload."""
    stored = []

    def _accept(token, payload):
        stored.append({key: payload[key] for key in ("created_at", "ownerUsername", "text")})
        return {}

    http.on("POST", "/api/messages", _accept)
    http.on("GET", f"/api/messages/{chat_id}", lambda token, params: list(stored))
    return stored


def test_send_shows_pending_entry_then_exactly_one_confirmed(thread_factory, http):
    _echo_server(http)
    session, coordinator, thread = thread_factory()

    async def _run():
        await session.initialize()
        task = thread.send("hello")
        assert len(thread.messages) == 1
        assert thread.messages[0]["is_temp"] is True
        assert thread.messages[0]["text"] == "hello"
        await task
        await coordinator.wait_idle()

    asyncio.run(_run())

    assert [message["text"] for message in thread.messages] == ["hello"]
    assert not thread.pending
    assert thread.messages[0]["ownerUsername"] == "maria"


def test_send_with_echo_replaces_temp_entry(thread_factory, http):
    confirmed = {"id": 91, "text": "hello", "ownerUsername": "maria", "created_at": "2026-10-19T12:00:00Z"}
    http.on("POST", "/api/messages", {"message": confirmed})
    session, coordinator, thread = thread_factory()

    async def _run():
        await session.initialize()
        await thread.send("hello")
        await coordinator.wait_idle()

    asyncio.run(_run())
    assert thread.messages == [confirmed]
    assert http.paths("GET") == []


def test_send_failure_removes_entry(thread_factory, http, notices):
    http.on("POST", "/api/messages", ApiHttpError(status_code=0, message="Request failed"))
    session, _, thread = thread_factory()

    async def _run():
        await session.initialize()
        return await thread.send("hello")

    outcome = asyncio.run(_run())
    assert outcome.success is False
    assert thread.messages == []
    assert notices == ["Failed to send message"]


def test_failed_send_only_removes_its_own_entry(thread_factory, http):
    def _reply(token, payload):
        if payload["text"] == "first":
            raise ApiHttpError(status_code=500, message="HTTP 500")
        return {"message": {"text": payload["text"], "id": 2}}

    http.on("POST", "/api/messages", _reply)
    session, coordinator, thread = thread_factory()

    async def _run():
        await session.initialize()
        thread.send("first")
        thread.send("second")
        assert [message["text"] for message in thread.messages] == ["first", "second"]
        await coordinator.wait_idle()

    asyncio.run(_run())
    assert thread.messages == [{"text": "second", "id": 2}]


def test_sends_reach_server_in_order(thread_factory, http):
    stored = _echo_server(http)
    session, coordinator, thread = thread_factory()

    async def _run():
        await session.initialize()
        for text in ("one", "two", "three"):
            thread.send(text)
        await coordinator.wait_idle()

    asyncio.run(_run())
    assert [message["text"] for message in stored] == ["one", "two", "three"]
    assert [message["text"] for message in thread.messages] == ["one", "two", "three"]


def test_blank_message_is_ignored(thread_factory, http):
    session, _, thread = thread_factory()

    async def _run():
        await session.initialize()
        return thread.send("   ")

    assert asyncio.run(_run()) is None
    assert thread.messages == []
    assert http.calls == []


def test_refresh_sorts_oldest_first(thread_factory, http):
    http.on(
        "GET",
        "/api/messages/chat-1",
        [
            {"text": "later", "created_at": "2026-10-19T12:05:00Z"},
            {"text": "earlier", "created_at": "2026-10-19T11:55:00.000Z"},
        ],
    )
    session, _, thread = thread_factory()

    async def _run():
        await session.initialize()
        return await thread.refresh()

    assert asyncio.run(_run()).success is True
    assert [message["text"] for message in thread.messages] == ["earlier", "later"]


def test_chat_list_names_partner(make_session, signed_in_store, apis, coordinator_factory, http):
    http.on(
        "GET",
        "/api/chats",
        [
            {"chat_id": 1, "uuid1": "You", "uuid2": "sam"},
            {"chat_id": 2, "uuid1": "lee", "uuid2": " you "},
        ],
    )
    session = make_session(store=signed_in_store)
    chats = ChatList(session, apis["messages"], coordinator_factory())

    async def _run():
        await session.initialize()
        return await chats.refresh()

    assert asyncio.run(_run()).success is True
    assert [chat_partner(chat) for chat in chats.chats] == ["sam", "lee"]
    assert [chat["chat_id"] for chat in chats.search("SA")] == [1]
    assert chat_partner({"uuid1": "a", "uuid2": "b"}) == "Unknown Chat"
