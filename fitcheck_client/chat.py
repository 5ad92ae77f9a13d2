from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
from typing import Any

from fitcheck_client.apis import MessagesApi
from fitcheck_client.http import ApiHttpError
from fitcheck_client.models import ActionResult, MutationOutcome
from fitcheck_client.optimistic import OptimisticMutationCoordinator, created_entity, new_temp_id, now_iso
from fitcheck_client.session import AuthenticationError, SessionManager

logger = logging.getLogger(__name__)


def _sort_key(message: dict[str, Any]) -> datetime:
    raw = str(message.get("created_at") or "")
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def chat_partner(chat: dict[str, Any]) -> str:
    """Name of the other participant; the API labels the caller as "you"."""
    first = str(chat.get("uuid1") or "")
    second = str(chat.get("uuid2") or "")
    if first.strip().lower() == "you":
        return second
    if second.strip().lower() == "you":
        return first
    return "Unknown Chat"


class ChatList:
    def __init__(
        self,
        session: SessionManager,
        messages_api: MessagesApi,
        coordinator: OptimisticMutationCoordinator,
    ):
        self._session = session
        self._messages_api = messages_api
        self._coordinator = coordinator
        self.chats: list[dict[str, Any]] = []

    async def refresh(self) -> ActionResult:
        try:
            token = self._session.require_token()
            chats = await self._coordinator.call(self._messages_api.list_chats, token)
        except (AuthenticationError, ApiHttpError) as exc:
            logger.warning("Error fetching chats: %s", exc)
            return ActionResult.failed("Failed to load chats")
        self.chats = chats
        return ActionResult.ok()

    def search(self, query: str) -> list[dict[str, Any]]:
        needle = (query or "").strip().lower()
        if not needle:
            return list(self.chats)
        return [chat for chat in self.chats if needle in chat_partner(chat).lower()]


class ChatThread:
    """Messages of one chat, oldest first, with optimistic sends.

    A message being sent carries ``is_temp: True`` and a ``uuid`` starting
    with ``temp-`` until the server acknowledges it.
    """

    def __init__(
        self,
        chat_id: Any,
        session: SessionManager,
        messages_api: MessagesApi,
        coordinator: OptimisticMutationCoordinator,
    ):
        self.chat_id = chat_id
        self._session = session
        self._messages_api = messages_api
        self._coordinator = coordinator
        self.messages: list[dict[str, Any]] = []
        self._generation = 0

    @property
    def pending(self) -> list[dict[str, Any]]:
        return [message for message in self.messages if message.get("is_temp")]

    async def refresh(self) -> ActionResult:
        self._generation += 1
        generation = self._generation
        try:
            token = self._session.require_token()
            messages = await self._coordinator.call(self._messages_api.list_messages, token, self.chat_id)
        except (AuthenticationError, ApiHttpError) as exc:
            logger.warning("Error fetching messages for chat %s: %s", self.chat_id, exc)
            return ActionResult.failed("Failed to load messages")
        if generation != self._generation:
            logger.debug("Dropping stale message list for chat %s", self.chat_id)
            return ActionResult.ok()
        # sends still awaiting their ack stay visible after a reload
        self.messages = sorted(messages, key=_sort_key) + self.pending
        return ActionResult.ok()

    def send(self, text: str) -> asyncio.Task[MutationOutcome] | None:
        cleaned = (text or "").strip()
        if not cleaned:
            return None
        try:
            token = self._session.require_token()
        except AuthenticationError:
            self._coordinator.notify("Please sign in to send messages")
            return None

        payload = {
            "chat_id": self.chat_id,
            "text": cleaned,
            "created_at": now_iso(),
            "ownerUsername": self._session.username,
        }
        temp_id = new_temp_id()

        def local_change() -> str:
            self.messages.append({**payload, "uuid": temp_id, "is_temp": True})
            return temp_id

        def rollback(baseline: str) -> None:
            self.messages = [message for message in self.messages if message.get("uuid") != baseline]

        def reconcile(response: Any) -> None:
            created = created_entity(response, "message")
            for index, message in enumerate(self.messages):
                if message.get("uuid") != temp_id:
                    continue
                if created is not None:
                    self.messages[index] = created
                else:
                    message["is_temp"] = False
                    message.pop("uuid", None)
                    self._coordinator.spawn(self.refresh())
                break

        return self._coordinator.apply(
            ("send", self.chat_id, temp_id),
            local_change,
            lambda: self._messages_api.send_message(token, payload),
            rollback=rollback,
            reconcile=reconcile,
            error_message="Failed to send message",
            queue=("chat", self.chat_id),
        )
