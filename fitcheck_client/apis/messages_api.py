from __future__ import annotations

from typing import Any
from urllib.parse import quote

from fitcheck_client.http import HttpClient


class MessagesApi:
    def __init__(self, http_client: HttpClient):
        self._http_client = http_client

    def list_chats(self, token: str) -> list[dict[str, Any]]:
        response = self._http_client.get_json(token, "/api/chats")
        return response if isinstance(response, list) else []

    def list_messages(self, token: str, chat_id: Any) -> list[dict[str, Any]]:
        response = self._http_client.get_json(token, f"/api/messages/{quote(str(chat_id), safe='')}")
        return response if isinstance(response, list) else []

    def send_message(self, token: str, payload: dict[str, Any]) -> Any:
        return self._http_client.post_json(token, "/api/messages", payload)
