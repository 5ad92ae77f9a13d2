from __future__ import annotations

from typing import Any

from fitcheck_client.http import HttpClient


class AuthApi:
    def __init__(self, http_client: HttpClient):
        self._http_client = http_client

    def sign_in(self, email: str, password: str) -> dict[str, Any]:
        return self._http_client.post_json(
            None,
            "/auth/signin",
            {"email": email, "password": password},
        )

    def sign_up(self, email: str, password: str, username: str) -> dict[str, Any]:
        return self._http_client.post_json(
            None,
            "/auth/signup",
            {"email": email, "password": password, "username": username},
        )

    def get_user_name(self, token: str) -> dict[str, Any]:
        return self._http_client.post_json(token, "/api/getUserName", {})
