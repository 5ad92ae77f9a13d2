from __future__ import annotations

from typing import Any
from urllib.parse import quote

from fitcheck_client.http import HttpClient


class ProfileApi:
    def __init__(self, http_client: HttpClient):
        self._http_client = http_client

    def user_data(self, token: str, username: str) -> dict[str, Any]:
        response = self._http_client.get_json(token, "/api/GetUserData/", params={"userName": username})
        return response if isinstance(response, dict) else {}

    def own_posts(self, token: str) -> list[dict[str, Any]]:
        response = self._http_client.get_json(token, "/api/user/posts")
        if isinstance(response, dict):
            return list(response.get("posts") or [])
        return response if isinstance(response, list) else []

    def stats(self, token: str) -> dict[str, Any]:
        response = self._http_client.get_json(token, "/api/user/stats")
        return response if isinstance(response, dict) else {}

    def update_bio(self, token: str, bio: str) -> Any:
        return self._http_client.put_json(token, "/api/profile/bio", {"bio": bio})

    def follow_status(self, token: str, user_id: Any) -> bool:
        response = self._http_client.get_json(token, f"/api/follow/status/{quote(str(user_id), safe='')}")
        if isinstance(response, dict):
            return bool(response.get("isFollowing"))
        return False

    def follow(self, token: str, user_id: Any) -> Any:
        return self._http_client.post_json(token, "/api/follow", {"userId": user_id})

    def list_users(self, token: str) -> list[dict[str, Any]]:
        response = self._http_client.get_json(token, "/api/users")
        if isinstance(response, dict):
            return list(response.get("users") or [])
        return response if isinstance(response, list) else []
