from __future__ import annotations

from typing import Any
from urllib.parse import quote

from fitcheck_client.http import HttpClient


class FeedApi:
    def __init__(self, http_client: HttpClient):
        self._http_client = http_client

    def list_posts(self, token: str) -> list[dict[str, Any]]:
        response = self._http_client.get_json(token, "/api/posts")
        if isinstance(response, dict):
            return list(response.get("posts") or [])
        return []

    def like_post(self, token: str, post_id: Any) -> Any:
        # the endpoint toggles, so a retried request would undo itself
        return self._http_client.get_json(
            token,
            f"/api/addPostLike/{quote(str(post_id), safe='')}",
            retry=False,
        )

    def list_comments(self, token: str, post_id: Any) -> list[dict[str, Any]]:
        response = self._http_client.get_json(
            token,
            f"/api/post/{quote(str(post_id), safe='')}/comments",
        )
        if isinstance(response, list):
            return response
        if isinstance(response, dict):
            for key in ("data", "comments"):
                value = response.get(key)
                if isinstance(value, list):
                    return value
        return []

    def add_comment(self, token: str, post_id: Any, payload: dict[str, Any]) -> Any:
        return self._http_client.post_json(
            token,
            f"/api/post/{quote(str(post_id), safe='')}/comment",
            payload,
        )

    def create_post(
        self,
        token: str,
        text: str,
        created_at: str,
        gym_name: str | None = None,
        workout_type: str | None = None,
    ) -> Any:
        form: dict[str, Any] = {"PostText": text, "Time": created_at}
        if gym_name:
            form["GymName"] = gym_name
        if workout_type:
            form["WorkoutType"] = workout_type
        return self._http_client.post_form(token, "/api/posts", form)
