from __future__ import annotations

from typing import Any
from urllib.parse import quote

from fitcheck_client.http import HttpClient


class GymsApi:
    def __init__(self, http_client: HttpClient):
        self._http_client = http_client

    def gyms_by_province(self, token: str | None, province: str) -> list[dict[str, Any]]:
        response = self._http_client.get_json(
            token,
            f"/api/getGymsByProvince/{quote(province, safe='')}",
        )
        if isinstance(response, list):
            return response
        if isinstance(response, dict):
            return list(response.get("gyms") or [])
        return []

    def gym_details(self, token: str | None, gym_id: Any) -> dict[str, Any]:
        response = self._http_client.get_json(token, f"/api/gym/{quote(str(gym_id), safe='')}")
        return response if isinstance(response, dict) else {}

    def reviews(self, gym_id: Any) -> list[dict[str, Any]]:
        response = self._http_client.get_json(None, "/api/GetComments/", params={"GymName": str(gym_id)})
        return response if isinstance(response, list) else []

    def submit_review(self, token: str, payload: dict[str, Any]) -> Any:
        return self._http_client.post_json(token, "/api/comment", payload)
