from __future__ import annotations

import logging
import time
from typing import Any

import requests

from fitcheck_client.config import AppSettings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)


class ApiHttpError(RuntimeError):
    def __init__(self, status_code: int, message: str, server_message: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.server_message = server_message

    @property
    def is_transport_error(self) -> bool:
        return self.status_code == 0


class HttpClient:
    """JSON-over-HTTP access to the FitCheck API.

    ``token`` is optional on every call; when given it is sent as a bearer
    credential. Reads are retried on throttling and gateway errors unless the
    caller opts out, writes are sent once because the API offers no
    idempotency keys.
    """

    def __init__(self, settings: AppSettings, session: requests.Session | None = None):
        self._settings = settings
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )

    @property
    def base_url(self) -> str:
        return self._settings.base_url

    def get_json(
        self,
        token: str | None,
        path: str,
        params: dict[str, Any] | None = None,
        retry: bool = True,
    ) -> Any:
        return self._request("GET", token, path, retry=retry, params=params)

    def post_json(self, token: str | None, path: str, payload: dict[str, Any]) -> Any:
        return self._request("POST", token, path, retry=False, json=payload)

    def put_json(self, token: str | None, path: str, payload: dict[str, Any]) -> Any:
        return self._request("PUT", token, path, retry=False, json=payload)

    def post_form(self, token: str | None, path: str, data: dict[str, Any]) -> Any:
        # requests only form-encodes when Content-Type is left to it
        return self._request(
            "POST",
            token,
            path,
            retry=False,
            data=data,
            headers={"Content-Type": None},
        )

    def close(self) -> None:
        self._session.close()

    def _request(
        self,
        method: str,
        token: str | None,
        path: str,
        *,
        retry: bool,
        headers: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        url = f"{self._settings.base_url}{path}"
        request_headers: dict[str, Any] = dict(headers or {})
        if token:
            request_headers["Authorization"] = f"Bearer {token}"

        last_error: ApiHttpError | None = None
        attempts = self._settings.retry_attempts + 1 if retry else 1
        for attempt in range(1, attempts + 1):
            try:
                response = self._session.request(
                    method,
                    url,
                    headers=request_headers,
                    timeout=self._settings.timeout_seconds,
                    **kwargs,
                )
            except requests.RequestException as exc:
                logger.warning("%s %s failed: %s", method, path, exc.__class__.__name__)
                raise ApiHttpError(status_code=0, message=f"Request failed: {exc}") from exc

            if response.ok:
                return self._decode(response)

            server_message = self._server_message(response)
            last_error = ApiHttpError(
                status_code=response.status_code,
                message=f"HTTP {response.status_code}: {response.text[:500]}",
                server_message=server_message,
            )
            if response.status_code in RETRYABLE_STATUS_CODES and attempt < attempts:
                logger.info(
                    "%s %s returned %s, retrying (%d/%d)",
                    method,
                    path,
                    response.status_code,
                    attempt,
                    attempts - 1,
                )
                time.sleep(1.5 * attempt)
                continue
            raise last_error

        if last_error is None:
            raise ApiHttpError(status_code=0, message="Request failed")
        raise last_error

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}

    @staticmethod
    def _server_message(response: requests.Response) -> str | None:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict):
            message = str(body.get("message") or "").strip()
            return message or None
        return None
