from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
import json
import logging
from typing import Any, Callable

from fitcheck_client.apis import AuthApi
from fitcheck_client.http import ApiHttpError
from fitcheck_client.models import ActionResult, Session, SessionState
from fitcheck_client.storage import (
    EXPIRES_AT_KEY,
    SESSION_KEYS,
    StorageError,
    TOKEN_KEY,
    USER_DATA_KEY,
    USERNAME_KEY,
)
from fitcheck_client.validation import ValidationError, validate_sign_in, validate_sign_up

logger = logging.getLogger(__name__)

LOGIN_FAILED = "Login failed"
REGISTRATION_FAILED = "Registration failed"


class AuthenticationError(RuntimeError):
    pass


class SessionStateError(RuntimeError):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_expiry(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        # an unreadable expiry cannot prove the session is still valid
        logger.warning("Ignoring malformed persisted expiry %r, treating session as expired", raw)
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_expiry(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class SessionManager:
    """Owns who is signed in.

    Create one per process at the composition root, ``await initialize()``
    once before reading :attr:`state`, and hand the instance to every feature
    that makes authenticated requests. ``store`` is any object with
    ``get_item``, ``set_items`` and ``remove_items`` (see
    :mod:`fitcheck_client.storage`).
    """

    def __init__(
        self,
        auth_api: AuthApi,
        store: Any,
        remember_me_days: int = 7,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._auth_api = auth_api
        self._store = store
        self._remember_me = timedelta(days=remember_me_days)
        self._clock = clock
        self._state = SessionState.UNINITIALIZED
        self._session = Session()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Session:
        return self._session

    @property
    def user(self) -> dict[str, Any] | None:
        if self._state is not SessionState.AUTHENTICATED:
            return None
        return self._session.user

    @property
    def username(self) -> str:
        user = self.user or {}
        return str(user.get("username") or "")

    def is_authenticated(self) -> bool:
        return self._state is SessionState.AUTHENTICATED and self._session.is_valid(self._clock())

    def require_token(self) -> str:
        if not self.is_authenticated() or not self._session.token:
            raise AuthenticationError("Please sign in to continue")
        return self._session.token

    async def initialize(self) -> SessionState:
        if self._state is not SessionState.UNINITIALIZED:
            raise SessionStateError(f"Session already initialized (state: {self._state.value})")

        self._state = SessionState.LOADING
        try:
            token, raw_user, raw_expiry = await asyncio.to_thread(self._read_persisted)
        except StorageError as exc:
            logger.error("Error checking auth state: %s", exc)
            self._become_unauthenticated()
            return self._state

        if not token:
            self._become_unauthenticated()
            return self._state

        expires_at = _parse_expiry(raw_expiry)
        if expires_at is not None and expires_at < self._clock():
            logger.info("Persisted session expired at %s, clearing it", raw_expiry)
            await self._clear_persisted()
            self._become_unauthenticated()
            return self._state

        self._session = Session(token=token, user=self._decode_user(raw_user), expires_at=expires_at)
        self._state = SessionState.AUTHENTICATED
        logger.info("Restored session for %s", self.username or "unknown user")
        return self._state

    def teardown(self) -> None:
        """Forget the in-memory session without touching storage."""
        self._session = Session()
        self._state = SessionState.UNINITIALIZED

    async def sign_in(self, email: str, password: str, remember_me: bool = False) -> ActionResult:
        self._require_initialized()
        try:
            validate_sign_in(email, password)
        except ValidationError as exc:
            return ActionResult.failed(str(exc))

        try:
            response = await asyncio.to_thread(self._auth_api.sign_in, email.strip(), password)
        except ApiHttpError as exc:
            logger.warning("Login error: %s", exc)
            return ActionResult.failed(exc.server_message or LOGIN_FAILED)

        if not isinstance(response, dict) or not response.get("success") or not response.get("token"):
            message = response.get("message") if isinstance(response, dict) else None
            return ActionResult.failed(str(message or LOGIN_FAILED))

        token = str(response["token"])
        base_user = response.get("user")
        user: dict[str, Any] = dict(base_user) if isinstance(base_user, dict) else {}
        username = await self._resolve_username(token)
        if username:
            user["username"] = username

        expires_at = self._clock() + self._remember_me if remember_me else None
        try:
            await asyncio.to_thread(self._persist, token, username, user, expires_at)
        except StorageError as exc:
            logger.error("Could not persist session: %s", exc)
            return ActionResult.failed(LOGIN_FAILED)

        self._session = Session(token=token, user=user, expires_at=expires_at)
        self._state = SessionState.AUTHENTICATED
        logger.info("Signed in as %s", username or "unknown user")
        return ActionResult.ok()

    async def sign_up(self, email: str, password: str, username: str) -> ActionResult:
        try:
            validate_sign_up(email, password, username)
        except ValidationError as exc:
            return ActionResult.failed(str(exc))

        try:
            response = await asyncio.to_thread(
                self._auth_api.sign_up,
                email.strip(),
                password,
                username.strip(),
            )
        except ApiHttpError as exc:
            logger.warning("Registration error: %s", exc)
            return ActionResult.failed(exc.server_message or REGISTRATION_FAILED)

        if isinstance(response, dict) and response.get("success"):
            # activation happens out of band, so no session starts here
            return ActionResult.ok()

        message = response.get("message") if isinstance(response, dict) else None
        return ActionResult.failed(str(message or REGISTRATION_FAILED))

    async def logout(self) -> None:
        try:
            await self._clear_persisted()
        finally:
            self._become_unauthenticated()
            logger.info("Signed out")

    async def _resolve_username(self, token: str) -> str:
        try:
            response = await asyncio.to_thread(self._auth_api.get_user_name, token)
        except ApiHttpError as exc:
            logger.warning("Username lookup failed after sign-in: %s", exc)
            return ""
        if isinstance(response, dict) and response.get("success"):
            return str(response.get("username") or "")
        logger.warning("Username lookup was not successful after sign-in")
        return ""

    async def _clear_persisted(self) -> None:
        try:
            await asyncio.to_thread(self._store.remove_items, SESSION_KEYS)
        except StorageError as exc:
            logger.error("Could not clear persisted session: %s", exc)

    def _read_persisted(self) -> tuple[str | None, str | None, str | None]:
        return (
            self._store.get_item(TOKEN_KEY),
            self._store.get_item(USER_DATA_KEY),
            self._store.get_item(EXPIRES_AT_KEY),
        )

    def _persist(
        self,
        token: str,
        username: str,
        user: dict[str, Any],
        expires_at: datetime | None,
    ) -> None:
        items = {
            TOKEN_KEY: token,
            USERNAME_KEY: username,
            USER_DATA_KEY: json.dumps(user),
        }
        if expires_at is not None:
            items[EXPIRES_AT_KEY] = _format_expiry(expires_at)
        else:
            # a stale expiry from an earlier remembered login must not outlive it
            self._store.remove_items([EXPIRES_AT_KEY])
        self._store.set_items(items)

    @staticmethod
    def _decode_user(raw_user: str | None) -> dict[str, Any]:
        if not raw_user:
            return {}
        try:
            user = json.loads(raw_user)
        except ValueError:
            logger.warning("Persisted user data is not valid JSON, ignoring it")
            return {}
        return user if isinstance(user, dict) else {}

    def _become_unauthenticated(self) -> None:
        self._session = Session()
        self._state = SessionState.UNAUTHENTICATED

    def _require_initialized(self) -> None:
        if self._state in (SessionState.UNINITIALIZED, SessionState.LOADING):
            raise SessionStateError("initialize() must complete before signing in")
