from __future__ import annotations

import logging
from typing import Any

from fitcheck_client.apis import AuthApi, FeedApi, GymsApi, MessagesApi, ProfileApi
from fitcheck_client.chat import ChatList, ChatThread
from fitcheck_client.config import AppSettings
from fitcheck_client.feed import FeedState
from fitcheck_client.gyms import GymDirectory
from fitcheck_client.http import HttpClient
from fitcheck_client.logging_utils import configure_logging
from fitcheck_client.models import ActionResult, SessionState
from fitcheck_client.optimistic import Notifier, OptimisticMutationCoordinator
from fitcheck_client.profile import ProfileView, list_users
from fitcheck_client.session import SessionManager
from fitcheck_client.storage import SessionStore

logger = logging.getLogger(__name__)


class FitCheckService:
    """Composition root handed to every screen.

    Owns the session and one mutation coordinator per feature, so overlapping
    actions are only serialized within a feature.
    """

    def __init__(
        self,
        session: SessionManager,
        http_client: HttpClient,
        feed_api: FeedApi,
        messages_api: MessagesApi,
        profile_api: ProfileApi,
        gyms_api: GymsApi,
        request_timeout_seconds: int,
        notify: Notifier | None = None,
    ):
        self._session = session
        self._http_client = http_client
        self._feed_api = feed_api
        self._messages_api = messages_api
        self._profile_api = profile_api
        self._gyms_api = gyms_api
        self._request_timeout_seconds = request_timeout_seconds
        self._notify = notify
        self._coordinators: dict[str, OptimisticMutationCoordinator] = {}

    @property
    def session(self) -> SessionManager:
        return self._session

    @property
    def request_timeout_seconds(self) -> int:
        return self._request_timeout_seconds

    def auth_state(self) -> SessionState:
        return self._session.state

    async def start(self) -> SessionState:
        return await self._session.initialize()

    async def sign_in(self, email: str, password: str, remember_me: bool = False) -> ActionResult:
        return await self._session.sign_in(email, password, remember_me=remember_me)

    async def sign_up(self, email: str, password: str, username: str) -> ActionResult:
        return await self._session.sign_up(email, password, username)

    async def sign_out(self) -> None:
        for coordinator in self._coordinators.values():
            coordinator.cancel_all()
        await self._session.logout()

    def feed(self) -> FeedState:
        return FeedState(self._session, self._feed_api, self._coordinator("feed"))

    def chats(self) -> ChatList:
        return ChatList(self._session, self._messages_api, self._coordinator("messages"))

    def chat(self, chat_id: Any) -> ChatThread:
        return ChatThread(chat_id, self._session, self._messages_api, self._coordinator("messages"))

    def profile(self, username: str, user_id: Any = None) -> ProfileView:
        return ProfileView(
            username,
            self._session,
            self._profile_api,
            self._coordinator("profile"),
            user_id=user_id,
        )

    async def users(self) -> list[dict[str, Any]]:
        return await list_users(self._session, self._profile_api, self._coordinator("profile"))

    def gyms(self) -> GymDirectory:
        return GymDirectory(self._session, self._gyms_api, self._coordinator("gyms"))

    async def close(self) -> None:
        for coordinator in self._coordinators.values():
            coordinator.cancel_all()
            await coordinator.wait_idle()
        self._session.teardown()
        self._http_client.close()

    def _coordinator(self, feature: str) -> OptimisticMutationCoordinator:
        coordinator = self._coordinators.get(feature)
        if coordinator is None:
            coordinator = OptimisticMutationCoordinator(
                timeout_seconds=self._request_timeout_seconds,
                notify=self._notify,
            )
            self._coordinators[feature] = coordinator
        return coordinator


def build_service(
    settings: AppSettings | None = None,
    notify: Notifier | None = None,
    store: Any = None,
) -> FitCheckService:
    settings = settings or AppSettings.from_env()
    configure_logging(settings.log_level)

    http_client = HttpClient(settings)
    session = SessionManager(
        AuthApi(http_client),
        store if store is not None else SessionStore(settings.session_store_path),
        remember_me_days=settings.remember_me_days,
    )
    logger.debug("FitCheck client targeting %s", settings.base_url)
    return FitCheckService(
        session=session,
        http_client=http_client,
        feed_api=FeedApi(http_client),
        messages_api=MessagesApi(http_client),
        profile_api=ProfileApi(http_client),
        gyms_api=GymsApi(http_client),
        request_timeout_seconds=settings.timeout_seconds,
        notify=notify,
    )
