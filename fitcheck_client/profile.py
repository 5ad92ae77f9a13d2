from __future__ import annotations

import asyncio
import logging
from typing import Any

from fitcheck_client.apis import ProfileApi
from fitcheck_client.http import ApiHttpError
from fitcheck_client.models import ActionResult, MutationOutcome
from fitcheck_client.optimistic import OptimisticMutationCoordinator, adjust_counter
from fitcheck_client.session import AuthenticationError, SessionManager

logger = logging.getLogger(__name__)


class ProfileView:
    """Profile of one user, either the signed-in user or someone else."""

    def __init__(
        self,
        username: str,
        session: SessionManager,
        profile_api: ProfileApi,
        coordinator: OptimisticMutationCoordinator,
        user_id: Any = None,
    ):
        self.username = username
        self.user_id = user_id
        self._session = session
        self._profile_api = profile_api
        self._coordinator = coordinator
        self.profile: dict[str, Any] = {}
        self.posts: list[dict[str, Any]] = []
        self.stats: dict[str, Any] = {}
        self.is_following = False

    @property
    def is_own_profile(self) -> bool:
        return bool(self.username) and self.username == self._session.username

    async def refresh(self) -> ActionResult:
        if not self.username:
            return ActionResult.failed("Unable to load user profile - missing username")
        try:
            token = self._session.require_token()
            profile = await self._coordinator.call(self._profile_api.user_data, token, self.username)
        except (AuthenticationError, ApiHttpError) as exc:
            logger.warning("Error fetching profile %s: %s", self.username, exc)
            return ActionResult.failed("Failed to load user profile")

        if not profile:
            return ActionResult.failed("Failed to load user profile - invalid response")
        self.profile = profile
        if self.user_id is None:
            self.user_id = profile.get("id") or profile.get("userId")

        if self.is_own_profile:
            await self._refresh_own_extras(token)
        return ActionResult.ok()

    async def _refresh_own_extras(self, token: str) -> None:
        try:
            self.posts = await self._coordinator.call(self._profile_api.own_posts, token)
            self.stats = await self._coordinator.call(self._profile_api.stats, token)
        except ApiHttpError as exc:
            logger.warning("Error fetching own posts or stats: %s", exc)

    async def refresh_follow_status(self) -> ActionResult:
        if self.user_id is None:
            return ActionResult.failed("Unknown user")
        try:
            token = self._session.require_token()
            self.is_following = await self._coordinator.call(
                self._profile_api.follow_status,
                token,
                self.user_id,
            )
        except (AuthenticationError, ApiHttpError) as exc:
            logger.warning("Error checking follow status: %s", exc)
            return ActionResult.failed("Failed to check follow status")
        return ActionResult.ok()

    def toggle_follow(self) -> asyncio.Task[MutationOutcome] | None:
        if self.user_id is None or self.is_own_profile:
            return None
        try:
            token = self._session.require_token()
        except AuthenticationError:
            self._coordinator.notify("Please sign in to follow users")
            return None

        def local_change() -> tuple[bool, Any]:
            baseline = (self.is_following, self.profile.get("followers"))
            self.is_following = not self.is_following
            adjust_counter(self.profile, "followers", 1 if self.is_following else -1)
            return baseline

        def rollback(baseline: tuple[bool, Any]) -> None:
            self.is_following, followers = baseline
            self.profile["followers"] = followers

        def reconcile(response: Any) -> None:
            if not isinstance(response, dict) or "isFollowing" not in response:
                return
            confirmed = bool(response["isFollowing"])
            if confirmed != self.is_following:
                # the optimistic counter moved the other way
                adjust_counter(self.profile, "followers", 1 if confirmed else -1)
            self.is_following = confirmed

        return self._coordinator.apply(
            ("follow", self.user_id),
            local_change,
            lambda: self._profile_api.follow(token, self.user_id),
            rollback=rollback,
            reconcile=reconcile,
            error_message="Failed to follow user",
        )

    async def update_bio(self, bio: str) -> ActionResult:
        if not self.is_own_profile:
            return ActionResult.failed("You can only edit your own profile")
        try:
            token = self._session.require_token()
            await self._coordinator.call(self._profile_api.update_bio, token, bio)
        except (AuthenticationError, ApiHttpError) as exc:
            logger.warning("Error updating bio: %s", exc)
            return ActionResult.failed("Failed to update bio")
        self.profile["bio"] = bio
        return ActionResult.ok()


async def list_users(
    session: SessionManager,
    profile_api: ProfileApi,
    coordinator: OptimisticMutationCoordinator,
) -> list[dict[str, Any]]:
    try:
        token = session.require_token()
        return await coordinator.call(profile_api.list_users, token)
    except (AuthenticationError, ApiHttpError) as exc:
        logger.warning("Error fetching users: %s", exc)
        return []
