from __future__ import annotations

import asyncio
import logging
from typing import Any

from fitcheck_client.apis import FeedApi
from fitcheck_client.http import ApiHttpError
from fitcheck_client.models import ActionResult, MutationOutcome
from fitcheck_client.optimistic import (
    OptimisticMutationCoordinator,
    adjust_counter,
    created_entity,
    new_temp_id,
    now_iso,
)
from fitcheck_client.session import AuthenticationError, SessionManager
from fitcheck_client.validation import ValidationError, require_text

logger = logging.getLogger(__name__)


class FeedState:
    """Posts and their comments as the home feed shows them.

    ``posts`` and ``comments`` are mutated in place; callers re-render after
    any method returns and again when a returned task completes.
    """

    def __init__(
        self,
        session: SessionManager,
        feed_api: FeedApi,
        coordinator: OptimisticMutationCoordinator,
    ):
        self._session = session
        self._feed_api = feed_api
        self._coordinator = coordinator
        self.posts: list[dict[str, Any]] = []
        self.comments: dict[Any, list[dict[str, Any]]] = {}
        self._comment_generations: dict[Any, int] = {}

    def find_post(self, post_id: Any) -> dict[str, Any] | None:
        for post in self.posts:
            if post.get("postId") == post_id:
                return post
        return None

    async def refresh(self) -> ActionResult:
        try:
            token = self._session.require_token()
            posts = await self._coordinator.call(self._feed_api.list_posts, token)
        except (AuthenticationError, ApiHttpError) as exc:
            logger.warning("Error fetching feed: %s", exc)
            return ActionResult.failed("Failed to load feed")
        self.posts = posts
        return ActionResult.ok()

    def pending_comments(self, post_id: Any) -> list[dict[str, Any]]:
        return [comment for comment in self.comments.get(post_id, []) if comment.get("is_temp")]

    async def load_comments(self, post_id: Any) -> ActionResult:
        generation = self._comment_generations.get(post_id, 0) + 1
        self._comment_generations[post_id] = generation
        try:
            token = self._session.require_token()
            comments = await self._coordinator.call(self._feed_api.list_comments, token, post_id)
        except (AuthenticationError, ApiHttpError) as exc:
            logger.warning("Error fetching comments for post %s: %s", post_id, exc)
            self.comments[post_id] = self.pending_comments(post_id)
            return ActionResult.failed("Failed to load comments")
        if generation != self._comment_generations[post_id]:
            logger.debug("Dropping stale comments for post %s", post_id)
            return ActionResult.ok()
        # comments still awaiting their ack stay visible after a reload
        self.comments[post_id] = list(comments) + self.pending_comments(post_id)
        return ActionResult.ok()

    def toggle_like(self, post_id: Any) -> asyncio.Task[MutationOutcome] | None:
        post = self.find_post(post_id)
        if post is None:
            self._coordinator.notify("Invalid post")
            return None
        token = self._token_or_notify("Please sign in to like posts")
        if token is None:
            return None

        def local_change() -> tuple[Any, Any]:
            baseline = (post.get("is_liked"), post.get("total_likes"))
            liked = bool(post.get("is_liked"))
            post["is_liked"] = not liked
            adjust_counter(post, "total_likes", -1 if liked else 1)
            return baseline

        def rollback(baseline: tuple[Any, Any]) -> None:
            is_liked, total_likes = baseline
            post["is_liked"] = is_liked
            if total_likes is not None and int(total_likes) < 0:
                total_likes = 0
            post["total_likes"] = total_likes

        def reconcile(response: Any) -> None:
            if not isinstance(response, dict):
                return
            if "is_liked" in response:
                post["is_liked"] = bool(response["is_liked"])
            if "total_likes" in response:
                post["total_likes"] = max(0, int(response["total_likes"] or 0))

        return self._coordinator.apply(
            ("like", post_id),
            local_change,
            lambda: self._feed_api.like_post(token, post_id),
            rollback=rollback,
            reconcile=reconcile,
            error_message="Failed to update like. Please try again.",
        )

    def add_comment(self, post_id: Any, text: str) -> asyncio.Task[MutationOutcome] | None:
        post = self.find_post(post_id)
        if post is None:
            self._coordinator.notify("Invalid post")
            return None
        try:
            cleaned = require_text(text, "Please enter a comment")
        except ValidationError as exc:
            self._coordinator.notify(str(exc))
            return None
        token = self._token_or_notify("Please sign in to comment")
        if token is None:
            return None

        payload = {
            "text": cleaned,
            "created_at": now_iso(),
            "username": self._session.username or "Anonymous",
        }
        temp_id = new_temp_id()

        def local_change() -> None:
            self.comments.setdefault(post_id, []).append({**payload, "comment_id": temp_id, "is_temp": True})
            adjust_counter(post, "total_comments", 1)

        def rollback(_: Any) -> None:
            # undo only this comment; other sends on the post may still be pending
            thread = self.comments.get(post_id, [])
            thread[:] = [comment for comment in thread if comment.get("comment_id") != temp_id]
            adjust_counter(post, "total_comments", -1)

        def reconcile(response: Any) -> None:
            created = created_entity(response, "comment")
            thread = self.comments.get(post_id, [])
            for index, comment in enumerate(thread):
                if comment.get("comment_id") != temp_id:
                    continue
                if created is not None:
                    thread[index] = created
                else:
                    comment["is_temp"] = False
                    self._coordinator.spawn(self.load_comments(post_id))
                break

        return self._coordinator.apply(
            ("comment", post_id, temp_id),
            local_change,
            lambda: self._feed_api.add_comment(token, post_id, payload),
            rollback=rollback,
            reconcile=reconcile,
            error_message="Failed to add comment. Please try again.",
            queue=("comments", post_id),
        )

    async def create_post(
        self,
        text: str,
        gym_name: str | None = None,
        workout_type: str | None = None,
    ) -> ActionResult:
        try:
            cleaned = require_text(text, "Please write something to share!")
            token = self._session.require_token()
        except (ValidationError, AuthenticationError) as exc:
            return ActionResult.failed(str(exc))

        try:
            await self._coordinator.call(
                self._feed_api.create_post,
                token,
                cleaned,
                now_iso(),
                gym_name,
                workout_type,
            )
        except ApiHttpError as exc:
            logger.warning("Error creating post: %s", exc)
            return ActionResult.failed(exc.server_message or "Failed to share post. Please try again.")
        return ActionResult.ok()

    def _token_or_notify(self, message: str) -> str | None:
        try:
            return self._session.require_token()
        except AuthenticationError:
            self._coordinator.notify(message)
            return None
