from __future__ import annotations

from collections import Counter
import logging
from typing import Any

from fitcheck_client.apis import GymsApi
from fitcheck_client.http import ApiHttpError
from fitcheck_client.models import ActionResult, GymReviewSummary
from fitcheck_client.optimistic import OptimisticMutationCoordinator, new_temp_id, now_iso
from fitcheck_client.session import AuthenticationError, SessionManager
from fitcheck_client.validation import ValidationError, require_text, validate_rating

logger = logging.getLogger(__name__)

POPULAR_TAG_LIMIT = 6


def _number(value: Any, default: float = 0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def normalize_gym(raw: dict[str, Any], province: str) -> dict[str, Any]:
    raw_id = raw.get("id")
    try:
        gym_id: Any = int(raw_id)
    except (TypeError, ValueError):
        gym_id = raw_id

    rating = raw.get("rating")
    if rating is None:
        rating = raw.get("avg_rating")
    rating_count = raw.get("rating_count")
    if rating_count is None:
        rating_count = raw.get("ratingCount")

    return {
        "id": gym_id,
        "name": raw.get("name"),
        "province": province,
        "position": raw.get("position"),
        "tags": list(raw.get("tags") or []),
        "rating": _number(rating),
        "ratingCount": int(_number(rating_count)),
        "link": raw.get("link"),
        "location": raw.get("location"),
        "gym_hours": raw.get("gym_hours"),
    }


def summarize_reviews(reviews: list[dict[str, Any]]) -> GymReviewSummary:
    if not reviews:
        return GymReviewSummary(average_rating=0.0, total_reviews=0)

    average = sum(_number(review.get("Rating")) for review in reviews) / len(reviews)
    tags: Counter[str] = Counter()
    for review in reviews:
        review_tags = review.get("Tags")
        if isinstance(review_tags, list):
            tags.update(str(tag) for tag in review_tags)

    return GymReviewSummary(
        average_rating=average,
        total_reviews=len(reviews),
        popular_tags=tags.most_common(POPULAR_TAG_LIMIT),
    )


class GymDirectory:
    def __init__(
        self,
        session: SessionManager,
        gyms_api: GymsApi,
        coordinator: OptimisticMutationCoordinator,
    ):
        self._session = session
        self._gyms_api = gyms_api
        self._coordinator = coordinator

    def _optional_token(self) -> str | None:
        # browsing gyms works signed out; a token only personalizes results
        return self._session.session.token if self._session.is_authenticated() else None

    async def gyms_in_province(self, province: str) -> list[dict[str, Any]]:
        try:
            gyms = await self._coordinator.call(
                self._gyms_api.gyms_by_province,
                self._optional_token(),
                province,
            )
        except ApiHttpError as exc:
            logger.warning("Error fetching gyms for %s: %s", province, exc)
            self._coordinator.notify("Failed to load gyms. Please try again.")
            return []
        return [normalize_gym(gym, province) for gym in gyms if isinstance(gym, dict)]

    async def gym_details(self, gym_id: Any) -> dict[str, Any] | None:
        try:
            return await self._coordinator.call(self._gyms_api.gym_details, self._optional_token(), gym_id)
        except ApiHttpError as exc:
            logger.warning("Error fetching gym %s: %s", gym_id, exc)
            self._coordinator.notify("Failed to load gym details")
            return None

    async def reviews(self, gym_id: Any) -> tuple[list[dict[str, Any]], GymReviewSummary]:
        try:
            reviews = await self._coordinator.call(self._gyms_api.reviews, gym_id)
        except ApiHttpError as exc:
            logger.warning("Error fetching reviews for gym %s: %s", gym_id, exc)
            reviews = []
        return reviews, summarize_reviews(reviews)

    async def submit_review(
        self,
        gym_id: Any,
        gym_name: str,
        text: str,
        rating: int,
        tags: list[str] | None = None,
    ) -> ActionResult:
        try:
            cleaned = require_text(text, "Please provide a rating and comment")
            validate_rating(rating)
            token = self._session.require_token()
        except AuthenticationError:
            return ActionResult.failed("Please sign in to leave a review")
        except ValidationError as exc:
            return ActionResult.failed(str(exc))

        payload = {
            "CommentID": new_temp_id(),
            "UserName": self._session.username or "Anonymous",
            "CommentText": cleaned,
            "GymName": gym_name or "",
            "GymId": gym_id,
            "Time": now_iso(),
            "Rating": rating,
            "Tags": list(tags or []),
        }
        try:
            await self._coordinator.call(self._gyms_api.submit_review, token, payload)
        except ApiHttpError as exc:
            logger.warning("Error submitting review: %s", exc)
            return ActionResult.failed(exc.server_message or "Failed to submit review")
        return ActionResult.ok()
