import asyncio

import pytest

from fitcheck_client.gyms import GymDirectory, normalize_gym, summarize_reviews
from fitcheck_client.http import ApiHttpError


def test_normalize_gym_coerces_fields():
    gym = normalize_gym(
        {"id": "17", "name": "Iron Temple", "avg_rating": "4.5", "ratingCount": 8},
        "Ontario",
    )
    assert gym["id"] == 17
    assert gym["province"] == "Ontario"
    assert gym["rating"] == 4.5
    assert gym["ratingCount"] == 8
    assert gym["tags"] == []


def test_normalize_gym_keeps_non_numeric_id():
    gym = normalize_gym({"id": "abc", "rating": None, "rating_count": None}, "Quebec")
    assert gym["id"] == "abc"
    assert gym["rating"] == 0
    assert gym["ratingCount"] == 0


def test_summarize_reviews_averages_and_ranks_tags():
    reviews = [
        {"Rating": 5, "Tags": ["clean", "friendly", "24/7"]},
        {"Rating": 3, "Tags": ["clean", "crowded"]},
        {"Rating": 4, "Tags": ["clean", "friendly", "parking", "sauna", "pool", "classes"]},
    ]

    summary = summarize_reviews(reviews)

    assert summary.total_reviews == 3
    assert summary.average_rating == pytest.approx(4.0)
    assert len(summary.popular_tags) == 6
    assert summary.popular_tags[:2] == [("clean", 3), ("friendly", 2)]


def test_summarize_reviews_empty():
    summary = summarize_reviews([])
    assert summary.total_reviews == 0
    assert summary.average_rating == 0.0
    assert summary.popular_tags == []


@pytest.fixture
def directory_factory(make_session, signed_in_store, apis, coordinator_factory):
    def _make():
        session = make_session(store=signed_in_store)
        return session, GymDirectory(session, apis["gyms"], coordinator_factory())

    return _make


def test_gyms_in_province_normalizes(directory_factory, http):
    http.on("GET", "/api/getGymsByProvince/British%20Columbia", {"gyms": [{"id": "1", "name": "Peak"}]})
    session, directory = directory_factory()

    async def _run():
        await session.initialize()
        return await directory.gyms_in_province("British Columbia")

    gyms = asyncio.run(_run())
    assert gyms[0]["id"] == 1
    assert gyms[0]["province"] == "British Columbia"
    assert http.calls[0][2] == "tok-123"


def test_gyms_in_province_failure_notifies(directory_factory, http, notices):
    http.on("GET", "/api/getGymsByProvince/Yukon", ApiHttpError(status_code=0, message="Request failed"))
    session, directory = directory_factory()

    assert asyncio.run(directory.gyms_in_province("Yukon")) == []
    assert notices == ["Failed to load gyms. Please try again."]
    assert http.calls[0][2] is None


def test_reviews_returns_summary(directory_factory, http):
    http.on("GET", "/api/GetComments/", [{"Rating": 4, "Tags": ["clean"]}])
    _, directory = directory_factory()

    reviews, summary = asyncio.run(directory.reviews("gym-9"))
    assert len(reviews) == 1
    assert summary.popular_tags == [("clean", 1)]
    assert http.calls[0][3] == {"GymName": "gym-9"}


@pytest.mark.parametrize("text, rating", [("", 4), ("Great", 0), ("Great", 6)])
def test_submit_review_validates_locally(directory_factory, http, text, rating):
    session, directory = directory_factory()

    async def _run():
        await session.initialize()
        return await directory.submit_review("gym-9", "Peak", text, rating)

    result = asyncio.run(_run())
    assert result.error == "Please provide a rating and comment"
    assert http.calls == []


def test_submit_review_posts_payload(directory_factory, http):
    http.on("POST", "/api/comment", {})
    session, directory = directory_factory()

    async def _run():
        await session.initialize()
        return await directory.submit_review("gym-9", "Peak", "Great", 5, ["clean"])

    assert asyncio.run(_run()).success is True
    payload = http.calls[0][3]
    assert payload["GymId"] == "gym-9"
    assert payload["Rating"] == 5
    assert payload["Tags"] == ["clean"]
    assert payload["UserName"] == "maria"


def test_gym_details_failure_notifies(directory_factory, http, notices):
    http.on("GET", "/api/gym/12", ApiHttpError(status_code=404, message="HTTP 404"))
    _, directory = directory_factory()

    assert asyncio.run(directory.gym_details(12)) is None
    assert notices == ["Failed to load gym details"]
