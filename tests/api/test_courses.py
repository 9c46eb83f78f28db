"""Tests for catalogue and lecture content endpoints."""

from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient

from app.db.stores import SAMPLE_COURSE_ID, SAMPLE_INSTRUCTOR_ID, memory_stores
from app.models.course import CourseRating
from tests.conftest import auth_headers, create_test_course

# ---- 401: unauthenticated ----


def test_list_courses_rejects_missing_token(client: TestClient) -> None:
    resp = client.get("/v1/courses")
    assert resp.status_code == 401


def test_lectures_reject_missing_token(client: TestClient) -> None:
    resp = client.get(f"/v1/courses/{SAMPLE_COURSE_ID}/lectures")
    assert resp.status_code == 401


# ---- 200: catalogue ----


def test_list_courses_returns_seeded_course(client: TestClient) -> None:
    resp = client.get("/v1/courses", headers=auth_headers())
    assert resp.status_code == 200
    courses = {c["id"]: c for c in resp.json()}
    assert SAMPLE_COURSE_ID in courses
    assert courses[SAMPLE_COURSE_ID]["totalLectures"] == 4
    assert courses[SAMPLE_COURSE_ID]["price"] == "499.00"


def test_list_courses_includes_new_published_course(client: TestClient) -> None:
    create_test_course("course-1")
    resp = client.get("/v1/courses", headers=auth_headers())
    assert "course-1" in {c["id"] for c in resp.json()}


# ---- lectures: entitlement ----


def test_lectures_forbidden_without_purchase(client: TestClient) -> None:
    resp = client.get(
        f"/v1/courses/{SAMPLE_COURSE_ID}/lectures", headers=auth_headers("stranger")
    )
    assert resp.status_code == 403
    assert resp.json() == {
        "status": "fail",
        "message": "You have not purchased this course",
    }


def test_lectures_visible_to_instructor(client: TestClient) -> None:
    resp = client.get(
        f"/v1/courses/{SAMPLE_COURSE_ID}/lectures",
        headers=auth_headers(SAMPLE_INSTRUCTOR_ID),
    )
    assert resp.status_code == 200
    lectures = resp.json()
    assert [lec["position"] for lec in lectures] == [1, 2, 3, 4]
    assert lectures[0]["videoUrl"].endswith("/1.mp4")


def test_lectures_visible_to_buyer(client: TestClient) -> None:
    asyncio.run(
        memory_stores.purchases.create("buyer", SAMPLE_COURSE_ID, "order_1", "pay_1")
    )
    resp = client.get(
        f"/v1/courses/{SAMPLE_COURSE_ID}/lectures", headers=auth_headers("buyer")
    )
    assert resp.status_code == 200
    assert len(resp.json()) == 4


def test_lectures_unknown_course_is_404(client: TestClient) -> None:
    resp = client.get("/v1/courses/nope/lectures", headers=auth_headers())
    assert resp.status_code == 404


# ---- search ----


def _catalogue() -> None:
    """Three more published courses and a draft, next to the seeded one.

    Seeded: "Introduction to Python", 499, programming/beginner, rated 4.5.
    """
    create_test_course(
        "py-adv",
        price="1500",
        title="Advanced Python",
        description="Async and typing",
        category="programming",
        level="advanced",
        ratings=(CourseRating("u1", 3),),
    )
    create_test_course(
        "ds-101",
        price="800",
        title="Data Science Basics",
        description="pandas and plotting with PYTHON",
        category="data",
        level="beginner",
        ratings=(CourseRating("u1", 5), CourseRating("u2", 5)),
    )
    create_test_course(
        "design",
        price="300",
        title="Design Thinking",
        category="design",
        level="beginner",
    )
    create_test_course("draft", price="100", title="Python Draft", is_published=False)


def _search(client: TestClient, **params) -> dict:
    resp = client.get("/v1/courses/search", params=params, headers=auth_headers())
    assert resp.status_code == 200, resp.text
    return resp.json()


def _ids(body: dict) -> list[str]:
    return [c["id"] for c in body["courses"]]


def test_search_rejects_missing_token(client: TestClient) -> None:
    assert client.get("/v1/courses/search").status_code == 401


def test_search_without_filters_lists_published_only(client: TestClient) -> None:
    _catalogue()
    body = _search(client)
    assert body["status"] == "success"
    assert body["total"] == 4
    assert body["results"] == 4
    assert body["page"] == 1
    assert body["limit"] == 10
    assert "draft" not in _ids(body)


def test_search_keyword_matches_title_or_description_ignoring_case(
    client: TestClient,
) -> None:
    _catalogue()
    body = _search(client, keyword="python")
    assert sorted(_ids(body)) == ["ds-101", SAMPLE_COURSE_ID, "py-adv"]


def test_search_keyword_is_literal(client: TestClient) -> None:
    _catalogue()
    assert _search(client, keyword="%")["total"] == 0


def test_search_by_category(client: TestClient) -> None:
    _catalogue()
    body = _search(client, category="programming")
    assert sorted(_ids(body)) == [SAMPLE_COURSE_ID, "py-adv"]


def test_search_by_level_and_price_ceiling(client: TestClient) -> None:
    _catalogue()
    body = _search(client, level="beginner", maxPrice="500")
    assert sorted(_ids(body)) == ["design", SAMPLE_COURSE_ID]


def test_search_price_floor(client: TestClient) -> None:
    _catalogue()
    body = _search(client, minPrice="800")
    assert sorted(_ids(body)) == ["ds-101", "py-adv"]


def test_search_minimum_rating(client: TestClient) -> None:
    _catalogue()
    body = _search(client, minRating="4.5")
    assert sorted(_ids(body)) == ["ds-101", SAMPLE_COURSE_ID]
    ratings = {c["id"]: c["averageRating"] for c in body["courses"]}
    assert ratings == {"ds-101": 5.0, SAMPLE_COURSE_ID: 4.5}


def test_search_sorts_by_price(client: TestClient) -> None:
    _catalogue()
    ascending = _ids(_search(client, sortBy="priceAsc"))
    assert ascending == ["design", SAMPLE_COURSE_ID, "ds-101", "py-adv"]
    assert _ids(_search(client, sortBy="priceDesc")) == ascending[::-1]


def test_search_sorts_by_rating(client: TestClient) -> None:
    _catalogue()
    body = _search(client, sortBy="ratingDesc")
    assert _ids(body) == ["ds-101", SAMPLE_COURSE_ID, "py-adv", "design"]


def test_search_paginates(client: TestClient) -> None:
    _catalogue()
    body = _search(client, sortBy="priceAsc", page=2, limit=2)
    assert _ids(body) == ["ds-101", "py-adv"]
    assert body["results"] == 2
    assert body["total"] == 4
    assert body["page"] == 2
    assert body["limit"] == 2


def test_search_page_past_the_end_is_empty(client: TestClient) -> None:
    _catalogue()
    body = _search(client, page=5, limit=2)
    assert body["results"] == 0
    assert body["total"] == 4


def test_search_rejects_inverted_price_range(client: TestClient) -> None:
    resp = client.get(
        "/v1/courses/search",
        params={"minPrice": "900", "maxPrice": "100"},
        headers=auth_headers(),
    )
    assert resp.status_code == 422
    assert resp.json() == {
        "status": "fail",
        "message": "minPrice must not exceed maxPrice",
    }


def test_search_rejects_bad_paging_and_sort(client: TestClient) -> None:
    headers = auth_headers()
    for params in ({"limit": 101}, {"page": 0}, {"sortBy": "newest"}):
        resp = client.get("/v1/courses/search", params=params, headers=headers)
        assert resp.status_code == 422, params


# ---- details ----


def test_course_details_include_rating_and_lecture_titles(
    client: TestClient,
) -> None:
    resp = client.get(f"/v1/courses/{SAMPLE_COURSE_ID}", headers=auth_headers())
    assert resp.status_code == 200
    course = resp.json()["course"]
    assert course["title"] == "Introduction to Python"
    assert course["averageRating"] == 4.5
    assert course["ratingsCount"] == 2
    assert course["category"] == "programming"
    assert [lec["position"] for lec in course["lectures"]] == [1, 2, 3, 4]
    assert all("videoUrl" not in lec for lec in course["lectures"])


def test_unrated_course_has_zero_average(client: TestClient) -> None:
    create_test_course("fresh")
    course = client.get("/v1/courses/fresh", headers=auth_headers()).json()["course"]
    assert course["averageRating"] == 0.0
    assert course["ratingsCount"] == 0


def test_draft_details_hidden_from_others(client: TestClient) -> None:
    create_test_course("draft", is_published=False, instructor_id="prof")
    resp = client.get("/v1/courses/draft", headers=auth_headers("stranger"))
    assert resp.status_code == 404


def test_draft_details_visible_to_instructor(client: TestClient) -> None:
    create_test_course("draft", is_published=False, instructor_id="prof")
    resp = client.get("/v1/courses/draft", headers=auth_headers("prof"))
    assert resp.status_code == 200
    assert resp.json()["course"]["isPublished"] is False


def test_course_details_unknown_is_404(client: TestClient) -> None:
    resp = client.get("/v1/courses/nope", headers=auth_headers())
    assert resp.status_code == 404
    assert resp.json() == {"status": "fail", "message": "Course not found"}
