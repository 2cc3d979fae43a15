"""HTTP tests for exam session endpoints."""

from uuid import uuid4

import pytest
from httpx import AsyncClient

from tests.helpers.seed import create_package, create_ticket


@pytest.fixture
def package(db, published_questions):
    return create_package(db, published_questions[:10], duration_minutes=30)


async def _start_package(client: AsyncClient, headers, package_id, **extra) -> dict:
    response = await client.post(
        "/v1/exams/packages/start", headers=headers, json={"package_id": package_id, **extra}
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_start_requires_authentication(async_client: AsyncClient, package):
    response = await async_client.post("/v1/exams/packages/start", json={"package_id": package.id})

    assert response.status_code == 401
    assert response.json()["error_code"] == "HTTP_ERROR"


@pytest.mark.asyncio
async def test_package_session_round_trip(
    async_client: AsyncClient, auth_headers_student, package
):
    started = await _start_package(async_client, auth_headers_student, package.id)

    assert started["status"] == "IN_PROGRESS"
    assert started["source"] == "PACKAGE"
    assert started["total_questions"] == 10
    assert started["remaining_seconds"] > 0
    assert all(q["correct_option_index"] is None for q in started["questions"])
    session_id = started["session_id"]
    first, second = started["questions"][0], started["questions"][1]

    response = await async_client.post(
        f"/v1/exams/{session_id}/autosave",
        headers=auth_headers_student,
        json={"answers": [{"question_id": first["question_id"], "selected_option_index": 0}]},
    )
    assert response.status_code == 204

    state = (
        await async_client.get(f"/v1/exams/{session_id}", headers=auth_headers_student)
    ).json()
    assert state["answered_count"] == 1
    assert state["questions"][0]["selected_option_index"] == 0

    response = await async_client.post(
        f"/v1/exams/{session_id}/submit",
        headers=auth_headers_student,
        json={"answers": [{"question_id": second["question_id"], "selected_option_index": 1}]},
    )
    assert response.status_code == 200
    result = response.json()
    assert result["status"] == "COMPLETED"
    assert result["answered_count"] == 2
    # Seeded keys cycle 0..3, so both answers are correct
    assert result["correct_count"] == 2
    assert result["percentage"] == 20.0
    assert result["is_passed"] is False
    assert result["unanswered_count"] == 8

    response = await async_client.get(
        f"/v1/exams/{session_id}/result", headers=auth_headers_student
    )
    assert response.status_code == 200
    assert response.json()["correct_count"] == 2


@pytest.mark.asyncio
async def test_second_submit_returns_conflict_envelope(
    async_client: AsyncClient, auth_headers_student, package
):
    session_id = (await _start_package(async_client, auth_headers_student, package.id))[
        "session_id"
    ]
    await async_client.post(
        f"/v1/exams/{session_id}/submit", headers=auth_headers_student, json={"answers": []}
    )

    response = await async_client.post(
        f"/v1/exams/{session_id}/submit",
        headers={**auth_headers_student, "X-Request-ID": "req-123"},
        json={"answers": []},
    )

    assert response.status_code == 409
    body = response.json()
    assert body["error_code"] == "SESSION_ALREADY_FINALIZED"
    assert body["details"]["status"] == "COMPLETED"
    assert body["request_id"] == "req-123"


@pytest.mark.asyncio
async def test_visible_mode_and_language_header(
    async_client: AsyncClient, auth_headers_student, package
):
    headers = {**auth_headers_student, "Accept-Language": "ru-RU,ru;q=0.9"}

    started = await _start_package(async_client, headers, package.id, visible=True)

    assert started["language"] == "RU"
    assert started["visible"] is True
    assert all(q["correct_option_index"] is not None for q in started["questions"])


@pytest.mark.asyncio
async def test_foreign_and_unknown_sessions(
    async_client: AsyncClient, auth_headers_student, auth_headers_other, package
):
    session_id = (await _start_package(async_client, auth_headers_student, package.id))[
        "session_id"
    ]

    response = await async_client.get(f"/v1/exams/{session_id}", headers=auth_headers_other)
    assert response.status_code == 403
    assert response.json()["error_code"] == "SESSION_FORBIDDEN"

    response = await async_client.get(f"/v1/exams/{uuid4()}", headers=auth_headers_student)
    assert response.status_code == 404
    assert response.json()["error_code"] == "SESSION_NOT_FOUND"


@pytest.mark.asyncio
async def test_autosave_foreign_question(async_client: AsyncClient, auth_headers_student, package):
    session_id = (await _start_package(async_client, auth_headers_student, package.id))[
        "session_id"
    ]

    response = await async_client.post(
        f"/v1/exams/{session_id}/autosave",
        headers=auth_headers_student,
        json={"answers": [{"question_id": 999999, "selected_option_index": 0}]},
    )

    assert response.status_code == 404
    assert response.json()["error_code"] == "QUESTION_NOT_IN_SESSION"


@pytest.mark.asyncio
async def test_marathon_errors(async_client: AsyncClient, auth_headers_student, published_questions):
    response = await async_client.post(
        "/v1/exams/marathon/start", headers=auth_headers_student, json={"question_count": 0}
    )
    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"

    response = await async_client.post(
        "/v1/exams/marathon/start", headers=auth_headers_student, json={"question_count": 200}
    )
    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"

    response = await async_client.post(
        "/v1/exams/marathon/start", headers=auth_headers_student, json={"question_count": 40}
    )
    assert response.status_code == 422
    body = response.json()
    assert body["error_code"] == "INSUFFICIENT_QUESTIONS"
    assert body["details"] == {"available": 30, "required": 40}


@pytest.mark.asyncio
async def test_ticket_start(async_client: AsyncClient, auth_headers_student, db, published_questions):
    ticket = create_ticket(db, published_questions[:10], ticket_number=12)

    response = await async_client.post(
        "/v1/exams/tickets/start", headers=auth_headers_student, json={"ticket_id": ticket.id}
    )

    assert response.status_code == 201
    body = response.json()
    assert body["source"] == "TICKET"
    assert body["ticket_number"] == 12
    assert body["duration_minutes"] == 15


@pytest.mark.asyncio
async def test_abandon_active_and_history(
    async_client: AsyncClient, auth_headers_student, package
):
    response = await async_client.get("/v1/exams/active", headers=auth_headers_student)
    assert response.status_code == 200
    assert response.json() is None

    session_id = (await _start_package(async_client, auth_headers_student, package.id))[
        "session_id"
    ]
    active = (await async_client.get("/v1/exams/active", headers=auth_headers_student)).json()
    assert active["session_id"] == session_id

    response = await async_client.post(
        f"/v1/exams/{session_id}/abandon", headers=auth_headers_student
    )
    assert response.status_code == 204

    response = await async_client.get(
        f"/v1/exams/{session_id}/result", headers=auth_headers_student
    )
    assert response.status_code == 409
    assert response.json()["error_code"] == "SESSION_ABANDONED"

    history = (
        await async_client.get(
            "/v1/exams/history", headers=auth_headers_student, params={"status": "ABANDONED"}
        )
    ).json()
    assert history["total"] == 1
    assert history["items"][0]["id"] == session_id
    assert history["items"][0]["status"] == "ABANDONED"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "answer",
    [
        {"selected_option_index": 40_000},
        {"selected_option_index": 0, "time_spent_seconds": 3_000_000_000},
        {"selected_option_index": -1},
    ],
)
async def test_autosave_rejects_out_of_range_values(
    async_client: AsyncClient, auth_headers_student, package, answer
):
    started = await _start_package(async_client, auth_headers_student, package.id)
    question_id = started["questions"][0]["question_id"]

    response = await async_client.post(
        f"/v1/exams/{started['session_id']}/autosave",
        headers=auth_headers_student,
        json={"answers": [{"question_id": question_id, **answer}]},
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_check_answer_endpoint(async_client: AsyncClient, auth_headers_student, package):
    started = await _start_package(async_client, auth_headers_student, package.id, visible=True)
    question = started["questions"][0]

    response = await async_client.post(
        f"/v1/exams/{started['session_id']}/check-answer",
        headers=auth_headers_student,
        json={
            "question_id": question["question_id"],
            "selected_option_index": question["correct_option_index"],
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["is_correct"] is True
    assert body["correct_option_index"] == question["correct_option_index"]
    assert body["explanation"] == "Izoh"


@pytest.mark.asyncio
async def test_check_answer_endpoint_refuses_secure_session(
    async_client: AsyncClient, auth_headers_student, package
):
    started = await _start_package(async_client, auth_headers_student, package.id)

    response = await async_client.post(
        f"/v1/exams/{started['session_id']}/check-answer",
        headers=auth_headers_student,
        json={"question_id": started["questions"][0]["question_id"], "selected_option_index": 0},
    )

    assert response.status_code == 403
    assert response.json()["error_code"] == "ANSWER_CHECK_NOT_ALLOWED"


@pytest.mark.asyncio
async def test_statistics_endpoint(async_client: AsyncClient, auth_headers_student, package):
    started = await _start_package(async_client, auth_headers_student, package.id)
    session_id = started["session_id"]
    first = started["questions"][0]

    response = await async_client.get(
        f"/v1/exams/{session_id}/statistics", headers=auth_headers_student
    )
    assert response.status_code == 409
    assert response.json()["error_code"] == "SESSION_NOT_FINISHED"

    await async_client.post(
        f"/v1/exams/{session_id}/submit",
        headers=auth_headers_student,
        json={
            "answers": [
                {
                    "question_id": first["question_id"],
                    "selected_option_index": 0,
                    "time_spent_seconds": 12,
                }
            ]
        },
    )

    response = await async_client.get(
        f"/v1/exams/{session_id}/statistics", headers=auth_headers_student
    )
    assert response.status_code == 200
    stats = response.json()
    assert stats["is_marathon"] is False
    assert stats["fastest_answer_seconds"] == 12
    assert stats["slowest_answer_seconds"] == 12
    assert stats["unanswered_percentage"] == 90.0


@pytest.mark.asyncio
async def test_history_shows_progress_of_abandoned_session(
    async_client: AsyncClient, auth_headers_student, package
):
    started = await _start_package(async_client, auth_headers_student, package.id)
    session_id = started["session_id"]
    answers = [
        {"question_id": q["question_id"], "selected_option_index": 0}
        for q in started["questions"][:3]
    ]
    await async_client.post(
        f"/v1/exams/{session_id}/autosave", headers=auth_headers_student, json={"answers": answers}
    )
    await async_client.post(f"/v1/exams/{session_id}/abandon", headers=auth_headers_student)

    response = await async_client.get(
        "/v1/exams/history", params={"status": "ABANDONED"}, headers=auth_headers_student
    )

    item = response.json()["items"][0]
    assert item["id"] == session_id
    assert item["answered_count"] == 3
