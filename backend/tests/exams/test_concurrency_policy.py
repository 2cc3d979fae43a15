"""Tests for the per-user start policy."""

from uuid import uuid4

import pytest

from imtihon.core import clock
from imtihon.core.app_exceptions import ConflictError, NotFoundError
from imtihon.core.config import settings
from imtihon.models.session import ExamStatus
from imtihon.services import result_events
from imtihon.services.concurrency import SINGLE_ACTIVE, guard_new_session
from imtihon.services.exam_engine import start_session, submit_session
from imtihon.services.starters import PackageCriteria
from tests.helpers.seed import create_package


@pytest.fixture
def package(db, published_questions):
    return create_package(db, published_questions[:10], duration_minutes=30)


@pytest.fixture
def single_active(monkeypatch):
    monkeypatch.setattr(settings, "EXAM_CONCURRENCY_POLICY", SINGLE_ACTIVE)


@pytest.mark.asyncio
async def test_multi_session_allows_parallel_sessions(db, test_user, package):
    first = await start_session(db, test_user.id, PackageCriteria(package_id=package.id))
    second = await start_session(db, test_user.id, PackageCriteria(package_id=package.id))

    assert first.id != second.id
    assert first.status == second.status == ExamStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_single_active_rejects_second_start(db, test_user, package, single_active):
    first = await start_session(db, test_user.id, PackageCriteria(package_id=package.id))

    with pytest.raises(ConflictError) as exc_info:
        await start_session(db, test_user.id, PackageCriteria(package_id=package.id))

    assert exc_info.value.code == "ACTIVE_SESSION_EXISTS"
    assert exc_info.value.details["session_id"] == str(first.id)


@pytest.mark.asyncio
async def test_single_active_allows_start_after_submit(db, test_user, package, single_active):
    first = await start_session(db, test_user.id, PackageCriteria(package_id=package.id))
    await submit_session(db, first.id, test_user.id, [])

    second = await start_session(db, test_user.id, PackageCriteria(package_id=package.id))

    assert second.status == ExamStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_single_active_expires_stale_session(
    db, test_user, package, single_active, fake_clock
):
    events: list[result_events.SessionFinalized] = []
    result_events.subscribe(events.append)
    try:
        stale = await start_session(db, test_user.id, PackageCriteria(package_id=package.id))
        fake_clock.advance(minutes=45)

        fresh = await start_session(db, test_user.id, PackageCriteria(package_id=package.id))
    finally:
        result_events.unsubscribe(events.append)

    db.refresh(stale)
    assert stale.status == ExamStatus.EXPIRED
    assert stale.finished_at == fake_clock.now
    assert fresh.status == ExamStatus.IN_PROGRESS
    assert [(e.session_id, e.trigger) for e in events] == [(stale.id, "expiry")]


@pytest.mark.asyncio
async def test_other_users_do_not_block(db, test_user, other_user, package, single_active):
    await start_session(db, test_user.id, PackageCriteria(package_id=package.id))

    session = await start_session(db, other_user.id, PackageCriteria(package_id=package.id))

    assert session.user_id == other_user.id


def test_guard_unknown_user(db):
    with pytest.raises(NotFoundError) as exc_info:
        guard_new_session(db, uuid4(), clock.utcnow(), policy=SINGLE_ACTIVE)

    assert exc_info.value.code == "USER_NOT_FOUND"
