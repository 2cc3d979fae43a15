"""Liveness and readiness checks."""

import asyncio
from typing import Literal

from fastapi import APIRouter, Request
from pydantic import BaseModel
from sqlalchemy import text

from imtihon.core.dependencies import DbSession
from imtihon.core.errors import get_request_id

router = APIRouter(tags=["Health"])

CheckStatus = Literal["ok", "down"]


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"


class ReadinessCheck(BaseModel):
    status: CheckStatus
    message: str | None = None


class ReadinessResponse(BaseModel):
    status: CheckStatus
    checks: dict[str, ReadinessCheck]
    request_id: str


def _database_check(db) -> ReadinessCheck:
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        return ReadinessCheck(status="down", message=str(e))
    return ReadinessCheck(status="ok")


def _sweeper_check(task: asyncio.Task | None) -> ReadinessCheck:
    if task is None:
        return ReadinessCheck(status="ok", message="disabled")
    if task.done():
        return ReadinessCheck(status="down", message="expiry sweeper is not running")
    return ReadinessCheck(status="ok")


@router.get("/health", response_model=HealthResponse, summary="Liveness check")
async def health_check() -> HealthResponse:
    return HealthResponse()


@router.get("/ready", response_model=ReadinessResponse, summary="Readiness check")
async def readiness_check(request: Request, db: DbSession) -> ReadinessResponse:
    """Database reachable and, when enabled, the expiry sweeper task alive."""
    checks = {
        "db": _database_check(db),
        "expiry_sweeper": _sweeper_check(getattr(request.app.state, "expiry_sweeper", None)),
    }
    overall: CheckStatus = "ok" if all(c.status == "ok" for c in checks.values()) else "down"
    return ReadinessResponse(status=overall, checks=checks, request_id=get_request_id(request))
