"""API v1 router - includes all v1 endpoints."""

from fastapi import APIRouter

from imtihon.api.v1.endpoints import devices, exams, health

api_router = APIRouter()

api_router.include_router(health.router, prefix="", tags=["Health"])
api_router.include_router(exams.router, prefix="/exams", tags=["Exams"])
api_router.include_router(devices.router, prefix="/devices", tags=["Devices"])
api_router.include_router(devices.admin_router, prefix="/admin", tags=["Admin"])
