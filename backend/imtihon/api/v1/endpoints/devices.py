"""Device counter endpoints (self-service and admin)."""

from uuid import UUID

from fastapi import APIRouter

from imtihon.core.dependencies import AdminUser, CurrentUser, DbSession
from imtihon.schemas.device import DeviceInfoOut, DeviceLimitUpdate, GlobalDeviceLimitOut
from imtihon.services import device_limits

router = APIRouter()
admin_router = APIRouter()


@router.get("/me", response_model=DeviceInfoOut)
def get_my_devices(
    db: DbSession,
    current_user: CurrentUser,
):
    return DeviceInfoOut.model_validate(device_limits.get_device_info(db, current_user.id))


@router.post("/register", response_model=DeviceInfoOut)
def register_my_device(
    db: DbSession,
    current_user: CurrentUser,
):
    """Take a device slot. 409 DEVICE_LIMIT_REACHED when full."""
    return DeviceInfoOut.model_validate(device_limits.register_device(db, current_user.id))


@router.post("/unregister", response_model=DeviceInfoOut)
def unregister_my_device(
    db: DbSession,
    current_user: CurrentUser,
):
    return DeviceInfoOut.model_validate(device_limits.unregister_device(db, current_user.id))


# ============================================================================
# Admin
# ============================================================================


@admin_router.put("/users/{user_id}/device-limit", response_model=DeviceInfoOut)
def set_user_device_limit(
    user_id: UUID,
    payload: DeviceLimitUpdate,
    db: DbSession,
    _admin: AdminUser,
):
    """Per-user override."""
    return DeviceInfoOut.model_validate(
        device_limits.set_max_devices(db, user_id, payload.max_devices)
    )


@admin_router.post("/users/{user_id}/device-limit/reset", response_model=DeviceInfoOut)
def reset_user_device_limit(
    user_id: UUID,
    db: DbSession,
    _admin: AdminUser,
):
    """Drop the override and apply the global default."""
    return DeviceInfoOut.model_validate(device_limits.reset_to_global_limit(db, user_id))


@admin_router.put("/device-limit", response_model=GlobalDeviceLimitOut)
def set_global_device_limit(
    payload: DeviceLimitUpdate,
    db: DbSession,
    admin: AdminUser,
):
    """New default for every user without an override."""
    result = device_limits.set_global_device_limit(db, payload.max_devices, updated_by=admin.id)
    return GlobalDeviceLimitOut(
        limit=result.limit,
        updated_users=result.updated_users,
        skipped_customized=result.skipped_customized,
    )
