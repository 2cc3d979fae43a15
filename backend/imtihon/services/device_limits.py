"""Per-user device counter.

Each user may have at most ``max_devices`` active devices. Increments and
decrements are single conditional UPDATEs so two concurrent logins can never
both take the last slot. The global default lives in ``platform_settings``
and only applies to users without a per-user override.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from imtihon.core.app_exceptions import ConflictError, InvalidRequestError, NotFoundError
from imtihon.core.config import settings
from imtihon.core.logging import get_logger
from imtihon.models.platform_settings import PlatformSettings
from imtihon.models.user import User

logger = get_logger(__name__)

SETTINGS_KEY = "device_limit"


@dataclass(frozen=True)
class GlobalLimitResult:
    """Outcome of a global limit change."""

    limit: int
    updated_users: int
    skipped_customized: int


def _check_limit(limit: int) -> None:
    low, high = settings.DEVICE_MIN_DEVICES_LIMIT, settings.DEVICE_MAX_DEVICES_LIMIT
    if not low <= limit <= high:
        raise InvalidRequestError(
            f"Device limit must be between {low} and {high}",
            {"field": "max_devices", "min": low, "max": high},
        )


def _clamped_active(limit: int):
    return case(
        (User.active_device_count > limit, limit),
        else_=User.active_device_count,
    )


def _get_user(db: Session, user_id: UUID) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("USER_NOT_FOUND", "User not found", {"user_id": str(user_id)})
    return user


def get_global_device_limit(db: Session) -> int:
    """Current global default, falling back to configuration."""
    row = db.get(PlatformSettings, 1)
    if row is not None and row.data and row.data.get(SETTINGS_KEY) is not None:
        return int(row.data[SETTINGS_KEY])
    return settings.DEVICE_DEFAULT_MAX_DEVICES


def _store_global_device_limit(db: Session, limit: int, updated_by: UUID | None) -> None:
    row = db.get(PlatformSettings, 1)
    if row is None:
        row = PlatformSettings(id=1, data={})
        db.add(row)
    # Reassign so the JSON column is marked dirty
    row.data = {**(row.data or {}), SETTINGS_KEY: limit}
    row.updated_by_user_id = updated_by


def get_device_info(db: Session, user_id: UUID) -> User:
    return _get_user(db, user_id)


def register_device(db: Session, user_id: UUID) -> User:
    """Take one device slot or fail with DEVICE_LIMIT_REACHED."""
    stmt = (
        update(User)
        .where(User.id == user_id, User.active_device_count < User.max_devices)
        .values(active_device_count=User.active_device_count + 1)
        .execution_options(synchronize_session=False)
    )
    if db.execute(stmt).rowcount == 0:
        db.rollback()
        user = _get_user(db, user_id)
        raise ConflictError(
            "DEVICE_LIMIT_REACHED",
            "Maximum number of active devices reached",
            {"max_devices": user.max_devices, "active_devices": user.active_device_count},
        )
    db.commit()
    user = _get_user(db, user_id)
    db.refresh(user)
    return user


def unregister_device(db: Session, user_id: UUID) -> User:
    """Release one device slot; never goes below zero."""
    stmt = (
        update(User)
        .where(User.id == user_id, User.active_device_count > 0)
        .values(active_device_count=User.active_device_count - 1)
        .execution_options(synchronize_session=False)
    )
    db.execute(stmt)
    db.commit()
    user = _get_user(db, user_id)
    db.refresh(user)
    return user


def set_max_devices(db: Session, user_id: UUID, max_devices: int) -> User:
    """Per-user override; marks the user as customized."""
    _check_limit(max_devices)
    _get_user(db, user_id)
    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(
            max_devices=max_devices,
            device_limit_customized=True,
            active_device_count=_clamped_active(max_devices),
        )
        .execution_options(synchronize_session=False)
    )
    db.execute(stmt)
    db.commit()
    user = _get_user(db, user_id)
    db.refresh(user)
    logger.info(
        "User device limit set",
        extra={"user_id": str(user_id), "max_devices": max_devices},
    )
    return user


def reset_to_global_limit(db: Session, user_id: UUID) -> User:
    """Drop the per-user override and apply the global default."""
    _get_user(db, user_id)
    limit = get_global_device_limit(db)
    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(
            max_devices=limit,
            device_limit_customized=False,
            active_device_count=_clamped_active(limit),
        )
        .execution_options(synchronize_session=False)
    )
    db.execute(stmt)
    db.commit()
    user = _get_user(db, user_id)
    db.refresh(user)
    return user


def set_global_device_limit(
    db: Session, limit: int, updated_by: UUID | None = None
) -> GlobalLimitResult:
    """Apply a new default to every non-customized user and persist it."""
    _check_limit(limit)
    try:
        skipped = db.execute(
            select(func.count(User.id)).where(User.device_limit_customized.is_(True))
        ).scalar_one()
        stmt = (
            update(User)
            .where(User.device_limit_customized.is_(False))
            .values(max_devices=limit, active_device_count=_clamped_active(limit))
            .execution_options(synchronize_session=False)
        )
        updated = db.execute(stmt).rowcount
        _store_global_device_limit(db, limit, updated_by)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.expire_all()
    logger.info(
        "Global device limit set",
        extra={"limit": limit, "updated_users": updated, "skipped_customized": skipped},
    )
    return GlobalLimitResult(limit=limit, updated_users=updated, skipped_customized=skipped)
