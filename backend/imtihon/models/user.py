"""User model."""

import uuid
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, Uuid, false
from sqlalchemy.sql import func

from imtihon.db.base import Base


class UserRole(str, Enum):
    """User role enum."""

    STUDENT = "STUDENT"
    ADMIN = "ADMIN"


class User(Base):
    """User as seen by the exam engine.

    Identity and credentials live in the identity service; this row carries
    the user's role and the device counter.
    """

    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    full_name = Column(String(255), nullable=True)
    email = Column(String, unique=True, nullable=True, index=True)
    role = Column(String, nullable=False, default=UserRole.STUDENT.value)
    is_active = Column(Boolean, default=True, nullable=False)

    # Device counter
    max_devices = Column(Integer, nullable=False, default=4, server_default="4")
    active_device_count = Column(Integer, nullable=False, default=0, server_default="0")
    device_limit_customized = Column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime,
        default=func.now(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "active_device_count >= 0 AND active_device_count <= max_devices",
            name="ck_users_active_device_count",
        ),
    )
