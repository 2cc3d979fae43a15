"""Platform settings model."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Uuid, func

from imtihon.db.base import Base


class PlatformSettings(Base):
    """Platform-wide settings stored as JSON (singleton row, id=1)."""

    __tablename__ = "platform_settings"

    id = Column(Integer, primary_key=True, default=1, server_default="1")
    data = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    updated_by_user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
