"""Pydantic schemas for the device counter."""

from uuid import UUID

from pydantic import BaseModel, Field, computed_field


class DeviceInfoOut(BaseModel):
    """Device counter of one user."""

    user_id: UUID = Field(..., validation_alias="id")
    max_devices: int
    active_device_count: int
    device_limit_customized: bool

    @computed_field
    @property
    def available_slots(self) -> int:
        return max(0, self.max_devices - self.active_device_count)

    class Config:
        from_attributes = True
        populate_by_name = True


class DeviceLimitUpdate(BaseModel):
    """New device limit."""

    max_devices: int = Field(..., description="Allowed active devices")


class GlobalDeviceLimitOut(BaseModel):
    """Result of a global limit change."""

    limit: int
    updated_users: int
    skipped_customized: int
