from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain.devices import Device, DeviceType


class CreateDeviceRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    room_id: Optional[UUID] = Field(default=None, alias="roomId")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name cannot be blank")
        return v.strip()


class RenameDeviceRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class CreatedDeviceOut(BaseModel):
    id: UUID


class DeviceOut(BaseModel):
    id: UUID
    name: str
    room_id: Optional[UUID] = None
    type: DeviceType
    is_on: Optional[bool] = None
    current_temperature: Optional[float] = None

    @classmethod
    def from_device(cls, device: Device) -> "DeviceOut":
        return cls(
            id=device.id,
            name=device.name,
            room_id=device.room_id,
            type=device.device_type,
            is_on=getattr(device, "is_on", None),
            current_temperature=device.get_reading(),
        )


class TemperatureOut(BaseModel):
    temperature: Optional[float] = None
    unit: str = "Celsius"
