"""Modelo de dispositivos.

Un único tipo base ``Device`` con variantes ``LightBulb`` y
``TemperatureSensor``. Las operaciones específicas de cada variante se
exponen como capacidades (``supports_reading``, ``supports_power``) y
devuelven un resultado explícito cuando no aplican, para que los llamadores
no tengan que preguntar por el tipo concreto.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional
from uuid import UUID, uuid4

from .errors import InvalidDeviceNameError


class DeviceType(str, Enum):
    LIGHT_BULB = "LightBulb"
    TEMPERATURE_SENSOR = "TemperatureSensor"


class ReadingOutcome(str, Enum):
    APPLIED = "applied"
    UNSUPPORTED = "unsupported"


@dataclass
class Device:
    name: str
    room_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    id: UUID = field(default_factory=uuid4)

    device_type: ClassVar[DeviceType]

    @property
    def supports_reading(self) -> bool:
        return False

    @property
    def supports_power(self) -> bool:
        return False

    def rename(self, new_name: str) -> None:
        if not new_name or not new_name.strip():
            raise InvalidDeviceNameError(new_name)
        self.name = new_name.strip()

    def apply_reading(self, value: float) -> ReadingOutcome:
        """Registra una lectura; solo los sensores la aceptan."""
        return ReadingOutcome.UNSUPPORTED

    def set_power(self, on: bool) -> bool:
        return False

    def get_reading(self) -> Optional[float]:
        return None


@dataclass
class LightBulb(Device):
    is_on: bool = False

    device_type: ClassVar[DeviceType] = DeviceType.LIGHT_BULB

    @property
    def supports_power(self) -> bool:
        return True

    def turn_on(self) -> None:
        self.is_on = True

    def turn_off(self) -> None:
        self.is_on = False

    def set_power(self, on: bool) -> bool:
        if on:
            self.turn_on()
        else:
            self.turn_off()
        return True


@dataclass
class TemperatureSensor(Device):
    # Grados tal como llegan del sensor, sin conversión de unidades.
    current_temperature: Optional[float] = None

    device_type: ClassVar[DeviceType] = DeviceType.TEMPERATURE_SENSOR

    @property
    def supports_reading(self) -> bool:
        return True

    def apply_reading(self, value: float) -> ReadingOutcome:
        self.current_temperature = float(value)
        return ReadingOutcome.APPLIED

    def get_reading(self) -> Optional[float]:
        return self.current_temperature
