from .devices import (
    Device,
    DeviceType,
    LightBulb,
    ReadingOutcome,
    TemperatureSensor,
)
from .errors import DeviceNotFoundError, InvalidDeviceNameError, SmartHomeError, UnsupportedOperationError

__all__ = [
    "Device",
    "DeviceType",
    "LightBulb",
    "ReadingOutcome",
    "TemperatureSensor",
    "SmartHomeError",
    "DeviceNotFoundError",
    "InvalidDeviceNameError",
    "UnsupportedOperationError",
]
