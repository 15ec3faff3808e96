"""Errores de dominio."""

from __future__ import annotations

from uuid import UUID


class SmartHomeError(Exception):
    """Base de los errores de la aplicación."""


class DeviceNotFoundError(SmartHomeError):
    def __init__(self, device_id: UUID):
        super().__init__(f"Device {device_id} not found")
        self.device_id = device_id


class UnsupportedOperationError(SmartHomeError):
    def __init__(self, device_id: UUID, operation: str):
        super().__init__(f"Device {device_id} does not support {operation}")
        self.device_id = device_id
        self.operation = operation


class InvalidDeviceNameError(SmartHomeError):
    def __init__(self, name: str):
        super().__init__("Device name cannot be empty")
        self.name = name
