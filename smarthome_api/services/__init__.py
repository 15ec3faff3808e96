from .device_service import DeviceService, TemperatureUpdateResult

__all__ = ["DeviceService", "TemperatureUpdateResult"]
