"""Ingesta de telemetría MQTT.

- topics.py / payloads.py: validación de topic y payload
- handler.py: un mensaje → lectura persistida + aviso en vivo
- listener.py: conexión al broker con reconexión supervisada
- runtime.py: singleton usado por el lifespan de la app
"""

from .config import TelemetryConfig
from .handler import HandleOutcome, TelemetryMessageHandler
from .listener import ConnectionState, TelemetryListener
from .runtime import get_telemetry_listener, start_telemetry_listener, stop_telemetry_listener

__all__ = [
    "TelemetryConfig",
    "HandleOutcome",
    "TelemetryMessageHandler",
    "ConnectionState",
    "TelemetryListener",
    "get_telemetry_listener",
    "start_telemetry_listener",
    "stop_telemetry_listener",
]
