"""Configuración del listener MQTT de telemetría."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .topics import build_topic_filter


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("true", "1", "yes", "on")


@dataclass(frozen=True)
class TelemetryConfig:
    enabled: bool = True
    broker_host: str = "test.mosquitto.org"
    broker_port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    namespace: str = "smarthome"
    measurement: str = "temp"
    client_id_prefix: str = "BackendListener"
    # Intervalo fijo entre reintentos; no hay límite de intentos.
    reconnect_delay_seconds: float = 5.0
    connect_timeout_seconds: float = 10.0
    keepalive: int = 60
    qos: int = 0

    @property
    def topic_filter(self) -> str:
        return build_topic_filter(self.namespace, self.measurement)

    @classmethod
    def from_env(cls) -> "TelemetryConfig":
        return cls(
            enabled=_env_flag("FF_MQTT_LISTENER_ENABLED", "true"),
            broker_host=os.getenv("MQTT_BROKER_HOST", "test.mosquitto.org"),
            broker_port=int(os.getenv("MQTT_BROKER_PORT", "1883")),
            username=os.getenv("MQTT_USERNAME") or None,
            password=os.getenv("MQTT_PASSWORD") or None,
            namespace=os.getenv("MQTT_TOPIC_NAMESPACE", "smarthome"),
            measurement=os.getenv("MQTT_TOPIC_MEASUREMENT", "temp"),
            client_id_prefix=os.getenv("MQTT_CLIENT_ID_PREFIX", "BackendListener"),
            reconnect_delay_seconds=float(os.getenv("MQTT_RECONNECT_DELAY_SEC", "5")),
            connect_timeout_seconds=float(os.getenv("MQTT_CONNECT_TIMEOUT_SEC", "10")),
            keepalive=int(os.getenv("MQTT_KEEPALIVE_SEC", "60")),
            qos=int(os.getenv("MQTT_QOS", "0")),
        )
