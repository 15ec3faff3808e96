"""Singleton del listener de telemetría para el ciclo de vida de la app."""

from __future__ import annotations

import logging
from typing import Optional

from ..persistence.unit_of_work import UnitOfWorkFactory
from ..realtime.notifier import DeviceNotifier
from .config import TelemetryConfig
from .handler import TelemetryMessageHandler
from .listener import TelemetryListener

logger = logging.getLogger(__name__)

# Singleton
_listener: Optional[TelemetryListener] = None


def get_telemetry_listener() -> Optional[TelemetryListener]:
    """Obtiene el listener singleton (None si no arrancó)."""
    return _listener


async def start_telemetry_listener(
    uow_factory: UnitOfWorkFactory,
    notifier: DeviceNotifier,
    config: Optional[TelemetryConfig] = None,
) -> Optional[TelemetryListener]:
    """Inicia el listener si el feature flag lo permite."""
    global _listener

    if _listener is not None:
        return _listener

    config = config or TelemetryConfig.from_env()
    if not config.enabled:
        logger.info("[MQTT] Listener disabled (FF_MQTT_LISTENER_ENABLED=false)")
        return None

    handler = TelemetryMessageHandler(
        uow_factory,
        notifier,
        namespace=config.namespace,
        measurement=config.measurement,
    )
    _listener = TelemetryListener(config, handler)
    await _listener.start()
    return _listener


async def stop_telemetry_listener() -> None:
    """Detiene el listener."""
    global _listener

    if _listener is not None:
        await _listener.stop()
        _listener = None
