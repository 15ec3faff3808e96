from __future__ import annotations

from typing import Protocol
from uuid import UUID


class DeviceNotifier(Protocol):
    """Interfaz que usan el servicio de dispositivos y la telemetría.

    Las llamadas no bloquean ni esperan a la entrega: el llamador sigue
    su camino aunque no haya nadie escuchando.
    """

    def notify_device_set_changed(self) -> None:
        ...

    def notify_temperature(self, device_id: UUID, value: float) -> None:
        ...
