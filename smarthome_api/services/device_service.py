"""Servicio de dispositivos.

Opera siempre dentro de la unidad de trabajo que recibe: la del request
HTTP o la que la telemetría abre por mensaje. Tras cada cambio confirmado
avisa al notifier sin esperar la entrega.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional
from uuid import UUID

from ..domain.devices import Device, LightBulb, ReadingOutcome, TemperatureSensor
from ..domain.errors import DeviceNotFoundError, UnsupportedOperationError
from ..persistence.unit_of_work import UnitOfWork
from ..realtime.notifier import DeviceNotifier

logger = logging.getLogger(__name__)


class TemperatureUpdateResult(str, Enum):
    UPDATED = "updated"
    NOT_FOUND = "not_found"
    UNSUPPORTED = "unsupported"


class DeviceService:
    def __init__(self, uow: UnitOfWork, notifier: DeviceNotifier):
        self._uow = uow
        self._notifier = notifier

    def get_all_devices(self, user_id: UUID, search: Optional[str] = None) -> List[Device]:
        return self._uow.devices.list_for_user(user_id, search)

    def list_all_system(self) -> List[Device]:
        return self._uow.devices.list_all()

    def get_device(self, device_id: UUID, user_id: UUID) -> Device:
        device = self._uow.devices.get_for_user(device_id, user_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        return device

    def add_light_bulb(self, name: str, room_id: Optional[UUID], user_id: UUID) -> UUID:
        return self._add(LightBulb(name=name, room_id=room_id, user_id=user_id))

    def add_temperature_sensor(self, name: str, room_id: Optional[UUID], user_id: UUID) -> UUID:
        return self._add(TemperatureSensor(name=name, room_id=room_id, user_id=user_id))

    def turn_on(self, device_id: UUID, user_id: UUID) -> Device:
        return self._set_power(device_id, user_id, True)

    def turn_off(self, device_id: UUID, user_id: UUID) -> Device:
        return self._set_power(device_id, user_id, False)

    def get_temperature(self, device_id: UUID, user_id: UUID) -> Optional[float]:
        device = self.get_device(device_id, user_id)
        if not device.supports_reading:
            raise UnsupportedOperationError(device_id, "temperature readings")
        return device.get_reading()

    def rename_device(self, device_id: UUID, new_name: str, user_id: UUID) -> Device:
        device = self.get_device(device_id, user_id)
        device.rename(new_name)
        self._uow.devices.update(device)
        self._commit_and_notify()
        return device

    def delete_device(self, device_id: UUID, user_id: UUID) -> None:
        device = self.get_device(device_id, user_id)
        self._uow.devices.delete(device)
        self._commit_and_notify()
        logger.info("[DEVICES] Deleted device=%s", device_id)

    def update_temperature(self, device_id: UUID, value: float) -> TemperatureUpdateResult:
        """Guarda la última lectura de un sensor (camino de telemetría).

        No filtra por usuario y no lanza excepciones para los casos
        esperados: dispositivo inexistente o que no es un sensor.
        """
        device = self._uow.devices.get(device_id)
        if device is None:
            return TemperatureUpdateResult.NOT_FOUND

        if device.apply_reading(value) is ReadingOutcome.UNSUPPORTED:
            return TemperatureUpdateResult.UNSUPPORTED

        if not self._uow.devices.update(device):
            # Borrado entre la lectura y la escritura.
            self._uow.rollback()
            return TemperatureUpdateResult.NOT_FOUND

        self._uow.commit()
        return TemperatureUpdateResult.UPDATED

    def _add(self, device: Device) -> UUID:
        self._uow.devices.add(device)
        self._commit_and_notify()
        logger.info(
            "[DEVICES] Created %s device=%s user=%s",
            device.device_type.value,
            device.id,
            device.user_id,
        )
        return device.id

    def _set_power(self, device_id: UUID, user_id: UUID, on: bool) -> Device:
        device = self.get_device(device_id, user_id)
        if not device.set_power(on):
            raise UnsupportedOperationError(device_id, "turn on/off")
        self._uow.devices.update(device)
        self._commit_and_notify()
        return device

    def _commit_and_notify(self) -> None:
        self._uow.commit()
        self._notifier.notify_device_set_changed()
