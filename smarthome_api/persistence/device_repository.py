"""Repositorio SQL de dispositivos.

Trabaja siempre sobre la ``Session`` de la unidad de trabajo que lo creó;
no hace commit por su cuenta.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.orm import Session

from ..domain.devices import Device, DeviceType, LightBulb, TemperatureSensor

logger = logging.getLogger(__name__)

_SELECT_COLUMNS = "id, name, room_id, user_id, device_type, is_on, current_temperature"


def _uuid_or_none(value: Any) -> Optional[UUID]:
    if value is None:
        return None
    return UUID(str(value))


def _str_or_none(value: Optional[UUID]) -> Optional[str]:
    return str(value) if value is not None else None


def row_to_device(row: Mapping[str, Any]) -> Device:
    device_type = DeviceType(row["device_type"])
    common = {
        "id": UUID(str(row["id"])),
        "name": str(row["name"]),
        "room_id": _uuid_or_none(row["room_id"]),
        "user_id": _uuid_or_none(row["user_id"]),
    }

    if device_type is DeviceType.LIGHT_BULB:
        return LightBulb(is_on=bool(row["is_on"]), **common)

    temperature = row["current_temperature"]
    return TemperatureSensor(
        current_temperature=float(temperature) if temperature is not None else None,
        **common,
    )


def device_to_params(device: Device) -> dict:
    params = {
        "id": str(device.id),
        "name": device.name,
        "room_id": _str_or_none(device.room_id),
        "user_id": _str_or_none(device.user_id),
        "device_type": device.device_type.value,
        "is_on": None,
        "current_temperature": None,
    }
    if isinstance(device, LightBulb):
        params["is_on"] = bool(device.is_on)
    elif isinstance(device, TemperatureSensor):
        params["current_temperature"] = device.current_temperature
    return params


class SqlDeviceRepository:
    def __init__(self, session: Session):
        self._session = session

    def get(self, device_id: UUID) -> Optional[Device]:
        """Busca por id sin filtrar por usuario. ``None`` si no existe."""
        row = (
            self._session.execute(
                text(f"SELECT {_SELECT_COLUMNS} FROM devices WHERE id = :id"),
                {"id": str(device_id)},
            )
            .mappings()
            .first()
        )
        return row_to_device(row) if row is not None else None

    def get_for_user(self, device_id: UUID, user_id: UUID) -> Optional[Device]:
        row = (
            self._session.execute(
                text(
                    f"SELECT {_SELECT_COLUMNS} FROM devices "
                    "WHERE id = :id AND user_id = :user_id"
                ),
                {"id": str(device_id), "user_id": str(user_id)},
            )
            .mappings()
            .first()
        )
        return row_to_device(row) if row is not None else None

    def list_for_user(self, user_id: UUID, search: Optional[str] = None) -> List[Device]:
        sql = f"SELECT {_SELECT_COLUMNS} FROM devices WHERE user_id = :user_id"
        params: dict = {"user_id": str(user_id)}

        if search and search.strip():
            sql += " AND LOWER(name) LIKE :search"
            params["search"] = f"%{search.strip().lower()}%"

        sql += " ORDER BY name"
        rows = self._session.execute(text(sql), params).mappings().all()
        return [row_to_device(r) for r in rows]

    def list_all(self) -> List[Device]:
        rows = (
            self._session.execute(text(f"SELECT {_SELECT_COLUMNS} FROM devices ORDER BY name"))
            .mappings()
            .all()
        )
        return [row_to_device(r) for r in rows]

    def add(self, device: Device) -> None:
        self._session.execute(
            text(
                "INSERT INTO devices (id, name, room_id, user_id, device_type, is_on, current_temperature) "
                "VALUES (:id, :name, :room_id, :user_id, :device_type, :is_on, :current_temperature)"
            ),
            device_to_params(device),
        )

    def update(self, device: Device) -> bool:
        """Actualiza una fila. True si se tocó exactamente un registro."""
        result = self._session.execute(
            text(
                "UPDATE devices SET name = :name, room_id = :room_id, user_id = :user_id, "
                "is_on = :is_on, current_temperature = :current_temperature "
                "WHERE id = :id AND device_type = :device_type"
            ),
            device_to_params(device),
        )
        if result.rowcount != 1:
            logger.warning("[DB] Update touched %s rows for device=%s", result.rowcount, device.id)
            return False
        return True

    def delete(self, device: Device) -> bool:
        result = self._session.execute(
            text("DELETE FROM devices WHERE id = :id"),
            {"id": str(device.id)},
        )
        return result.rowcount == 1
