"""Endpoints REST de dispositivos (``/api/devices``)."""

from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from ..schemas import CreateDeviceRequest, CreatedDeviceOut, DeviceOut, RenameDeviceRequest, TemperatureOut
from ..services.device_service import DeviceService
from .deps import get_device_service, require_user_id

router = APIRouter(prefix="/api/devices", tags=["devices"])
logger = logging.getLogger(__name__)


@router.get("", response_model=List[DeviceOut])
def list_devices(
    search: Optional[str] = Query(default=None),
    user_id: UUID = Depends(require_user_id),
    service: DeviceService = Depends(get_device_service),
):
    return [DeviceOut.from_device(d) for d in service.get_all_devices(user_id, search)]


# Sin filtro de usuario: lo usa el simulador para saber a qué sensores publicar.
# Declarado antes de /{device_id}.
@router.get("/all-system", response_model=List[DeviceOut])
def list_all_system_devices(service: DeviceService = Depends(get_device_service)):
    return [DeviceOut.from_device(d) for d in service.list_all_system()]


@router.post("/lightbulb", response_model=CreatedDeviceOut, status_code=201)
def create_light_bulb(
    payload: CreateDeviceRequest,
    user_id: UUID = Depends(require_user_id),
    service: DeviceService = Depends(get_device_service),
):
    return CreatedDeviceOut(id=service.add_light_bulb(payload.name, payload.room_id, user_id))


@router.post("/temperaturesensor", response_model=CreatedDeviceOut, status_code=201)
def create_temperature_sensor(
    payload: CreateDeviceRequest,
    user_id: UUID = Depends(require_user_id),
    service: DeviceService = Depends(get_device_service),
):
    return CreatedDeviceOut(id=service.add_temperature_sensor(payload.name, payload.room_id, user_id))


@router.get("/{device_id}", response_model=DeviceOut)
def get_device(
    device_id: UUID,
    user_id: UUID = Depends(require_user_id),
    service: DeviceService = Depends(get_device_service),
):
    return DeviceOut.from_device(service.get_device(device_id, user_id))


@router.put("/{device_id}/turn-on", response_model=DeviceOut)
def turn_on(
    device_id: UUID,
    user_id: UUID = Depends(require_user_id),
    service: DeviceService = Depends(get_device_service),
):
    return DeviceOut.from_device(service.turn_on(device_id, user_id))


@router.put("/{device_id}/turn-off", response_model=DeviceOut)
def turn_off(
    device_id: UUID,
    user_id: UUID = Depends(require_user_id),
    service: DeviceService = Depends(get_device_service),
):
    return DeviceOut.from_device(service.turn_off(device_id, user_id))


@router.get("/{device_id}/temperature", response_model=TemperatureOut)
def get_temperature(
    device_id: UUID,
    user_id: UUID = Depends(require_user_id),
    service: DeviceService = Depends(get_device_service),
):
    return TemperatureOut(temperature=service.get_temperature(device_id, user_id))


@router.put("/{device_id}", response_model=DeviceOut)
def rename_device(
    device_id: UUID,
    payload: RenameDeviceRequest,
    user_id: UUID = Depends(require_user_id),
    service: DeviceService = Depends(get_device_service),
):
    return DeviceOut.from_device(service.rename_device(device_id, payload.name, user_id))


@router.delete("/{device_id}", status_code=204)
def delete_device(
    device_id: UUID,
    user_id: UUID = Depends(require_user_id),
    service: DeviceService = Depends(get_device_service),
):
    service.delete_device(device_id, user_id)
    return Response(status_code=204)
