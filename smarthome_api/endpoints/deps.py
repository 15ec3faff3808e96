"""Dependencias compartidas por los endpoints de dispositivos."""

from __future__ import annotations

from typing import Iterator, Optional
from uuid import UUID

from fastapi import Cookie, Depends, HTTPException

from common.db import get_session_factory
from ..persistence.unit_of_work import UnitOfWork
from ..realtime.hub import get_broadcast_hub
from ..realtime.notifier import DeviceNotifier
from ..services.device_service import DeviceService


def require_user_id(user_id: Optional[str] = Cookie(default=None, alias="userId")) -> UUID:
    """Usuario actual tomado de la cookie ``userId``."""
    if not user_id:
        raise HTTPException(status_code=401, detail="User not authenticated")
    try:
        return UUID(user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user id")


def get_unit_of_work() -> Iterator[UnitOfWork]:
    with UnitOfWork(get_session_factory()) as uow:
        yield uow


def get_notifier() -> DeviceNotifier:
    return get_broadcast_hub()


def get_device_service(
    uow: UnitOfWork = Depends(get_unit_of_work),
    notifier: DeviceNotifier = Depends(get_notifier),
) -> DeviceService:
    return DeviceService(uow, notifier)
