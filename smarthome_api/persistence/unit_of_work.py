"""Unidad de trabajo sobre una sesión SQLAlchemy.

Cada request HTTP y cada mensaje de telemetría abre la suya y la descarta
al terminar; nunca se comparte entre hilos ni entre mensajes.

Uso:
    with uow_factory() as uow:
        device = uow.devices.get(device_id)
        ...
        uow.commit()
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session, sessionmaker

from .device_repository import SqlDeviceRepository

logger = logging.getLogger(__name__)


class UnitOfWork:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory
        self._session: Optional[Session] = None
        self.devices: Optional[SqlDeviceRepository] = None

    def __enter__(self) -> "UnitOfWork":
        self._session = self._session_factory()
        self.devices = SqlDeviceRepository(self._session)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is not None:
                self.rollback()
        finally:
            if self._session is not None:
                self._session.close()
            self._session = None
            self.devices = None

    def commit(self) -> None:
        if self._session is None:
            raise RuntimeError("UnitOfWork used outside of its 'with' block")
        self._session.commit()

    def rollback(self) -> None:
        if self._session is None:
            return
        try:
            self._session.rollback()
        except Exception as e:
            logger.warning("[DB] Rollback failed: %s", e)


UnitOfWorkFactory = Callable[[], UnitOfWork]


def make_unit_of_work_factory(session_factory: sessionmaker) -> UnitOfWorkFactory:
    def factory() -> UnitOfWork:
        return UnitOfWork(session_factory)

    return factory
