"""Persistencia de dispositivos.

- schema.py: tabla ``devices`` y creación idempotente
- device_repository.py: consultas SQL sobre una sesión
- unit_of_work.py: unidad de trabajo de vida corta (una por request / mensaje)
"""

from .device_repository import SqlDeviceRepository
from .schema import devices_table, ensure_schema, metadata
from .unit_of_work import UnitOfWork, UnitOfWorkFactory, make_unit_of_work_factory

__all__ = [
    "SqlDeviceRepository",
    "devices_table",
    "ensure_schema",
    "metadata",
    "UnitOfWork",
    "UnitOfWorkFactory",
    "make_unit_of_work_factory",
]
