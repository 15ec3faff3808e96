"""Handler de mensajes de telemetría.

Flujo por mensaje:
  topic → id de dispositivo (UUID)
  payload → temperatura
  → unidad de trabajo nueva → DeviceService.update_temperature → commit
  → hub.notify_temperature (sin esperar la entrega)

Cada mensaje se procesa de forma aislada: no hay estado compartido entre
mensajes salvo las estadísticas, y ninguna excepción sale de ``handle``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from ..metrics import TELEMETRY_MESSAGES
from ..persistence.unit_of_work import UnitOfWorkFactory
from ..realtime.notifier import DeviceNotifier
from ..services.device_service import DeviceService, TemperatureUpdateResult
from .payloads import decode_temperature
from .topics import parse_device_topic

logger = logging.getLogger(__name__)


class HandleOutcome(str, Enum):
    APPLIED = "applied"
    NOT_APPLICABLE = "not_applicable"
    DISCARDED = "discarded"
    FAILED = "failed"


@dataclass
class HandlerStats:
    received: int = 0
    applied: int = 0
    not_applicable: int = 0
    discarded: int = 0
    failed: int = 0
    last_message_at: float = 0

    def record(self, outcome: HandleOutcome) -> None:
        if outcome is HandleOutcome.APPLIED:
            self.applied += 1
        elif outcome is HandleOutcome.NOT_APPLICABLE:
            self.not_applicable += 1
        elif outcome is HandleOutcome.DISCARDED:
            self.discarded += 1
        else:
            self.failed += 1

    def __str__(self) -> str:
        return (
            f"Stats: received={self.received} applied={self.applied} "
            f"not_applicable={self.not_applicable} discarded={self.discarded} failed={self.failed}"
        )

    def to_dict(self) -> dict:
        return {
            "received": self.received,
            "applied": self.applied,
            "not_applicable": self.not_applicable,
            "discarded": self.discarded,
            "failed": self.failed,
            "last_message_at": self.last_message_at,
        }


class TelemetryMessageHandler:
    """Convierte un mensaje MQTT en una actualización persistida y un aviso.

    Args:
        uow_factory: crea una unidad de trabajo nueva por mensaje.
        notifier: destino de ``notify_temperature`` (normalmente el hub).
        namespace / measurement: forma esperada del topic.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        notifier: DeviceNotifier,
        namespace: str = "smarthome",
        measurement: str = "temp",
    ):
        self._uow_factory = uow_factory
        self._notifier = notifier
        self._namespace = namespace
        self._measurement = measurement
        self._stats = HandlerStats()

    async def handle(self, topic: str, payload: bytes) -> HandleOutcome:
        self._stats.received += 1
        self._stats.last_message_at = time.time()

        try:
            outcome = await self._process(topic, payload)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("[TELEMETRY] Error processing message topic=%s: %s", topic, e)
            outcome = HandleOutcome.FAILED

        self._stats.record(outcome)
        TELEMETRY_MESSAGES.labels(outcome=outcome.value).inc()

        if self._stats.received % 100 == 0:
            logger.info("[TELEMETRY] %s", self._stats)

        return outcome

    async def _process(self, topic: str, payload: bytes) -> HandleOutcome:
        # Tráfico ajeno o malformado en un broker compartido es normal: se descarta sin ruido.
        device_id = parse_device_topic(topic, self._namespace, self._measurement)
        if device_id is None:
            logger.debug("[TELEMETRY] Discarded topic=%s (no device id)", topic)
            return HandleOutcome.DISCARDED

        value = decode_temperature(payload)
        if value is None:
            logger.debug("[TELEMETRY] Discarded payload for device=%s", device_id)
            return HandleOutcome.DISCARDED

        # Sesión de BD bloqueante: fuera del event loop.
        result = await asyncio.to_thread(self._persist_reading, device_id, value)

        self._notifier.notify_temperature(device_id, value)

        if result is TemperatureUpdateResult.UPDATED:
            logger.debug("[TELEMETRY] Processed %s: %s", device_id, value)
            return HandleOutcome.APPLIED

        logger.debug("[TELEMETRY] Reading not applicable device=%s result=%s", device_id, result.value)
        return HandleOutcome.NOT_APPLICABLE

    def _persist_reading(self, device_id: UUID, value: float) -> TemperatureUpdateResult:
        with self._uow_factory() as uow:
            return DeviceService(uow, self._notifier).update_temperature(device_id, value)

    @property
    def stats(self) -> HandlerStats:
        return self._stats
