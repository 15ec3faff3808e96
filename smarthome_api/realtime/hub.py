"""Hub de difusión de eventos a clientes en vivo.

Flujo:
  REST / telemetría → publish() (no bloquea, cualquier hilo)
  → cola asyncio acotada
  → tarea dispatcher → envío concurrente a todos los suscriptores

GARANTÍAS:
- publish() nunca espera a la entrega; si la cola está llena o el hub
  está parado el evento se descarta y se contabiliza.
- Un suscriptor lento o caído no afecta al llamador: cada envío tiene
  timeout y los suscriptores que fallan se eliminan del conjunto.
- Cero suscriptores no es un error.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Tuple
from uuid import UUID, uuid4

from ..metrics import HUB_EVENTS, HUB_SUBSCRIBERS

logger = logging.getLogger(__name__)

REFRESH_DEVICES = "RefreshDevices"
RECEIVE_TEMPERATURE = "ReceiveTemperature"


class Subscriber(Protocol):
    async def send_json(self, data: Any) -> None:
        ...

    async def close(self) -> None:
        ...


@dataclass(frozen=True)
class BroadcastEvent:
    name: str
    args: Tuple[Any, ...] = ()

    def to_message(self) -> dict:
        return {"type": "event", "event": self.name, "args": list(self.args)}


@dataclass
class HubStats:
    queued: int = 0
    dropped: int = 0
    delivered: int = 0
    failed_sends: int = 0
    events_by_name: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "queued": self.queued,
            "dropped": self.dropped,
            "delivered": self.delivered,
            "failed_sends": self.failed_sends,
            "events_by_name": dict(self.events_by_name),
        }


class BroadcastHub:
    """Canal fan-out de eventos con nombre hacia los suscriptores conectados.

    Implementa ``DeviceNotifier``.

    Uso:
        hub = BroadcastHub()
        await hub.start()
        hub.notify_temperature(device_id, 21.5)
        ...
        await hub.stop()
    """

    def __init__(self, max_queue_size: int = 1000, send_timeout_seconds: float = 5.0):
        self._max_queue_size = max_queue_size
        self._send_timeout = send_timeout_seconds

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None

        self._subscribers: Dict[str, Subscriber] = {}
        self._lock = threading.Lock()
        self._stats = HubStats()

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self.is_running:
            return

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._task = asyncio.create_task(self._dispatch_loop(), name="broadcast-hub")
        logger.info("[HUB] Started (max_queue=%d)", self._max_queue_size)

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._loop = None
        self._queue = None
        logger.info("[HUB] Stopped. %s", self._stats.to_dict())

    async def drain(self) -> None:
        """Espera a que se hayan repartido los eventos ya encolados."""
        if self._queue is not None:
            await self._queue.join()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Suscriptores
    # ------------------------------------------------------------------

    def add_subscriber(self, subscriber: Subscriber) -> str:
        subscriber_id = uuid4().hex
        with self._lock:
            self._subscribers[subscriber_id] = subscriber
            count = len(self._subscribers)
        HUB_SUBSCRIBERS.set(count)
        logger.debug("[HUB] Subscriber added id=%s total=%d", subscriber_id, count)
        return subscriber_id

    def remove_subscriber(self, subscriber_id: str) -> bool:
        with self._lock:
            removed = self._subscribers.pop(subscriber_id, None) is not None
            count = len(self._subscribers)
        HUB_SUBSCRIBERS.set(count)
        if removed:
            logger.debug("[HUB] Subscriber removed id=%s total=%d", subscriber_id, count)
        return removed

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    # ------------------------------------------------------------------
    # DeviceNotifier
    # ------------------------------------------------------------------

    def notify_device_set_changed(self) -> None:
        self.publish(BroadcastEvent(REFRESH_DEVICES))

    def notify_temperature(self, device_id: UUID, value: float) -> None:
        self.publish(BroadcastEvent(RECEIVE_TEMPERATURE, (str(device_id), float(value))))

    # ------------------------------------------------------------------
    # Publicación
    # ------------------------------------------------------------------

    def publish(self, event: BroadcastEvent) -> None:
        """Encola un evento sin bloquear. Seguro desde cualquier hilo."""
        loop = self._loop
        if loop is None or self._queue is None:
            self._drop(event, "hub not running")
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            self._enqueue(event)
            return

        try:
            loop.call_soon_threadsafe(self._enqueue, event)
        except RuntimeError:
            self._drop(event, "event loop closed")

    def _enqueue(self, event: BroadcastEvent) -> None:
        queue = self._queue
        if queue is None:
            self._drop(event, "hub not running")
            return

        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            self._drop(event, "queue full")
            return

        self._stats.queued += 1
        self._stats.events_by_name[event.name] = self._stats.events_by_name.get(event.name, 0) + 1
        HUB_EVENTS.labels(event=event.name, status="queued").inc()

    def _drop(self, event: BroadcastEvent, reason: str) -> None:
        self._stats.dropped += 1
        HUB_EVENTS.labels(event=event.name, status="dropped").inc()
        logger.debug("[HUB] Event dropped event=%s reason=%s", event.name, reason)

    # ------------------------------------------------------------------
    # Reparto
    # ------------------------------------------------------------------

    async def _dispatch_loop(self) -> None:
        queue = self._queue
        while True:
            event = await queue.get()
            try:
                await self._fan_out(event)
            except Exception as e:
                logger.exception("[HUB] Fan-out error event=%s: %s", event.name, e)
            finally:
                queue.task_done()

    async def _fan_out(self, event: BroadcastEvent) -> None:
        with self._lock:
            targets = list(self._subscribers.items())
        if not targets:
            return

        message = event.to_message()
        results = await asyncio.gather(
            *(self._send(subscriber, message) for _, subscriber in targets),
            return_exceptions=True,
        )

        delivered = 0
        failed = []
        for (subscriber_id, subscriber), result in zip(targets, results):
            if isinstance(result, BaseException):
                self._stats.failed_sends += 1
                logger.warning(
                    "[HUB] Send failed, dropping subscriber id=%s err=%s",
                    subscriber_id,
                    type(result).__name__,
                )
                self.remove_subscriber(subscriber_id)
                failed.append((subscriber_id, subscriber))
            else:
                delivered += 1

        # Un suscriptor eliminado no queda conectado sin recibir eventos.
        if failed:
            await asyncio.gather(*(self._close(sid, sub) for sid, sub in failed))

        self._stats.delivered += delivered
        if delivered:
            HUB_EVENTS.labels(event=event.name, status="delivered").inc(delivered)

    async def _send(self, subscriber: Subscriber, message: dict) -> None:
        await asyncio.wait_for(subscriber.send_json(message), timeout=self._send_timeout)

    async def _close(self, subscriber_id: str, subscriber: Subscriber) -> None:
        try:
            await asyncio.wait_for(subscriber.close(), timeout=self._send_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("[HUB] Close failed id=%s err=%s", subscriber_id, type(e).__name__)

    @property
    def stats(self) -> dict:
        return {
            "running": self.is_running,
            "subscribers": self.subscriber_count,
            "queue_size": self._queue.qsize() if self._queue is not None else 0,
            **self._stats.to_dict(),
        }


# Singleton
_hub: Optional[BroadcastHub] = None


def get_broadcast_hub() -> BroadcastHub:
    """Obtiene el hub singleton del proceso."""
    global _hub
    if _hub is None:
        _hub = BroadcastHub(
            max_queue_size=int(os.getenv("HUB_MAX_QUEUE_SIZE", "1000")),
            send_timeout_seconds=float(os.getenv("HUB_SEND_TIMEOUT_SEC", "5")),
        )
    return _hub


def reset_broadcast_hub() -> None:
    """Resetea el hub singleton."""
    global _hub
    _hub = None
