"""Listener MQTT de telemetría con supervisor de conexión.

Mantiene una única conexión lógica al broker durante toda la vida del
proceso:

  DISCONNECTED → CONNECTING → SUBSCRIBED → (fallo / desconexión) → DISCONNECTED
  cancelación en cualquier punto → SHUTTING_DOWN

- Los reintentos no tienen límite y usan un intervalo fijo
  (``reconnect_delay_seconds``); el broker caído nunca es un error fatal.
- paho ejecuta su red en un hilo propio; sus callbacks solo señalizan al
  event loop (``call_soon_threadsafe``) y nunca procesan mensajes ahí.
- Cada mensaje se agenda en el event loop como una corrutina
  independiente, así que pueden procesarse varios a la vez.
- Todas las esperas (conexión, backoff, espera de desconexión) son
  cancelables.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Callable, Optional
from uuid import uuid4

import paho.mqtt.client as mqtt

from ..metrics import TELEMETRY_CONNECTED, TELEMETRY_RECONNECTS
from .config import TelemetryConfig
from .handler import TelemetryMessageHandler

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], Any]

SUBACK_FAILURE = 0x80


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    SHUTTING_DOWN = "shutting_down"


def create_paho_client(client_id: str) -> mqtt.Client:
    return mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        protocol=mqtt.MQTTv311,
        clean_session=True,
    )


def _reason_value(reason_code: Any) -> int:
    # paho entrega ReasonCode; los tests pueden usar enteros.
    return int(getattr(reason_code, "value", reason_code))


class TelemetryListener:
    """Suscriptor de telemetría con reconexión automática.

    Uso:
        listener = TelemetryListener(TelemetryConfig.from_env(), handler)
        await listener.start()
        ...
        await listener.stop()
    """

    def __init__(
        self,
        config: TelemetryConfig,
        handler: TelemetryMessageHandler,
        client_factory: Optional[ClientFactory] = None,
    ):
        self._config = config
        self._handler = handler
        self._client_factory = client_factory or create_paho_client
        # Único por ejecución para no chocar con sesiones previas en el broker.
        self.client_id = f"{config.client_id_prefix}-{uuid4().hex}"

        self._state = ConnectionState.DISCONNECTED
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._client: Optional[Any] = None
        self._task: Optional[asyncio.Task] = None

        # Señales del intento de conexión en curso (se recrean por intento).
        self._connack: Optional[asyncio.Future] = None
        self._suback: Optional[asyncio.Future] = None
        self._disconnected: Optional[asyncio.Event] = None

        # Stats
        self._connect_attempts = 0
        self._reconnect_count = 0
        self._messages_received = 0
        self._messages_dropped = 0
        self._subscribed_at: float = 0
        self._last_error: Optional[str] = None

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Lanza ``run()`` como tarea de fondo."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self.run(), name="telemetry-listener")

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def run(self) -> None:
        """Bucle del supervisor. Solo termina por cancelación."""
        self._loop = asyncio.get_running_loop()
        delay = self._config.reconnect_delay_seconds

        logger.info(
            "[MQTT] Listener starting broker=%s:%d topic=%s client_id=%s",
            self._config.broker_host,
            self._config.broker_port,
            self._config.topic_filter,
            self.client_id,
        )

        try:
            while True:
                self._set_state(ConnectionState.CONNECTING)
                self._connect_attempts += 1

                try:
                    await self._connect_and_subscribe()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self._last_error = f"{type(e).__name__}: {e}"
                    logger.warning(
                        "[MQTT] Connection to %s:%d failed (%s). Retrying in %.1fs",
                        self._config.broker_host,
                        self._config.broker_port,
                        self._last_error,
                        delay,
                    )
                    await self._teardown()
                    self._set_state(ConnectionState.DISCONNECTED)
                    self._count_reconnect()
                    await asyncio.sleep(delay)
                    continue

                self._set_state(ConnectionState.SUBSCRIBED)
                self._subscribed_at = time.time()
                TELEMETRY_CONNECTED.set(1)
                logger.info(
                    "[MQTT] Listener connected on %s, subscribed to %s",
                    self._config.broker_host,
                    self._config.topic_filter,
                )

                await self._disconnected.wait()

                await self._teardown()
                self._set_state(ConnectionState.DISCONNECTED)
                self._count_reconnect()
                logger.warning("[MQTT] Disconnected. Reconnecting in %.1fs...", delay)
                await asyncio.sleep(delay)

        except asyncio.CancelledError:
            self._set_state(ConnectionState.SHUTTING_DOWN)
            await self._teardown()
            logger.info(
                "[MQTT] Listener stopped. attempts=%d reconnects=%d received=%d %s",
                self._connect_attempts,
                self._reconnect_count,
                self._messages_received,
                self._handler.stats,
            )

    # ------------------------------------------------------------------
    # Conexión
    # ------------------------------------------------------------------

    async def _connect_and_subscribe(self) -> None:
        loop = self._loop
        timeout = self._config.connect_timeout_seconds

        self._connack = loop.create_future()
        self._suback = loop.create_future()
        self._disconnected = asyncio.Event()

        client = self._client_factory(self.client_id)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_subscribe = self._on_subscribe
        client.on_message = self._on_message

        if self._config.username:
            client.username_pw_set(self._config.username, self._config.password)

        # El supervisor decide cuándo reconectar; el hilo de paho no debe adelantarse.
        paho_delay = max(1, int(self._config.reconnect_delay_seconds))
        client.reconnect_delay_set(min_delay=paho_delay, max_delay=paho_delay)

        self._client = client

        logger.info("[MQTT] Connecting to %s:%d", self._config.broker_host, self._config.broker_port)
        await asyncio.wait_for(asyncio.to_thread(self._connect_client, client), timeout=timeout)
        client.loop_start()

        await asyncio.wait_for(self._connack, timeout=timeout)

        result, _mid = client.subscribe(self._config.topic_filter, qos=self._config.qos)
        if result != mqtt.MQTT_ERR_SUCCESS:
            raise ConnectionError(f"Subscribe request failed rc={result}")

        reason_codes = await asyncio.wait_for(self._suback, timeout=timeout)
        if any(_reason_value(rc) >= SUBACK_FAILURE for rc in reason_codes):
            raise ConnectionError(f"Subscription to {self._config.topic_filter} rejected")

    async def _teardown(self) -> None:
        client = self._client
        # Antes de desconectar: el on_disconnect propio se ignora.
        self._client = None
        TELEMETRY_CONNECTED.set(0)
        if client is None:
            return

        try:
            await asyncio.to_thread(self._close_client, client)
        except Exception as e:
            logger.warning("[MQTT] Error stopping client: %s", e)

    def _connect_client(self, client: Any) -> None:
        """Conexión bloqueante, en un hilo de trabajo.

        Si el intento se abandonó mientras tanto (timeout o cancelación) el
        cliente ya no es el actual y el socket recién abierto se cierra aquí.
        """
        client.connect(self._config.broker_host, self._config.broker_port, self._config.keepalive)
        if client is not self._client:
            logger.debug("[MQTT] Late connect on abandoned client, closing it")
            self._close_client(client)

    @staticmethod
    def _close_client(client: Any) -> None:
        try:
            client.disconnect()
        finally:
            try:
                client.loop_stop()
            finally:
                # Sin hilo de red paho no cierra el socket por su cuenta.
                sock = client.socket()
                if sock is not None:
                    sock.close()

    def _count_reconnect(self) -> None:
        self._reconnect_count += 1
        TELEMETRY_RECONNECTS.inc()

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            logger.debug("[MQTT] State %s -> %s", self._state.value, state.value)
        self._state = state

    # ------------------------------------------------------------------
    # Callbacks de paho (hilo de red de paho)
    # ------------------------------------------------------------------

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if client is not self._client:
            return
        if _reason_value(reason_code) == 0:
            self._call_soon(self._resolve, self._connack, reason_code)
        else:
            self._call_soon(
                self._fail,
                self._connack,
                ConnectionError(f"Broker refused connection: {reason_code}"),
            )

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties=None):
        if client is not self._client:
            return
        self._call_soon(self._resolve, self._suback, list(reason_code_list))

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        if client is not self._client:
            return
        self._call_soon(self._handle_disconnect, reason_code)

    def _on_message(self, client, userdata, message):
        if client is not self._client:
            return
        self._messages_received += 1

        loop = self._loop
        coro = self._handler.handle(message.topic, bytes(message.payload))
        try:
            if loop is None:
                raise RuntimeError("listener not running")
            asyncio.run_coroutine_threadsafe(coro, loop)
        except RuntimeError as e:
            coro.close()
            self._messages_dropped += 1
            logger.debug("[MQTT] Message dropped topic=%s: %s", message.topic, e)

    # ------------------------------------------------------------------
    # Señales en el event loop
    # ------------------------------------------------------------------

    def _call_soon(self, callback: Callable[..., None], *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            logger.debug("[MQTT] Event loop closed, callback skipped")

    def _handle_disconnect(self, reason_code: Any) -> None:
        error = ConnectionError(f"Disconnected from broker: {reason_code}")
        self._fail(self._connack, error)
        self._fail(self._suback, error)
        if self._disconnected is not None:
            self._disconnected.set()

    @staticmethod
    def _resolve(future: Optional[asyncio.Future], value: Any) -> None:
        if future is not None and not future.done():
            future.set_result(value)

    @staticmethod
    def _fail(future: Optional[asyncio.Future], error: BaseException) -> None:
        if future is not None and not future.done():
            future.set_exception(error)

    # ------------------------------------------------------------------
    # Estado
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.SUBSCRIBED

    @property
    def stats(self) -> dict:
        return {
            "state": self._state.value,
            "running": self.is_running,
            "connected": self.is_connected,
            "broker": f"{self._config.broker_host}:{self._config.broker_port}",
            "topic": self._config.topic_filter,
            "client_id": self.client_id,
            "connect_attempts": self._connect_attempts,
            "reconnect_count": self._reconnect_count,
            "messages_received": self._messages_received,
            "messages_dropped": self._messages_dropped,
            "subscribed_at": self._subscribed_at,
            "last_error": self._last_error,
            "handler": self._handler.stats.to_dict(),
        }

    def health_check(self) -> dict:
        last_message_at = self._handler.stats.last_message_at
        return {
            # Broker caído es un modo degradado aceptado, no un fallo del servicio.
            "healthy": self.is_running,
            "running": self.is_running,
            "connected": self.is_connected,
            "state": self._state.value,
            "reconnect_count": self._reconnect_count,
            "last_message_age_seconds": time.time() - last_message_at if last_message_at > 0 else None,
        }
