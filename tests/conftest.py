"""Fixtures compartidas: BD SQLite temporal, notifier de prueba y cliente MQTT falso."""

from __future__ import annotations

import threading
import time
from types import SimpleNamespace
from typing import Any, List, Optional, Tuple

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from smarthome_api.domain.devices import Device
from smarthome_api.persistence.schema import ensure_schema
from smarthome_api.persistence.unit_of_work import make_unit_of_work_factory


# =============================================================================
# BD
# =============================================================================

@pytest.fixture
def engine(tmp_path):
    # Archivo (no :memory:) para que cada sesión tenga su propia conexión.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'smarthome.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
        future=True,
    )
    ensure_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, future=True)


@pytest.fixture
def uow_factory(session_factory):
    return make_unit_of_work_factory(session_factory)


def seed(uow_factory, *devices: Device) -> None:
    with uow_factory() as uow:
        for device in devices:
            uow.devices.add(device)
        uow.commit()


def load(uow_factory, device_id) -> Optional[Device]:
    with uow_factory() as uow:
        return uow.devices.get(device_id)


# =============================================================================
# NOTIFIER
# =============================================================================

class RecordingNotifier:
    """Registra las notificaciones en lugar de difundirlas."""

    def __init__(self):
        self.refreshes = 0
        self.temperatures: List[Tuple[Any, float]] = []

    def notify_device_set_changed(self) -> None:
        self.refreshes += 1

    def notify_temperature(self, device_id, value: float) -> None:
        self.temperatures.append((device_id, value))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


# =============================================================================
# MQTT
# =============================================================================

class FakeSocket:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class FakeMqttClient:
    """Sustituto de ``paho.mqtt.client.Client`` controlado por el test.

    ``connect`` falla mientras ``broker.fail_connects`` sea > 0. Los
    callbacks (CONNACK, SUBACK) se disparan desde un hilo aparte, igual
    que el hilo de red de paho.
    """

    def __init__(self, client_id: str, broker: "FakeBroker"):
        self.client_id = client_id
        self.broker = broker
        self.on_connect = None
        self.on_disconnect = None
        self.on_subscribe = None
        self.on_message = None
        self.credentials = None
        self.subscriptions: List[Tuple[str, int]] = []
        self.loop_started = False
        self.loop_stopped = False
        self.disconnected = False
        self.sock = None

    def username_pw_set(self, username, password=None):
        self.credentials = (username, password)

    def reconnect_delay_set(self, min_delay=1, max_delay=120):
        pass

    def connect(self, host, port=1883, keepalive=60):
        self.broker.connect_calls += 1
        if self.broker.connect_delay:
            time.sleep(self.broker.connect_delay)
        if self.broker.fail_connects > 0:
            self.broker.fail_connects -= 1
            raise ConnectionRefusedError("broker unavailable")
        self.sock = FakeSocket()
        self.broker.connected.append(self)
        return 0

    def socket(self):
        return self.sock

    def loop_start(self):
        self.loop_started = True
        self._fire(self.on_connect, self, None, SimpleNamespace(session_present=False), self.broker.connack_rc, None)

    def loop_stop(self):
        self.loop_stopped = True
        return 0

    def disconnect(self):
        self.disconnected = True
        return 0

    def subscribe(self, topic, qos=0):
        self.subscriptions.append((topic, qos))
        self._fire(self.on_subscribe, self, None, 1, [self.broker.suback_rc], None)
        return (0, 1)

    # Helpers de test

    def deliver(self, topic: str, payload: bytes) -> None:
        message = SimpleNamespace(topic=topic, payload=payload)
        self._fire(self.on_message, self, None, message)

    def drop_connection(self) -> None:
        self._fire(self.on_disconnect, self, None, SimpleNamespace(), 7, None)

    @staticmethod
    def _fire(callback, *args) -> None:
        if callback is None:
            return
        t = threading.Thread(target=callback, args=args)
        t.start()
        t.join()


class FakeBroker:
    def __init__(self):
        self.fail_connects = 0
        self.connect_delay = 0.0
        self.connack_rc = 0
        self.suback_rc = 0
        self.connect_calls = 0
        self.clients: List[FakeMqttClient] = []
        self.connected: List[FakeMqttClient] = []

    def client_factory(self, client_id: str) -> FakeMqttClient:
        client = FakeMqttClient(client_id, self)
        self.clients.append(client)
        return client

    @property
    def current(self) -> FakeMqttClient:
        return self.connected[-1]


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker()
