"""Tests del supervisor de conexión MQTT con un cliente paho falso."""

import asyncio
import time
from uuid import uuid4

import pytest
import pytest_asyncio

from smarthome_api.domain.devices import TemperatureSensor
from smarthome_api.telemetry.config import TelemetryConfig
from smarthome_api.telemetry.handler import TelemetryMessageHandler
from smarthome_api.telemetry.listener import ConnectionState, TelemetryListener
from smarthome_api.telemetry.runtime import get_telemetry_listener, start_telemetry_listener, stop_telemetry_listener
from smarthome_api.telemetry.topics import build_device_topic
from tests.conftest import load, seed


def _config(**overrides) -> TelemetryConfig:
    values = dict(
        broker_host="broker.test",
        reconnect_delay_seconds=0.01,
        connect_timeout_seconds=1.0,
    )
    values.update(overrides)
    return TelemetryConfig(**values)


async def _eventually(predicate, timeout: float = 3.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def handler(uow_factory, notifier):
    return TelemetryMessageHandler(uow_factory, notifier)


@pytest_asyncio.fixture
async def make_listener(broker, handler):
    created = []

    def factory(**overrides):
        listener = TelemetryListener(_config(**overrides), handler, client_factory=broker.client_factory)
        created.append(listener)
        return listener

    yield factory

    for listener in created:
        await listener.stop()


def _subscribed(listener):
    return lambda: listener.state is ConnectionState.SUBSCRIBED


class TestConnect:
    @pytest.mark.asyncio
    async def test_connects_and_subscribes(self, make_listener, broker):
        listener = make_listener()
        await listener.start()
        await _eventually(_subscribed(listener))

        client = broker.current
        assert client.subscriptions == [("smarthome/devices/+/temp", 0)]
        assert client.loop_started
        assert listener.is_connected
        assert listener.client_id.startswith("BackendListener-")

    @pytest.mark.asyncio
    async def test_credentials_are_applied(self, make_listener, broker):
        listener = make_listener(username="svc", password="secret")
        await listener.start()
        await _eventually(_subscribed(listener))

        assert broker.current.credentials == ("svc", "secret")

    @pytest.mark.asyncio
    async def test_initial_state_is_disconnected(self, make_listener):
        assert make_listener().state is ConnectionState.DISCONNECTED


class TestReconnection:
    @pytest.mark.asyncio
    async def test_retries_until_broker_is_available(self, make_listener, broker):
        broker.fail_connects = 3
        listener = make_listener()
        await listener.start()
        await _eventually(_subscribed(listener))

        assert broker.connect_calls == 4
        assert listener.stats["reconnect_count"] == 3
        assert "ConnectionRefusedError" in listener.stats["last_error"]

    @pytest.mark.asyncio
    async def test_client_id_is_stable_across_attempts(self, make_listener, broker):
        broker.fail_connects = 2
        listener = make_listener()
        await listener.start()
        await _eventually(_subscribed(listener))

        assert len(broker.clients) == 3
        assert {c.client_id for c in broker.clients} == {listener.client_id}

    @pytest.mark.asyncio
    async def test_resubscribes_after_disconnect(self, make_listener, broker):
        listener = make_listener()
        await listener.start()
        await _eventually(_subscribed(listener))
        first = broker.current

        first.drop_connection()
        await _eventually(lambda: len(broker.connected) == 2 and listener.is_connected)

        second = broker.current
        assert second is not first
        assert second.subscriptions == [("smarthome/devices/+/temp", 0)]
        assert first.loop_stopped
        assert listener.stats["reconnect_count"] == 1

    @pytest.mark.asyncio
    async def test_readings_after_reconnect_are_processed(self, make_listener, broker, uow_factory, notifier):
        sensor = TemperatureSensor(name="Salon", user_id=uuid4())
        seed(uow_factory, sensor)

        listener = make_listener()
        await listener.start()
        await _eventually(_subscribed(listener))

        broker.current.drop_connection()
        await _eventually(lambda: len(broker.connected) == 2 and listener.is_connected)

        broker.current.deliver(build_device_topic(sensor.id), b'{"temperature": 22.0}')
        await _eventually(lambda: notifier.temperatures == [(sensor.id, 22.0)])

        assert load(uow_factory, sensor.id).current_temperature == 22.0
        assert notifier.temperatures == [(sensor.id, 22.0)]

    @pytest.mark.asyncio
    async def test_rejected_connack_is_retried(self, make_listener, broker):
        broker.connack_rc = 5
        listener = make_listener()
        await listener.start()
        await _eventually(lambda: broker.connect_calls >= 2)
        assert not listener.is_connected

        broker.connack_rc = 0
        await _eventually(_subscribed(listener))

    @pytest.mark.asyncio
    async def test_rejected_subscription_is_retried(self, make_listener, broker):
        broker.suback_rc = 0x80
        listener = make_listener()
        await listener.start()
        await _eventually(lambda: broker.connect_calls >= 2)
        assert not listener.is_connected

        broker.suback_rc = 0
        await _eventually(_subscribed(listener))

    @pytest.mark.asyncio
    async def test_connect_timeout_is_retried(self, make_listener, broker):
        broker.connect_delay = 0.3
        listener = make_listener(connect_timeout_seconds=0.05)
        await listener.start()
        await _eventually(lambda: listener.stats["reconnect_count"] >= 1)

        assert "TimeoutError" in listener.stats["last_error"]

    @pytest.mark.asyncio
    async def test_late_connect_after_timeout_is_closed(self, make_listener, broker):
        broker.connect_delay = 0.3
        listener = make_listener(connect_timeout_seconds=0.05, reconnect_delay_seconds=30)
        await listener.start()
        await _eventually(lambda: listener.stats["reconnect_count"] >= 1)

        abandoned = broker.clients[0]
        await _eventually(lambda: abandoned.sock is not None and abandoned.sock.closed)
        assert not listener.is_connected


class TestMessages:
    @pytest.mark.asyncio
    async def test_message_is_processed(self, make_listener, broker, uow_factory, notifier):
        sensor = TemperatureSensor(name="Salon", user_id=uuid4())
        seed(uow_factory, sensor)

        listener = make_listener()
        await listener.start()
        await _eventually(_subscribed(listener))

        broker.current.deliver(build_device_topic(sensor.id), b'{"temperature": 21.5}')
        await _eventually(lambda: notifier.temperatures == [(sensor.id, 21.5)])

        assert load(uow_factory, sensor.id).current_temperature == 21.5
        assert listener.stats["messages_received"] == 1

    @pytest.mark.asyncio
    async def test_bad_message_does_not_affect_connection(self, make_listener, broker, handler):
        listener = make_listener()
        await listener.start()
        await _eventually(_subscribed(listener))

        broker.current.deliver("smarthome/devices/not-a-guid/temp", b"garbage")
        await _eventually(lambda: handler.stats.discarded == 1)

        assert listener.is_connected
        assert len(broker.connected) == 1

    @pytest.mark.asyncio
    async def test_messages_from_stale_client_are_ignored(self, make_listener, broker, handler):
        listener = make_listener()
        await listener.start()
        await _eventually(_subscribed(listener))
        first = broker.current

        first.drop_connection()
        await _eventually(lambda: len(broker.connected) == 2 and listener.is_connected)

        first.deliver("smarthome/devices/not-a-guid/temp", b"{}")
        await asyncio.sleep(0.05)
        assert listener.stats["messages_received"] == 0


class TestShutdown:
    @pytest.mark.asyncio
    async def test_stop_while_subscribed(self, make_listener, broker):
        listener = make_listener()
        await listener.start()
        await _eventually(_subscribed(listener))
        client = broker.current

        await listener.stop()

        assert listener.state is ConnectionState.SHUTTING_DOWN
        assert client.disconnected
        assert client.loop_stopped
        assert client.sock.closed
        assert not listener.is_running

    @pytest.mark.asyncio
    async def test_stop_during_backoff_is_prompt(self, make_listener, broker):
        broker.fail_connects = 10_000
        listener = make_listener(reconnect_delay_seconds=30)
        await listener.start()
        await _eventually(lambda: broker.connect_calls >= 1 and listener.state is ConnectionState.DISCONNECTED)

        started = time.monotonic()
        await listener.stop()

        assert time.monotonic() - started < 2
        assert listener.state is ConnectionState.SHUTTING_DOWN

    @pytest.mark.asyncio
    async def test_run_returns_normally_on_cancel(self, broker, handler):
        listener = TelemetryListener(_config(), handler, client_factory=broker.client_factory)
        task = asyncio.create_task(listener.run())
        await _eventually(_subscribed(listener))

        task.cancel()
        await asyncio.wait_for(task, timeout=2)

        assert not task.cancelled()
        assert listener.state is ConnectionState.SHUTTING_DOWN

    @pytest.mark.asyncio
    async def test_stop_without_start(self, make_listener):
        await make_listener().stop()


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_reports_connection(self, make_listener):
        listener = make_listener()
        assert listener.health_check()["running"] is False

        await listener.start()
        await _eventually(_subscribed(listener))

        health = listener.health_check()
        assert health["healthy"] is True
        assert health["connected"] is True
        assert health["state"] == "subscribed"
        assert health["last_message_age_seconds"] is None


class TestRuntime:
    @pytest.mark.asyncio
    async def test_disabled_flag_skips_listener(self, uow_factory, notifier):
        listener = await start_telemetry_listener(uow_factory, notifier, TelemetryConfig(enabled=False))

        assert listener is None
        assert get_telemetry_listener() is None
        await stop_telemetry_listener()
