"""CLI del simulador de sensores de temperatura.

Cada iteración:
  GET <api>/api/devices/all-system → sensores TemperatureSensor
  → publica {"temperature": 20..25} en smarthome/devices/<id>/temp
"""

from __future__ import annotations

import argparse
import logging
import random
import time
from typing import Iterable, List
from uuid import UUID, uuid4

import httpx
import orjson
import paho.mqtt.client as mqtt

from common.log import setup_logging
from smarthome_api.domain.devices import DeviceType
from smarthome_api.telemetry.topics import build_device_topic

logger = logging.getLogger(__name__)


def fetch_sensor_ids(http: httpx.Client, api_url: str) -> List[UUID]:
    response = http.get(f"{api_url.rstrip('/')}/api/devices/all-system")
    response.raise_for_status()
    return [
        UUID(str(d["id"]))
        for d in response.json()
        if d.get("type") == DeviceType.TEMPERATURE_SENSOR.value
    ]


def build_reading(rng: random.Random) -> bytes:
    return orjson.dumps({"temperature": round(20.0 + rng.random() * 5.0, 2)})


def publish_readings(client, sensor_ids: Iterable[UUID], rng: random.Random, qos: int = 0) -> int:
    sent = 0
    for sensor_id in sensor_ids:
        client.publish(build_device_topic(sensor_id), build_reading(rng), qos=qos)
        sent += 1
    return sent


def run_once(http: httpx.Client, client, api_url: str, rng: random.Random) -> int:
    sensor_ids = fetch_sensor_ids(http, api_url)
    logger.info("Found %d sensors globally", len(sensor_ids))
    return publish_readings(client, sensor_ids, rng)


def _connect(host: str, port: int) -> mqtt.Client:
    client = mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=f"Simulator-{uuid4().hex}",
        protocol=mqtt.MQTTv311,
        clean_session=True,
    )
    client.connect(host, port, keepalive=60)
    client.loop_start()
    return client


def main() -> None:
    p = argparse.ArgumentParser(description="IoT device simulator (thermometers)")
    p.add_argument("--api-url", default="http://localhost:8000")
    p.add_argument("--broker-host", default="test.mosquitto.org")
    p.add_argument("--broker-port", type=int, default=1883)
    p.add_argument("--interval", type=float, default=5.0)
    p.add_argument("--once", action="store_true", help="run a single iteration and exit")
    p.add_argument("--log-level", default="INFO")
    args = p.parse_args()

    setup_logging(args.log_level.upper())

    logger.info("Connecting to %s:%d...", args.broker_host, args.broker_port)
    try:
        client = _connect(args.broker_host, args.broker_port)
    except OSError as e:
        logger.error("Connection failed: %s", e)
        raise SystemExit(1)

    rng = random.Random()
    try:
        with httpx.Client(timeout=10.0) as http:
            while True:
                try:
                    run_once(http, client, args.api_url, rng)
                except Exception as e:
                    logger.error("Error en iteración: %s", e)
                    if args.once:
                        raise
                if args.once:
                    return
                time.sleep(args.interval)
    except KeyboardInterrupt:
        logger.info("Simulator stopped")
    finally:
        client.disconnect()
        client.loop_stop()


if __name__ == "__main__":
    main()
