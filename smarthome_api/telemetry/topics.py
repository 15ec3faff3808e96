"""Topics de telemetría: ``<namespace>/devices/<deviceId>/<measurement>``."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

SEPARATOR = "/"
DEVICES_SEGMENT = "devices"
DEVICE_ID_INDEX = 2
SEGMENT_COUNT = 4


def build_topic_filter(namespace: str, measurement: str) -> str:
    return SEPARATOR.join((namespace, DEVICES_SEGMENT, "+", measurement))


def build_device_topic(device_id: UUID, namespace: str = "smarthome", measurement: str = "temp") -> str:
    return SEPARATOR.join((namespace, DEVICES_SEGMENT, str(device_id), measurement))


def parse_device_topic(
    topic: str,
    namespace: str = "smarthome",
    measurement: str = "temp",
) -> Optional[UUID]:
    """Extrae el id del dispositivo del topic.

    Returns:
        UUID del dispositivo, o None si el topic no tiene la forma
        esperada o el segmento no es un UUID válido.
    """
    if not topic:
        return None

    segments = topic.split(SEPARATOR)
    if len(segments) != SEGMENT_COUNT:
        return None

    if (
        segments[0] != namespace
        or segments[1] != DEVICES_SEGMENT
        or segments[3] != measurement
    ):
        return None

    try:
        return UUID(segments[DEVICE_ID_INDEX])
    except ValueError:
        return None
