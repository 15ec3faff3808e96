"""Difusión en vivo a clientes conectados (websocket)."""

from .hub import (
    RECEIVE_TEMPERATURE,
    REFRESH_DEVICES,
    BroadcastEvent,
    BroadcastHub,
    get_broadcast_hub,
    reset_broadcast_hub,
)
from .notifier import DeviceNotifier

__all__ = [
    "RECEIVE_TEMPERATURE",
    "REFRESH_DEVICES",
    "BroadcastEvent",
    "BroadcastHub",
    "DeviceNotifier",
    "get_broadcast_hub",
    "reset_broadcast_hub",
]
