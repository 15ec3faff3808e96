"""Métricas Prometheus del pipeline de telemetría y del hub de difusión."""

from __future__ import annotations

from prometheus_client import Counter, Gauge

TELEMETRY_MESSAGES = Counter(
    "smarthome_telemetry_messages_total",
    "MQTT telemetry messages handled",
    ["outcome"],  # applied, not_applicable, discarded, failed
)
TELEMETRY_CONNECTED = Gauge(
    "smarthome_telemetry_connected",
    "1 while the telemetry listener holds a live subscription",
)
TELEMETRY_RECONNECTS = Counter(
    "smarthome_telemetry_reconnects_total",
    "Broker reconnection attempts after a failure or disconnect",
)
HUB_EVENTS = Counter(
    "smarthome_hub_events_total",
    "Broadcast hub events",
    ["event", "status"],  # queued, dropped, delivered
)
HUB_SUBSCRIBERS = Gauge(
    "smarthome_hub_subscribers",
    "Live-update subscribers currently connected",
)
