"""SmartHome API: device registry, live updates and MQTT telemetry ingestion."""
