"""Simulador de termómetros: publica lecturas MQTT para los sensores registrados."""
