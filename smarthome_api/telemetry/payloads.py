"""Validación del payload de temperatura.

Formato esperado (UTF-8 JSON):
    {"temperature": 21.5}

Campos extra se ignoran. ``temperature`` debe ser un número JSON real
(no string, no booleano) y finito. No hay validación de rango: cualquier
valor finito se acepta.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Optional

import orjson
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

logger = logging.getLogger(__name__)


class TemperaturePayload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    temperature: float

    @field_validator("temperature", mode="before")
    @classmethod
    def require_number(cls, v: Any) -> Any:
        # bool es subclase de int; "21.5" lo convertiría pydantic en modo lax.
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("temperature must be a JSON number")
        return v

    @field_validator("temperature")
    @classmethod
    def require_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("temperature must be finite")
        return v


def decode_temperature(raw: bytes) -> Optional[float]:
    """Decodifica el payload; None si no es válido."""
    try:
        data = orjson.loads(raw)
    except (orjson.JSONDecodeError, TypeError) as e:
        logger.debug("[TELEMETRY] Invalid JSON payload: %s", e)
        return None

    if not isinstance(data, dict):
        logger.debug("[TELEMETRY] Payload is not a JSON object: %s", type(data).__name__)
        return None

    try:
        return TemperaturePayload.model_validate(data).temperature
    except ValidationError as e:
        logger.debug("[TELEMETRY] Payload validation failed: %s", e.errors())
        return None
