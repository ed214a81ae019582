"""Engine state struct and environment-driven tuning settings."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Any

from dimmer.constants import (
    DEFAULT_ENABLED,
    DEFAULT_OPACITY,
    EMPTY_ROUNDS_BEFORE_BACKOFF,
    GROWTH_FACTOR,
    HOVER_MODES,
    INITIAL_DELAY_MS,
    MAX_DELAY_MS,
    MIN_DELAY_MS,
    MUTATION_DELAY_MS,
    POLL_MS,
    SETTLE_DELAY_MS,
)


def clamp_intensity(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError("opacity must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"opacity must be a number, got {value!r}") from exc
    if math.isnan(number):
        raise ValueError("opacity must not be NaN")
    return max(0.0, min(1.0, number))


def format_opacity(value: float) -> str:
    text = f"{float(value):.3f}".rstrip("0").rstrip(".")
    return text or "0"


@dataclass
class EngineConfig:
    """The only mutable state shared across components.

    Owned by the controller; every other component receives this instance and
    reads it, never writes it.
    """

    enabled: bool = DEFAULT_ENABLED
    intensity: float = DEFAULT_OPACITY

    def to_payload(self) -> dict[str, Any]:
        return {"enabled": bool(self.enabled), "opacity": float(self.intensity)}


@dataclass(frozen=True)
class EngineSettings:
    min_delay_ms: float = MIN_DELAY_MS
    max_delay_ms: float = MAX_DELAY_MS
    growth_factor: float = GROWTH_FACTOR
    empty_rounds_before_backoff: int = EMPTY_ROUNDS_BEFORE_BACKOFF
    mutation_delay_ms: float = MUTATION_DELAY_MS
    settle_delay_ms: float = SETTLE_DELAY_MS
    initial_delay_ms: float = INITIAL_DELAY_MS
    poll_ms: int = POLL_MS
    hover_mode: str = "rule"
    debug: bool = False

    @classmethod
    def from_env(cls) -> "EngineSettings":
        min_delay = max(1.0, _env_float("DIMMER_MIN_DELAY_MS", MIN_DELAY_MS))
        max_delay = max(min_delay, _env_float("DIMMER_MAX_DELAY_MS", MAX_DELAY_MS))
        hover_mode = str(os.getenv("DIMMER_HOVER_MODE", "rule")).strip().lower()
        if hover_mode not in HOVER_MODES:
            hover_mode = "rule"
        return cls(
            min_delay_ms=min_delay,
            max_delay_ms=max_delay,
            growth_factor=max(1.0, _env_float("DIMMER_GROWTH_FACTOR", GROWTH_FACTOR)),
            empty_rounds_before_backoff=max(0, int(_env_float("DIMMER_EMPTY_ROUNDS", EMPTY_ROUNDS_BEFORE_BACKOFF))),
            mutation_delay_ms=max(0.0, _env_float("DIMMER_MUTATION_DELAY_MS", MUTATION_DELAY_MS)),
            settle_delay_ms=max(0.0, _env_float("DIMMER_SETTLE_DELAY_MS", SETTLE_DELAY_MS)),
            initial_delay_ms=max(0.0, _env_float("DIMMER_INITIAL_DELAY_MS", INITIAL_DELAY_MS)),
            poll_ms=max(1, int(_env_float("DIMMER_POLL_MS", POLL_MS))),
            hover_mode=hover_mode,
            debug=str(os.getenv("DIMMER_DEBUG", "")).strip().lower() in {"1", "true", "yes", "on"},
        )


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return float(default)
    try:
        value = float(raw)
    except ValueError:
        return float(default)
    if math.isnan(value) or math.isinf(value):
        return float(default)
    return value
