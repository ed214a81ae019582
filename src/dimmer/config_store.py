"""Best-effort persistence of the engine settings."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable

from dimmer.constants import DEFAULT_ENABLED, DEFAULT_OPACITY
from dimmer.engine_config import EngineConfig, clamp_intensity
from dimmer.storage import write_json


def state_dir() -> Path:
    return Path(os.getenv("DIMMER_STATE_DIR", "runs/dimmer"))


def default_primary_path() -> Path:
    return state_dir() / "settings.json"


def default_fallback_path() -> Path:
    return Path(tempfile.gettempdir()) / "dimmer-settings.json"


def config_from_payload(payload: Any) -> EngineConfig:
    if not isinstance(payload, dict):
        raise ValueError("settings must be a JSON object")
    enabled = payload.get("enabled")
    if not isinstance(enabled, bool):
        enabled = DEFAULT_ENABLED
    try:
        intensity = clamp_intensity(payload.get("opacity", DEFAULT_OPACITY))
    except ValueError:
        intensity = DEFAULT_OPACITY
    return EngineConfig(enabled=enabled, intensity=intensity)


class ConfigStore:
    """Primary location first, fallback second, defaults last."""

    def __init__(
        self,
        primary: Path | None = None,
        fallback: Path | None = None,
        *,
        log: Callable[[str], None] | None = None,
    ) -> None:
        self.primary = primary or default_primary_path()
        self.fallback = fallback
        self._log = log

    def load(self) -> EngineConfig:
        for path in self._paths():
            if not path.exists():
                continue
            try:
                with path.open("r", encoding="utf-8") as fh:
                    return config_from_payload(json.load(fh))
            except (OSError, ValueError) as exc:
                self._emit(f"settings unreadable at {path}: {exc}")
        return EngineConfig()

    def save(self, config: EngineConfig) -> bool:
        payload = config.to_payload()
        for path in self._paths():
            try:
                write_json(path, payload)
                return True
            except OSError as exc:
                self._emit(f"settings write failed at {path}: {exc}")
        return False

    def _paths(self) -> list[Path]:
        paths = [self.primary]
        if self.fallback is not None and self.fallback != self.primary:
            paths.append(self.fallback)
        return paths

    def _emit(self, message: str) -> None:
        if self._log:
            self._log(message)
