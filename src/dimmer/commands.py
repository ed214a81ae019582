"""Command surface for the control transport."""

from __future__ import annotations

from typing import Any

from dimmer.engine_config import clamp_intensity


SUPPORTED_ACTIONS = ("toggleEnabled", "setOpacity", "getStatus", "reapply")


def handle_command(controller: Any, payload: dict[str, Any]) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValueError("command payload must be an object")
    action = str(payload.get("action", "")).strip()

    if action == "toggleEnabled":
        enabled = payload.get("enabled")
        if not isinstance(enabled, bool):
            raise ValueError("'enabled' must be a boolean")
        if enabled:
            controller.enable()
        else:
            controller.disable()
        return {"success": True, "enabled": controller.enabled}

    if action == "setOpacity":
        if "opacity" not in payload:
            raise ValueError("'opacity' is required")
        controller.set_intensity(clamp_intensity(payload["opacity"]))
        return {"success": True, "opacity": controller.intensity}

    if action == "getStatus":
        return {"enabled": controller.enabled, "opacity": controller.intensity}

    if action == "reapply":
        controller.force_rescan()
        return {"success": True}

    raise ValueError(f"Unsupported action: {action}")


def opacity_label(opacity: float) -> str:
    percentage = round(float(opacity) * 100)
    transparency = "More Transparent" if percentage < 50 else "Less Transparent"
    return f"{percentage}% ({transparency})"
