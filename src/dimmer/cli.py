"""CLI entrypoint for the overlay dimmer."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

from dimmer.commands import opacity_label
from dimmer.config_store import ConfigStore, default_fallback_path
from dimmer.constants import DEFAULT_ENABLED, DEFAULT_OPACITY
from dimmer.control_agent import send_command
from dimmer.controller import EngineController
from dimmer.dom import parse_html
from dimmer.engine_config import EngineConfig, EngineSettings, clamp_intensity
from dimmer.storage import status_payload, tail_lines
from dimmer.timers import ManualClock, TimerQueue
from dimmer.web_common import host_allowed, is_valid_url


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "run":
        run_command(
            args.url,
            cdp_port=args.cdp_port,
            headless=args.headless,
            control_port=args.control_port,
            any_host=args.any_host,
        )
        return
    if args.command == "toggle":
        toggle_command(args.state == "on")
        return
    if args.command == "opacity":
        opacity_command(args.value)
        return
    if args.command == "status":
        status_command()
        return
    if args.command == "reapply":
        reapply_command()
        return
    if args.command == "reset":
        reset_command()
        return
    if args.command == "logs":
        logs_command(args.tail)
        return
    if args.command == "scan":
        scan_command(args.file, opacity=args.opacity)
        return

    parser.print_help()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dimmer", description="Dim video overlay cards on a live page.")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Open a page and keep its overlays dimmed")
    run_parser.add_argument("url", type=str)
    run_parser.add_argument("--cdp-port", type=int, default=0, help="Attach to a running Chrome on this CDP port.")
    run_parser.add_argument("--headless", action="store_true")
    run_parser.add_argument("--control-port", type=int, default=0, help="Control agent port (0 = any free port).")
    run_parser.add_argument(
        "--any-host",
        action="store_true",
        help="Allow pages outside the supported video hosts.",
    )

    toggle_parser = subparsers.add_parser("toggle", help="Enable or disable dimming")
    toggle_parser.add_argument("state", choices=("on", "off"))

    opacity_parser = subparsers.add_parser("opacity", help="Set overlay opacity (0.0 - 1.0)")
    opacity_parser.add_argument("value", type=str)

    subparsers.add_parser("status", help="Show engine status")
    subparsers.add_parser("reapply", help="Force a fresh scan of the page")
    subparsers.add_parser("reset", help="Restore default settings")

    logs_parser = subparsers.add_parser("logs", help="Tail the engine log of the latest session")
    logs_parser.add_argument("--tail", type=int, default=200)

    scan_parser = subparsers.add_parser("scan", help="Dry run over a saved HTML page")
    scan_parser.add_argument("file", type=str)
    scan_parser.add_argument("--opacity", type=str, default=None)
    return parser


def run_command(
    url: str,
    *,
    cdp_port: int = 0,
    headless: bool = False,
    control_port: int = 0,
    any_host: bool = False,
) -> None:
    if not is_valid_url(url):
        raise SystemExit(f"Invalid URL: {url}")
    if not any_host and not host_allowed(url):
        raise SystemExit("Not on YouTube: pass --any-host to dim overlays on other pages.")
    from dimmer.runtime import run_engine

    reason = run_engine(
        url,
        cdp_port=cdp_port or None,
        headless=headless,
        control_port=control_port,
        settings=EngineSettings.from_env(),
    )
    print(json.dumps({"status": "stopped", "reason": reason}, indent=2, ensure_ascii=False))


def _settings_store() -> ConfigStore:
    return ConfigStore(fallback=default_fallback_path())


def _running_control_port() -> int:
    payload = status_payload()
    if payload.get("state") != "running":
        return 0
    try:
        return int(payload.get("control_port", 0) or 0)
    except (TypeError, ValueError):
        return 0


def _deliver(payload: dict[str, Any]) -> dict[str, Any]:
    port = _running_control_port()
    if port <= 0:
        return {"success": False, "message": "engine not running; settings saved for next start"}
    response = send_command(port, payload)
    response.setdefault("message", "Applied!")
    return response


def toggle_command(enabled: bool) -> None:
    store = _settings_store()
    config = store.load()
    config.enabled = enabled
    store.save(config)
    result = _deliver({"action": "toggleEnabled", "enabled": enabled})
    result["enabled"] = enabled
    print(json.dumps(result, indent=2, ensure_ascii=False))


def opacity_command(raw_value: str) -> None:
    try:
        opacity = clamp_intensity(raw_value)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    store = _settings_store()
    config = store.load()
    config.intensity = opacity
    store.save(config)
    result = _deliver({"action": "setOpacity", "opacity": opacity})
    result["opacity"] = opacity
    result["label"] = opacity_label(opacity)
    print(json.dumps(result, indent=2, ensure_ascii=False))


def status_command() -> None:
    port = _running_control_port()
    if port > 0:
        state = send_command(port, {"action": "getStatus"})
        source = "engine"
    else:
        state = _settings_store().load().to_payload()
        source = "settings"
    opacity = float(state.get("opacity", DEFAULT_OPACITY))
    payload = {
        "enabled": bool(state.get("enabled", DEFAULT_ENABLED)),
        "opacity": opacity,
        "label": opacity_label(opacity),
        "source": source,
        "engine_online": port > 0,
    }
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def reapply_command() -> None:
    port = _running_control_port()
    if port <= 0:
        raise SystemExit("Engine not running: start it with `dimmer run URL`.")
    print(json.dumps(send_command(port, {"action": "reapply"}), indent=2, ensure_ascii=False))


def reset_command() -> None:
    _settings_store().save(EngineConfig(enabled=DEFAULT_ENABLED, intensity=DEFAULT_OPACITY))
    result = _deliver({"action": "toggleEnabled", "enabled": DEFAULT_ENABLED})
    if result.get("success"):
        result = _deliver({"action": "setOpacity", "opacity": DEFAULT_OPACITY})
    result["enabled"] = DEFAULT_ENABLED
    result["opacity"] = DEFAULT_OPACITY
    result["label"] = opacity_label(DEFAULT_OPACITY)
    print(json.dumps(result, indent=2, ensure_ascii=False))


def logs_command(tail_count: int) -> None:
    payload = status_payload()
    if payload.get("status") == "no-sessions":
        raise SystemExit("No sessions available yet.")
    session_dir = Path(payload["session_dir"])
    print("\n".join(tail_lines(session_dir / "engine.log", tail_count)))


def scan_command(file_path: str, *, opacity: str | None = None) -> None:
    path = Path(file_path)
    try:
        markup = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise SystemExit(f"Cannot read {path}: {exc}") from exc
    intensity = _settings_store().load().intensity
    if opacity is not None:
        try:
            intensity = clamp_intensity(opacity)
        except ValueError as exc:
            raise SystemExit(str(exc)) from exc
    document = parse_html(markup)
    controller = EngineController(
        document,
        EngineConfig(enabled=True, intensity=intensity),
        timers=TimerQueue(ManualClock()),
    )
    controller.start()
    marked = [
        {
            "element": repr(element),
            "opacity": document.computed_style(element)["opacity"],
        }
        for element in controller.store.suppressed_elements()
    ]
    print(
        json.dumps(
            {"file": str(path), "opacity": intensity, "marked": len(marked), "elements": marked},
            indent=2,
            ensure_ascii=False,
        )
    )


if __name__ == "__main__":
    main()
