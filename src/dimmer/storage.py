"""File storage helpers for engine sessions."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable


RUNS_DIR = Path("runs")
SESSIONS_DIR = RUNS_DIR / "sessions"
STATUS_PATH = RUNS_DIR / "status.json"


@dataclass(frozen=True)
class SessionContext:
    session_id: str
    session_dir: Path
    engine_log: Path


def create_session_context() -> SessionContext:
    SESSIONS_DIR.mkdir(parents=True, exist_ok=True)
    session_dir: Path | None = None
    session_id = ""
    for attempt in range(100):
        base = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        suffix = f"-{attempt:02d}" if attempt else ""
        session_id = f"{base}{suffix}"
        candidate = SESSIONS_DIR / session_id
        if candidate.exists():
            continue
        candidate.mkdir(parents=True, exist_ok=False)
        session_dir = candidate
        break
    if session_dir is None:
        raise RuntimeError("Could not allocate unique session directory")
    return SessionContext(
        session_id=session_id,
        session_dir=session_dir,
        engine_log=session_dir / "engine.log",
    )


def append_log(path: Path, message: str) -> None:
    with path.open("a", encoding="utf-8") as fh:
        fh.write(message.rstrip() + "\n")


def session_logger(path: Path, *, echo: bool = False) -> Callable[[str], None]:
    def log(message: str) -> None:
        line = f"{datetime.now(timezone.utc).isoformat()} {message}"
        try:
            append_log(path, line)
        except OSError:
            pass
        if echo:
            print(f"[dimmer] {message}", file=sys.stderr)

    return log


def write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with tmp.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)
        fh.write("\n")
    os.replace(tmp, path)


def write_status(
    *,
    session_id: str,
    session_dir: Path,
    url: str,
    state: str,
    control_port: int,
    enabled: bool,
    opacity: float,
    pid: int | None = None,
) -> None:
    payload: dict[str, Any] = {
        "session_id": session_id,
        "session_dir": str(session_dir),
        "url": url,
        "state": state,
        "control_port": int(control_port),
        "pid": int(pid if pid is not None else os.getpid()),
        "enabled": bool(enabled),
        "opacity": float(opacity),
        "updated_at_utc": datetime.now(timezone.utc).isoformat(),
    }
    write_json(STATUS_PATH, payload)


def status_payload() -> dict[str, Any]:
    if not STATUS_PATH.exists():
        return {"status": "no-sessions"}
    with STATUS_PATH.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def tail_lines(path: Path, line_count: int) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8") as fh:
        lines = fh.readlines()
    return [line.rstrip("\n") for line in lines[-line_count:]]
