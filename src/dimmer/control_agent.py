"""Local HTTP control agent carrying commands to the engine loop."""

from __future__ import annotations

import json
import queue
import threading
import urllib.error
import urllib.request
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable


class InboxTimeout(RuntimeError):
    pass


class _PendingCommand:
    def __init__(self, payload: dict[str, Any]) -> None:
        self.payload = payload
        self.done = threading.Event()
        self.response: dict[str, Any] | None = None
        self.error: BaseException | None = None


class CommandInbox:
    """Hands commands from server threads to the single engine thread.

    Server threads block in :meth:`submit`; the engine loop answers them from
    :meth:`drain`, so the engine itself is only ever touched by one thread.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue[_PendingCommand] = queue.Queue()

    def submit(self, payload: dict[str, Any], timeout_seconds: float = 4.0) -> dict[str, Any]:
        pending = _PendingCommand(payload)
        self._queue.put(pending)
        if not pending.done.wait(timeout_seconds):
            raise InboxTimeout("engine did not answer in time")
        if pending.error is not None:
            raise pending.error
        return pending.response or {}

    def drain(self, handler: Callable[[dict[str, Any]], dict[str, Any]]) -> int:
        handled = 0
        while True:
            try:
                pending = self._queue.get_nowait()
            except queue.Empty:
                return handled
            try:
                pending.response = handler(pending.payload)
            except ValueError as exc:
                pending.error = exc
            except Exception as exc:  # pragma: no cover
                pending.error = RuntimeError(str(exc))
            finally:
                pending.done.set()
            handled += 1


class _ControlHandler(BaseHTTPRequestHandler):
    server_version = "DimmerControlAgent/1.0"

    def _send_json(self, status_code: int, payload: dict[str, Any]) -> None:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        self.send_response(status_code)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-store")
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self) -> None:  # noqa: N802
        if self.path == "/health":
            self._send_json(200, {"ok": True, "session_id": self.server.session_id})
            return
        if self.path == "/status":
            self._dispatch({"action": "getStatus"})
            return
        self._send_json(404, {"error": "not_found"})

    def do_POST(self) -> None:  # noqa: N802
        if self.path != "/command":
            self._send_json(404, {"error": "not_found"})
            return
        length = int(self.headers.get("Content-Length", "0") or "0")
        raw = self.rfile.read(length) if length > 0 else b"{}"
        try:
            payload = json.loads(raw.decode("utf-8", errors="replace"))
        except json.JSONDecodeError:
            self._send_json(400, {"error": "invalid_json"})
            return
        if not isinstance(payload, dict):
            self._send_json(400, {"error": "invalid_command_payload"})
            return
        self._dispatch(payload)

    def _dispatch(self, payload: dict[str, Any]) -> None:
        try:
            result = self.server.inbox.submit(payload, timeout_seconds=self.server.timeout_seconds)
        except ValueError as exc:
            self._send_json(400, {"error": str(exc)})
            return
        except InboxTimeout as exc:
            self._send_json(504, {"error": str(exc)})
            return
        except Exception as exc:  # pragma: no cover
            self._send_json(500, {"error": str(exc)})
            return
        self._send_json(200, result)

    def log_message(self, _format: str, *_args: Any) -> None:
        return


class ControlServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(
        self,
        server_address: tuple[str, int],
        inbox: CommandInbox,
        *,
        session_id: str = "",
        timeout_seconds: float = 4.0,
    ):
        super().__init__(server_address, _ControlHandler)
        self.inbox = inbox
        self.session_id = session_id
        self.timeout_seconds = timeout_seconds

    @property
    def port(self) -> int:
        return int(self.server_address[1])


def start_control_server(
    inbox: CommandInbox,
    *,
    port: int = 0,
    session_id: str = "",
) -> tuple[ControlServer, threading.Thread]:
    server = ControlServer(("127.0.0.1", port), inbox, session_id=session_id)
    thread = threading.Thread(target=server.serve_forever, name="dimmer-control", daemon=True)
    thread.start()
    return server, thread


def send_command(port: int, payload: dict[str, Any], timeout_seconds: float = 5.0) -> dict[str, Any]:
    if int(port or 0) <= 0:
        raise SystemExit("Engine control agent offline: no control port configured.")
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    req = urllib.request.Request(
        f"http://127.0.0.1:{port}/command",
        data=body,
        method="POST",
        headers={"Content-Type": "application/json"},
    )
    action = str(payload.get("action", ""))
    try:
        with urllib.request.urlopen(req, timeout=timeout_seconds) as resp:
            raw = resp.read().decode("utf-8", errors="replace")
    except urllib.error.HTTPError as exc:
        reason = exc.read().decode("utf-8", errors="replace")
        raise SystemExit(f"Engine command failed ({action}): {reason}") from exc
    except (urllib.error.URLError, TimeoutError) as exc:
        raise SystemExit(f"Engine command failed ({action}): {exc}") from exc
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Engine command returned invalid JSON ({action})") from exc
    if not isinstance(parsed, dict):
        raise SystemExit(f"Engine command returned invalid payload ({action})")
    return parsed
