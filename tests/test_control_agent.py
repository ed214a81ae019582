import json
import threading
import unittest
import urllib.error
import urllib.request

from dimmer.commands import handle_command
from dimmer.control_agent import CommandInbox, InboxTimeout, send_command, start_control_server


class _StubController:
    def __init__(self) -> None:
        self.enabled = True
        self.intensity = 0.3

    def enable(self) -> None:
        self.enabled = True

    def disable(self) -> None:
        self.enabled = False

    def set_intensity(self, value: float) -> float:
        self.intensity = value
        return value

    def force_rescan(self) -> None:
        return


class CommandInboxTests(unittest.TestCase):
    def test_drain_answers_waiting_submitter(self) -> None:
        inbox = CommandInbox()
        result: dict = {}

        def submit() -> None:
            result.update(inbox.submit({"action": "getStatus"}, timeout_seconds=5))

        worker = threading.Thread(target=submit)
        worker.start()
        handled = 0
        while handled == 0:
            handled = inbox.drain(lambda payload: {"echo": payload["action"]})
        worker.join(5)
        self.assertEqual(result, {"echo": "getStatus"})

    def test_value_error_reaches_submitter(self) -> None:
        inbox = CommandInbox()
        errors: list[BaseException] = []

        def submit() -> None:
            try:
                inbox.submit({"action": "nope"}, timeout_seconds=5)
            except ValueError as exc:
                errors.append(exc)

        def reject(_payload):
            raise ValueError("Unsupported action: nope")

        worker = threading.Thread(target=submit)
        worker.start()
        while not inbox.drain(reject):
            pass
        worker.join(5)
        self.assertEqual([str(e) for e in errors], ["Unsupported action: nope"])

    def test_submit_times_out_without_engine(self) -> None:
        with self.assertRaises(InboxTimeout):
            CommandInbox().submit({"action": "getStatus"}, timeout_seconds=0.01)


class ControlServerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.controller = _StubController()
        self.inbox = CommandInbox()
        self.server, _thread = start_control_server(self.inbox, session_id="s1")
        self._stop = threading.Event()
        self._engine = threading.Thread(target=self._engine_loop, daemon=True)
        self._engine.start()

    def tearDown(self) -> None:
        self._stop.set()
        self._engine.join(2)
        self.server.shutdown()
        self.server.server_close()

    def _engine_loop(self) -> None:
        while not self._stop.is_set():
            self.inbox.drain(lambda payload: handle_command(self.controller, payload))
            self._stop.wait(0.01)

    def _get(self, path: str) -> dict:
        with urllib.request.urlopen(f"http://127.0.0.1:{self.server.port}{path}", timeout=5) as resp:
            return json.loads(resp.read().decode("utf-8"))

    def test_health_and_status(self) -> None:
        self.assertEqual(self._get("/health"), {"ok": True, "session_id": "s1"})
        self.assertEqual(self._get("/status"), {"enabled": True, "opacity": 0.3})

    def test_send_command_round_trip(self) -> None:
        response = send_command(self.server.port, {"action": "toggleEnabled", "enabled": False})
        self.assertEqual(response, {"success": True, "enabled": False})
        self.assertFalse(self.controller.enabled)

    def test_invalid_command_is_http_400(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            send_command(self.server.port, {"action": "explode"})
        self.assertIn("Unsupported action", str(ctx.exception))

    def test_invalid_json_is_rejected(self) -> None:
        req = urllib.request.Request(
            f"http://127.0.0.1:{self.server.port}/command",
            data=b"{oops",
            method="POST",
            headers={"Content-Type": "application/json"},
        )
        with self.assertRaises(urllib.error.HTTPError) as ctx:
            urllib.request.urlopen(req, timeout=5)
        self.assertEqual(ctx.exception.code, 400)
        ctx.exception.close()

    def test_unknown_path_is_404(self) -> None:
        with self.assertRaises(urllib.error.HTTPError) as ctx:
            self._get("/nowhere")
        self.assertEqual(ctx.exception.code, 404)
        ctx.exception.close()


class SendCommandTests(unittest.TestCase):
    def test_missing_port_is_reported(self) -> None:
        with self.assertRaises(SystemExit):
            send_command(0, {"action": "getStatus"})


if __name__ == "__main__":
    unittest.main()
