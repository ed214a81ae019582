import unittest

from dimmer.commands import handle_command, opacity_label
from dimmer.controller import EngineController
from dimmer.dom import Document
from dimmer.engine_config import EngineConfig
from dimmer.timers import ManualClock, TimerQueue


class CommandTests(unittest.TestCase):
    def setUp(self) -> None:
        self.doc = Document()
        self.card = self.doc.append_child(
            self.doc.body,
            self.doc.create_element("div", classes=("ytp-ce-element-show",)),
        )
        self.controller = EngineController(
            self.doc,
            EngineConfig(enabled=True, intensity=0.3),
            timers=TimerQueue(ManualClock()),
        )
        self.controller.start()

    def test_toggle_enabled(self) -> None:
        self.assertEqual(
            handle_command(self.controller, {"action": "toggleEnabled", "enabled": False}),
            {"success": True, "enabled": False},
        )
        self.assertFalse(self.controller.store.is_suppressed(self.card))
        self.assertEqual(
            handle_command(self.controller, {"action": "toggleEnabled", "enabled": True}),
            {"success": True, "enabled": True},
        )
        self.assertTrue(self.controller.store.is_suppressed(self.card))

    def test_toggle_requires_boolean(self) -> None:
        for value in ("true", 1, None):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    handle_command(self.controller, {"action": "toggleEnabled", "enabled": value})

    def test_set_opacity_clamps(self) -> None:
        self.assertEqual(
            handle_command(self.controller, {"action": "setOpacity", "opacity": 0.6}),
            {"success": True, "opacity": 0.6},
        )
        self.assertEqual(
            handle_command(self.controller, {"action": "setOpacity", "opacity": 4}),
            {"success": True, "opacity": 1.0},
        )

    def test_set_opacity_rejects_bad_values(self) -> None:
        for payload in ({"action": "setOpacity"}, {"action": "setOpacity", "opacity": "abc"}, {"action": "setOpacity", "opacity": True}):
            with self.subTest(payload=payload):
                with self.assertRaises(ValueError):
                    handle_command(self.controller, payload)

    def test_get_status(self) -> None:
        self.assertEqual(handle_command(self.controller, {"action": "getStatus"}), {"enabled": True, "opacity": 0.3})

    def test_reapply_starts_fresh_pass(self) -> None:
        self.assertEqual(handle_command(self.controller, {"action": "reapply"}), {"success": True})
        self.assertFalse(self.controller.store.is_suppressed(self.card))

    def test_unknown_action_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            handle_command(self.controller, {"action": "explode"})
        with self.assertRaises(ValueError):
            handle_command(self.controller, ["getStatus"])


class OpacityLabelTests(unittest.TestCase):
    def test_label_matches_popup_wording(self) -> None:
        self.assertEqual(opacity_label(0.3), "30% (More Transparent)")
        self.assertEqual(opacity_label(0.5), "50% (Less Transparent)")
        self.assertEqual(opacity_label(1.0), "100% (Less Transparent)")


if __name__ == "__main__":
    unittest.main()
