import unittest

from dimmer.dom import Document
from dimmer.engine_config import EngineConfig
from dimmer.hover_restorer import HoverRestorer
from dimmer.style_rule import StyleRuleInstaller
from dimmer.suppression_store import SuppressionStore


class HoverRestorerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.doc = Document()
        self.config = EngineConfig(enabled=True, intensity=0.3)
        self.store = SuppressionStore(self.doc)
        self.hover = HoverRestorer(self.doc, self.store)
        self.styles = StyleRuleInstaller(self.doc, self.config, hover_restore=False)
        self.styles.install()
        self.player = self.doc.append_child(self.doc.body, self.doc.create_element("div", id="movie_player"))
        self.card = self.doc.append_child(self.player, self.doc.create_element("div"))

    def _opacity(self, element=None) -> str:
        return self.doc.computed_style(element or self.card)["opacity"]

    def test_listeners_attach_lazily(self) -> None:
        self.hover.sync()
        self.assertFalse(self.hover.attached)
        self.store.mark_suppressed(self.card)
        self.hover.sync()
        self.assertTrue(self.hover.attached)

    def test_enter_overrides_and_leave_hands_back_to_rule(self) -> None:
        self.store.mark_suppressed(self.card)
        self.hover.sync()
        self.doc.pointer_enter(self.card)
        self.assertEqual(self._opacity(), "1")
        self.doc.pointer_leave(self.card)
        self.assertIsNone(self.doc.get_inline_style(self.card, "opacity"))
        self.assertEqual(self._opacity(), "0.3")

    def test_leave_restores_own_inline_opacity(self) -> None:
        self.doc.set_inline_style(self.card, "opacity", "0.9")
        self.store.mark_suppressed(self.card)
        self.hover.sync()
        self.doc.pointer_enter(self.card)
        self.doc.pointer_leave(self.card)
        self.assertEqual(self.doc.get_inline_style(self.card, "opacity"), ("0.9", ""))
        self.assertEqual(self._opacity(), "0.3")

    def test_intensity_change_reaches_previously_hovered_card(self) -> None:
        self.store.mark_suppressed(self.card)
        self.hover.sync()
        self.doc.pointer_enter(self.card)
        self.doc.pointer_leave(self.card)
        self.config.intensity = 0.6
        self.styles.install()
        self.assertEqual(self._opacity(), "0.6")

    def test_auto_hide_wins_after_and_during_hover(self) -> None:
        self.store.mark_suppressed(self.card)
        self.hover.sync()
        self.doc.pointer_enter(self.card)
        self.doc.pointer_leave(self.card)
        self.doc.add_class(self.player, "ytp-autohide")
        self.assertEqual(self._opacity(), "0")
        self.doc.pointer_enter(self.card)
        self.assertEqual(self._opacity(), "0")
        self.assertIsNone(self.doc.get_inline_style(self.card, "opacity"))

    def test_unsuppressed_elements_are_ignored(self) -> None:
        other = self.doc.append_child(self.doc.body, self.doc.create_element("div"))
        self.store.mark_suppressed(self.card)
        self.hover.sync()
        self.doc.pointer_enter(other)
        self.assertIsNone(self.doc.get_inline_style(other, "opacity"))

    def test_detach_removes_listener_and_keeps_records(self) -> None:
        self.store.mark_suppressed(self.card)
        self.hover.sync()
        self.hover.detach()
        self.assertFalse(self.hover.attached)
        self.doc.pointer_enter(self.card)
        self.assertIsNone(self.doc.get_inline_style(self.card, "opacity"))
        self.assertTrue(self.store.is_suppressed(self.card))

    def test_unmark_restores_baseline_after_override(self) -> None:
        self.store.mark_suppressed(self.card)
        self.hover.sync()
        self.doc.pointer_enter(self.card)
        self.store.unmark_suppressed(self.card)
        self.assertIsNone(self.doc.get_inline_style(self.card, "opacity"))


if __name__ == "__main__":
    unittest.main()
