import unittest

from dimmer.dom import Document
from dimmer.eligibility import admit


class EligibilityTests(unittest.TestCase):
    def setUp(self) -> None:
        self.doc = Document()
        self.player = self.doc.append_child(self.doc.body, self.doc.create_element("div", id="movie_player"))

    def _card(self, parent=None, **kwargs):
        return self.doc.append_child(parent or self.player, self.doc.create_element("div", **kwargs))

    def test_visible_card_is_admitted(self) -> None:
        self.assertTrue(admit(self.doc, self._card(classes=("ytp-ce-element-show",))))

    def test_protected_zone_descendant_is_rejected(self) -> None:
        controls = self._card(classes=("ytp-chrome-controls",))
        nested = self._card(controls, classes=("ytp-ce-element-show",))
        self.assertFalse(admit(self.doc, nested))
        self.assertFalse(admit(self.doc, controls))

    def test_host_hidden_markers_are_rejected(self) -> None:
        self.assertFalse(admit(self.doc, self._card(classes=("ytp-ce-element-show", "ytp-ce-element-hide"))))
        self.assertFalse(admit(self.doc, self._card(classes=("ytp-ce-element-show", "ytp-autohide"))))
        self.assertFalse(admit(self.doc, self._card(attributes={"aria-hidden": "true"})))
        self.assertTrue(admit(self.doc, self._card(attributes={"aria-hidden": "false"})))

    def test_not_rendered_elements_are_rejected(self) -> None:
        self.assertFalse(admit(self.doc, self._card(style="display: none")))
        self.assertFalse(admit(self.doc, self._card(style="visibility: hidden")))
        hidden_parent = self._card(style="visibility:hidden")
        self.assertFalse(admit(self.doc, self._card(hidden_parent)))

    def test_decision_follows_host_state_changes(self) -> None:
        card = self._card(classes=("ytp-ce-element-show", "ytp-ce-element-hide"))
        self.assertFalse(admit(self.doc, card))
        self.doc.remove_class(card, "ytp-ce-element-hide")
        self.assertTrue(admit(self.doc, card))


if __name__ == "__main__":
    unittest.main()
