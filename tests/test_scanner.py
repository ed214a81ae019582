import unittest

from dimmer.dom import Document, SelectorError
from dimmer.engine_config import EngineConfig
from dimmer.scanner import Scanner
from dimmer.suppression_store import SuppressionStore


class _FlakyDocument(Document):
    """Rejects one pattern the way a browser rejects an unsupported selector."""

    bad = ".broken"

    def query_all(self, selector, root=None):
        if self.bad in selector:
            raise SelectorError(f"cannot evaluate {selector!r}")
        return super().query_all(selector, root)


class ScannerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.doc = Document()
        self.config = EngineConfig(enabled=True, intensity=0.3)
        self.store = SuppressionStore(self.doc)
        self.player = self.doc.append_child(self.doc.body, self.doc.create_element("div", id="movie_player"))
        self.logs: list[str] = []

    def _scanner(self, doc=None, patterns=(".ytp-ce-element-show", ".ytReelMetapanelViewModelHost")) -> Scanner:
        doc = doc or self.doc
        if doc is not self.doc:
            self.store = SuppressionStore(doc)
        return Scanner(doc, self.config, self.store, patterns=patterns, log=self.logs.append)

    def _add(self, parent, *classes, doc=None):
        doc = doc or self.doc
        return doc.append_child(parent, doc.create_element("div", classes=classes))

    def test_marks_new_eligible_candidates_once(self) -> None:
        card = self._add(self.player, "ytp-ce-element-show")
        shorts = self._add(self.doc.body, "ytReelMetapanelViewModelHost")
        scanner = self._scanner()
        self.assertEqual(scanner.scan(), 2)
        self.assertEqual(scanner.scan(), 0)
        self.assertTrue(self.store.is_suppressed(card))
        self.assertTrue(self.store.is_suppressed(shorts))
        self.assertEqual(scanner.passes, 2)

    def test_protected_zone_candidates_stay_unmarked(self) -> None:
        bottom = self._add(self.player, "ytp-chrome-bottom")
        nested = self._add(bottom, "ytp-ce-element-show")
        scanner = self._scanner()
        for _ in range(5):
            scanner.scan()
        self.assertFalse(self.store.is_suppressed(nested))
        self.assertEqual(self.doc.query_all("[data-yt-opacity-reduced]"), [])

    def test_disabled_config_scans_nothing(self) -> None:
        self._add(self.player, "ytp-ce-element-show")
        self.config.enabled = False
        scanner = self._scanner()
        self.assertEqual(scanner.scan(), 0)
        self.assertEqual(scanner.passes, 0)

    def test_hidden_candidate_is_marked_once_it_shows(self) -> None:
        card = self._add(self.player, "ytp-ce-element-show", "ytp-ce-element-hide")
        scanner = self._scanner()
        self.assertEqual(scanner.scan(), 0)
        self.doc.remove_class(card, "ytp-ce-element-hide")
        self.assertEqual(scanner.scan(), 1)

    def test_failing_pattern_is_skipped_without_aborting_pass(self) -> None:
        doc = _FlakyDocument()
        player = self._add(doc.body, doc=doc)
        card = self._add(player, "ytp-ce-element-show", doc=doc)
        both = self._add(player, "ytp-ce-element-show", "ytReelMetapanelViewModelHost", doc=doc)
        scanner = self._scanner(doc, patterns=(".ytp-ce-element-show", ".broken", ".ytReelMetapanelViewModelHost"))
        self.assertEqual(scanner.scan(), 2)
        self.assertTrue(self.store.is_suppressed(card))
        self.assertTrue(self.store.is_suppressed(both))
        self.assertTrue(any("pattern skipped '.broken'" in line for line in self.logs))

    def test_detached_records_are_pruned_before_pass(self) -> None:
        card = self._add(self.player, "ytp-ce-element-show")
        scanner = self._scanner()
        scanner.scan()
        self.doc.remove(card)
        scanner.scan()
        self.assertEqual(len(self.store), 0)


if __name__ == "__main__":
    unittest.main()
