"""Per-element suppression records with restorable visual baselines."""

from __future__ import annotations

import weakref
from dataclasses import dataclass
from typing import Any, Callable

from dimmer.constants import MARKER_ATTRIBUTE, MARKER_VALUE


@dataclass(frozen=True)
class BaselineVisualState:
    inline_opacity: str | None
    inline_priority: str
    computed_opacity: str


@dataclass
class SuppressionRecord:
    baseline: BaselineVisualState
    suppressed: bool = True


class SuppressionStore:
    """Weakly keyed side table: element -> :class:`SuppressionRecord`.

    A record exists exactly while the element carries the marker attribute.
    Records never keep an element alive; records of elements that left the tree
    are dropped by :meth:`prune` on the next scan.
    """

    def __init__(
        self,
        document: Any,
        *,
        marker_attribute: str = MARKER_ATTRIBUTE,
        log: Callable[[str], None] | None = None,
    ) -> None:
        self._document = document
        self._marker = marker_attribute
        self._log = log
        self._records: weakref.WeakKeyDictionary[Any, SuppressionRecord] = weakref.WeakKeyDictionary()

    @property
    def marker_selector(self) -> str:
        return f'[{self._marker}="{MARKER_VALUE}"]'

    def __len__(self) -> int:
        return len(self._records)

    def record_for(self, element: Any) -> SuppressionRecord | None:
        return self._records.get(element)

    def suppressed_elements(self) -> list[Any]:
        return list(self._records.keys())

    def is_suppressed(self, element: Any) -> bool:
        record = self._records.get(element)
        if record is None or not record.suppressed:
            return False
        return self._document.get_attribute(element, self._marker) == MARKER_VALUE

    def mark_suppressed(self, element: Any) -> bool:
        record = self._records.get(element)
        created = record is None
        if record is None:
            record = SuppressionRecord(baseline=self._capture_baseline(element))
            self._records[element] = record
        record.suppressed = True
        self._document.set_attribute(element, self._marker, MARKER_VALUE)
        return created

    def unmark_suppressed(self, element: Any) -> bool:
        record = self._records.pop(element, None)
        self._document.remove_attribute(element, self._marker)
        if record is None:
            return False
        record.suppressed = False
        self._apply_baseline(element, record.baseline)
        return True

    def restore_baseline(self, element: Any) -> bool:
        """Put back the pre-suppression inline opacity; the element stays marked."""
        record = self._records.get(element)
        if record is None:
            return False
        self._apply_baseline(element, record.baseline)
        return True

    def _apply_baseline(self, element: Any, baseline: BaselineVisualState) -> None:
        if baseline.inline_opacity is None:
            self._document.remove_inline_style(element, "opacity")
        else:
            self._document.set_inline_style(
                element,
                "opacity",
                baseline.inline_opacity,
                baseline.inline_priority,
            )

    def unmark_all(self) -> int:
        count = 0
        for element in self.suppressed_elements():
            if self.unmark_suppressed(element):
                count += 1
        # Markers left behind by an earlier engine instance have no record.
        for element in self._document.query_all(self.marker_selector):
            self._document.remove_attribute(element, self._marker)
        return count

    def prune(self) -> int:
        dropped = 0
        for element in self.suppressed_elements():
            if self._document.is_connected(element):
                continue
            self.unmark_suppressed(element)
            dropped += 1
        if dropped and self._log:
            self._log(f"pruned {dropped} detached suppressed element(s)")
        return dropped

    def forget_all(self) -> None:
        self._records.clear()

    def _capture_baseline(self, element: Any) -> BaselineVisualState:
        inline = self._document.get_inline_style(element, "opacity")
        computed = self._document.computed_style(element).get("opacity", "1")
        return BaselineVisualState(
            inline_opacity=inline[0] if inline else None,
            inline_priority=inline[1] if inline else "",
            computed_opacity=str(computed),
        )
