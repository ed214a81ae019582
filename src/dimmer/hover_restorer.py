"""Imperative hover override for suppressed elements.

Used only with the ``override`` hover mode, where the style rule carries no
``:hover`` clause. Pointer-enter writes a full-opacity inline override; leave
puts the element's own inline opacity back, so the installed rule decides the
dimmed value again (current intensity, host auto-hide).
"""

from __future__ import annotations

from typing import Any, Callable

from dimmer.style_rule import AUTOHIDE_SELECTOR
from dimmer.suppression_store import SuppressionStore


class HoverRestorer:
    def __init__(
        self,
        document: Any,
        store: SuppressionStore,
        *,
        log: Callable[[str], None] | None = None,
    ) -> None:
        self._document = document
        self._store = store
        self._log = log
        self._remove: Callable[[], None] | None = None

    @property
    def attached(self) -> bool:
        return self._remove is not None

    def sync(self) -> None:
        if len(self._store) and not self.attached:
            self._remove = self._document.add_pointer_listener(
                self._on_pointer,
                self._store.marker_selector,
            )
            if self._log:
                self._log("hover listeners attached")

    def detach(self) -> None:
        remove, self._remove = self._remove, None
        if remove is not None:
            remove()
            if self._log:
                self._log("hover listeners detached")

    def _on_pointer(self, kind: str, element: Any) -> None:
        if not self._store.is_suppressed(element):
            return
        if kind == "enter":
            # Auto-hidden overlays stay hidden under the pointer.
            if self._document.closest(element, AUTOHIDE_SELECTOR) is not None:
                return
            self._document.set_inline_style(element, "opacity", "1", "important")
        elif kind == "leave":
            self._store.restore_baseline(element)
