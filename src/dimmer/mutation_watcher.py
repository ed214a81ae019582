"""Structural change observation feeding out-of-cadence rescans."""

from __future__ import annotations

from typing import Any, Callable

from dimmer.constants import CONTENT_ROOT_SELECTORS, MATCH_PATTERNS, MUTATION_DELAY_MS
from dimmer.dom import SelectorError
from dimmer.timers import TimerQueue


class MutationWatcher:
    TIMER_KEY = "mutation"

    def __init__(
        self,
        document: Any,
        timers: TimerQueue,
        on_candidates: Callable[[], None],
        *,
        patterns: tuple[str, ...] = MATCH_PATTERNS,
        root_selectors: tuple[str, ...] = CONTENT_ROOT_SELECTORS,
        delay_ms: float = MUTATION_DELAY_MS,
        log: Callable[[str], None] | None = None,
    ) -> None:
        self._document = document
        self._timers = timers
        self._on_candidates = on_candidates
        self._patterns = tuple(patterns)
        self._root_selectors = tuple(root_selectors)
        self._delay_ms = float(delay_ms)
        self._log = log
        self._disconnect: Callable[[], None] | None = None
        self._pending: list[Any] = []
        self._candidate_seen = False
        self.root: Any = None
        self.triggered = 0

    @property
    def active(self) -> bool:
        return self._disconnect is not None

    def start(self) -> None:
        if self.active:
            return
        self.root = self._resolve_root()
        self._disconnect = self._document.observe(self.root, self._on_batch, self._patterns)
        if self._log:
            self._log(f"mutation watcher attached root={self.root!r}")

    def stop(self) -> None:
        self._timers.cancel(self.TIMER_KEY)
        self._pending = []
        self._candidate_seen = False
        disconnect, self._disconnect = self._disconnect, None
        if disconnect is not None:
            disconnect()

    def _resolve_root(self) -> Any:
        for selector in self._root_selectors:
            try:
                found = self._document.query_first(None, selector)
            except SelectorError:
                continue
            if found is not None:
                return found
        return self._document.document_element

    def _on_batch(self, mutations: list[Any]) -> None:
        if not self.active:
            return
        for mutation in mutations:
            candidate = getattr(mutation, "candidate", None)
            if candidate is None:
                self._pending.extend(getattr(mutation, "added_nodes", ()) or ())
            elif candidate:
                self._candidate_seen = True
        # The window opens on the first batch of a burst; later batches join it.
        if (self._pending or self._candidate_seen) and not self._timers.pending(self.TIMER_KEY):
            self._timers.call_later(self.TIMER_KEY, self._delay_ms, self._flush)

    def _flush(self) -> None:
        nodes, self._pending = self._pending, []
        seen, self._candidate_seen = self._candidate_seen, False
        if not self.active:
            return
        if seen or (nodes and self.contains_candidate(nodes)):
            self.triggered += 1
            if self._log:
                self._log("new candidate content detected, rescanning")
            self._on_candidates()

    def contains_candidate(self, nodes: list[Any]) -> bool:
        for node in nodes:
            if not self._document.is_connected(node):
                continue
            for pattern in self._patterns:
                try:
                    if self._document.matches(node, pattern):
                        return True
                    if self._document.query_first(node, pattern) is not None:
                        return True
                except SelectorError:
                    continue
        return False
