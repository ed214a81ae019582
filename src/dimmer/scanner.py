"""Candidate enumeration and marking pass."""

from __future__ import annotations

from typing import Any, Callable

from dimmer.constants import MATCH_PATTERNS
from dimmer.dom import SelectorError
from dimmer.eligibility import admit
from dimmer.engine_config import EngineConfig
from dimmer.suppression_store import SuppressionStore


class Scanner:
    def __init__(
        self,
        document: Any,
        config: EngineConfig,
        store: SuppressionStore,
        *,
        patterns: tuple[str, ...] = MATCH_PATTERNS,
        admit_fn: Callable[[Any, Any], bool] = admit,
        log: Callable[[str], None] | None = None,
    ) -> None:
        self._document = document
        self._config = config
        self._store = store
        self._patterns = tuple(patterns)
        self._admit = admit_fn
        self._log = log
        self.passes = 0

    @property
    def patterns(self) -> tuple[str, ...]:
        return self._patterns

    def scan(self) -> int:
        """Mark every newly eligible candidate; return how many were marked."""
        if not self._config.enabled:
            return 0
        self.passes += 1
        self._store.prune()
        release = getattr(self._document, "release_detached", None)
        if callable(release):
            release()
        marked = 0
        for element in self._candidates():
            if self._store.is_suppressed(element):
                continue
            if not self._admit(self._document, element):
                continue
            self._store.mark_suppressed(element)
            marked += 1
        if marked and self._log:
            self._log(f"scan marked {marked} new element(s), total={len(self._store)}")
        return marked

    def _candidates(self) -> list[Any]:
        if not self._patterns:
            return []
        try:
            return list(self._document.query_all(", ".join(self._patterns)))
        except SelectorError:
            pass
        # One bad pattern poisons the combined query; fall back to one query each.
        found: list[Any] = []
        seen: set[int] = set()
        for pattern in self._patterns:
            try:
                elements = self._document.query_all(pattern)
            except SelectorError as exc:
                if self._log:
                    self._log(f"pattern skipped {pattern!r}: {exc}")
                continue
            for element in elements:
                if id(element) in seen:
                    continue
                seen.add(id(element))
                found.append(element)
        return found
