"""Engine controller: owns enabled/intensity state and wires the components."""

from __future__ import annotations

from typing import Any, Callable

from dimmer.constants import CONTENT_ROOT_SELECTORS, MATCH_PATTERNS
from dimmer.engine_config import EngineConfig, EngineSettings, clamp_intensity, format_opacity
from dimmer.hover_restorer import HoverRestorer
from dimmer.mutation_watcher import MutationWatcher
from dimmer.scanner import Scanner
from dimmer.scheduler import AdaptiveScheduler
from dimmer.style_rule import StyleRuleInstaller
from dimmer.suppression_store import SuppressionStore
from dimmer.timers import TimerQueue


SETTLE_TIMER_KEY = "settle"
INITIAL_TIMER_KEY = "initial"


class EngineController:
    def __init__(
        self,
        document: Any,
        config: EngineConfig,
        *,
        timers: TimerQueue,
        settings: EngineSettings | None = None,
        patterns: tuple[str, ...] = MATCH_PATTERNS,
        root_selectors: tuple[str, ...] = CONTENT_ROOT_SELECTORS,
        persist: Callable[[EngineConfig], Any] | None = None,
        log: Callable[[str], None] | None = None,
    ) -> None:
        self.document = document
        self.config = config
        self.settings = settings or EngineSettings()
        self.timers = timers
        self._persist = persist
        self._log = log
        hover_by_rule = self.settings.hover_mode != "override"
        self.store = SuppressionStore(document, log=log)
        self.styles = StyleRuleInstaller(document, config, hover_restore=hover_by_rule, log=log)
        self.scanner = Scanner(document, config, self.store, patterns=patterns, log=log)
        self.scheduler = AdaptiveScheduler(
            timers,
            self.rescan_now,
            min_delay_ms=self.settings.min_delay_ms,
            max_delay_ms=self.settings.max_delay_ms,
            growth_factor=self.settings.growth_factor,
            empty_rounds_before_backoff=self.settings.empty_rounds_before_backoff,
            log=log,
        )
        self.watcher = MutationWatcher(
            document,
            timers,
            self._on_new_content,
            patterns=patterns,
            root_selectors=root_selectors,
            delay_ms=self.settings.mutation_delay_ms,
            log=log,
        )
        self.hover = None if hover_by_rule else HoverRestorer(document, self.store, log=log)

    @property
    def enabled(self) -> bool:
        return bool(self.config.enabled)

    @property
    def intensity(self) -> float:
        return float(self.config.intensity)

    def status(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "opacity": self.intensity}

    def start(self) -> None:
        """Bring the page in line with the loaded config (engine startup)."""
        if not self.config.enabled:
            self._deactivate()
            return
        self._activate()
        self.timers.call_later(INITIAL_TIMER_KEY, self.settings.initial_delay_ms, self.rescan_now)

    def enable(self) -> None:
        changed = not self.config.enabled
        self.config.enabled = True
        self._activate()
        if changed:
            self._save()

    def disable(self) -> None:
        changed = bool(self.config.enabled)
        self.config.enabled = False
        self._deactivate()
        if changed:
            self._save()

    def set_intensity(self, value: Any) -> float:
        intensity = clamp_intensity(value)
        changed = intensity != self.config.intensity
        self.config.intensity = intensity
        if self.config.enabled:
            self.styles.install()
        if changed:
            self._emit(f"intensity set to {format_opacity(intensity)}")
            self._save()
        return intensity

    def force_rescan(self) -> None:
        if not self.config.enabled:
            return
        self.store.unmark_all()
        if self.hover is not None:
            self.hover.detach()
        self.scheduler.reset()
        self.timers.call_later(SETTLE_TIMER_KEY, self.settings.settle_delay_ms, self.rescan_now)

    def rescan_now(self) -> int:
        found = self.scanner.scan()
        if self.hover is not None and self.config.enabled:
            self.hover.sync()
        return found

    def reattach(self) -> None:
        """Rebind to a freshly loaded document after a full navigation."""
        self.store.forget_all()
        self.styles.invalidate()
        self.watcher.stop()
        if self.hover is not None:
            self.hover.detach()
        if not self.config.enabled:
            return
        self._emit("document reloaded, re-attaching")
        self.styles.install(force=True)
        self.watcher.start()
        self.scheduler.reset()
        self.rescan_now()

    def shutdown(self) -> None:
        """Undo every page-side effect without touching persisted settings."""
        self._deactivate()

    def _activate(self) -> None:
        self.styles.install()
        if not self.scheduler.running:
            self.scheduler.start()
            self._emit("engine enabled")
        self.watcher.start()
        self.rescan_now()

    def _deactivate(self) -> None:
        self.scheduler.stop()
        self.watcher.stop()
        self.timers.cancel(SETTLE_TIMER_KEY)
        self.timers.cancel(INITIAL_TIMER_KEY)
        restored = self.store.unmark_all()
        self.styles.uninstall()
        if self.hover is not None:
            self.hover.detach()
        self._emit(f"engine disabled, restored {restored} element(s)")

    def _on_new_content(self) -> None:
        self.rescan_now()
        self.scheduler.reset()

    def _save(self) -> None:
        if self._persist is not None:
            self._persist(self.config)

    def _emit(self, message: str) -> None:
        if self._log:
            self._log(message)
