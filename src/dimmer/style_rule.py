"""Suppression style rule: generation and idempotent installation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from dimmer.constants import (
    AUTOHIDE_CLASS,
    HOST_HIDDEN_ATTRIBUTES,
    HOST_HIDDEN_CLASSES,
    MARKER_ATTRIBUTE,
    MARKER_VALUE,
    PROTECTED_ZONE_SELECTORS,
    STYLE_ELEMENT_ID,
)
from dimmer.engine_config import EngineConfig, format_opacity


PROTECTED_ZONE_SELECTOR = ", ".join(PROTECTED_ZONE_SELECTORS)
AUTOHIDE_SELECTOR = f".{AUTOHIDE_CLASS}"

# Inline styles the host uses to hide overlays itself.
_HIDDEN_INLINE_PATTERNS = (
    '[style*="display: none"]',
    '[style*="display:none"]',
    '[style*="visibility: hidden"]',
    '[style*="visibility:hidden"]',
)


def _visible_exclusions() -> tuple[str, ...]:
    out = list(_HIDDEN_INLINE_PATTERNS)
    out.extend(f".{name}" for name in HOST_HIDDEN_CLASSES if name != AUTOHIDE_CLASS)
    out.extend(f'[{name}="{value}"]' for name, value in HOST_HIDDEN_ATTRIBUTES)
    out.extend((AUTOHIDE_SELECTOR, f"{AUTOHIDE_SELECTOR} *"))
    for zone in PROTECTED_ZONE_SELECTORS:
        out.extend((zone, f"{zone} *"))
    return tuple(out)


@dataclass(frozen=True)
class SuppressionRule:
    """One declarative rule parameterised by the suppression intensity.

    Priority, highest first: marked elements inside a protected zone stay fully
    opaque; marked elements under host auto-hide are transparent and inert;
    visible marked elements get ``intensity``; hovered ones get full opacity
    (only when ``hover_restore`` is on).
    """

    intensity: float
    hover_restore: bool = True
    marker_attribute: str = MARKER_ATTRIBUTE

    @property
    def marker_selector(self) -> str:
        return f'[{self.marker_attribute}="{MARKER_VALUE}"]'

    @property
    def css_text(self) -> str:
        marked = self.marker_selector
        visible = marked + "".join(f":not({item})" for item in _visible_exclusions())
        blocks = [
            f"{marked} {{\n  transition: opacity 0.3s ease !important;\n}}",
            f"{visible} {{\n  opacity: {format_opacity(self.intensity)} !important;\n}}",
        ]
        if self.hover_restore:
            blocks.append(f"{visible}:hover {{\n  opacity: 1 !important;\n}}")
        blocks.append(
            f"{AUTOHIDE_SELECTOR} {marked},\n{marked}{AUTOHIDE_SELECTOR} {{\n"
            "  opacity: 0 !important;\n  pointer-events: none !important;\n}"
        )
        protected = ",\n".join(
            f"{zone} {marked},\n{zone}{marked}" for zone in PROTECTED_ZONE_SELECTORS
        )
        blocks.append(f"{protected} {{\n  opacity: 1 !important;\n}}")
        return "\n\n".join(blocks) + "\n"

    def declarations_for(self, document: Any, element: Any) -> dict[str, str] | None:
        if document.get_attribute(element, self.marker_attribute) != MARKER_VALUE:
            return None
        if document.closest(element, PROTECTED_ZONE_SELECTOR) is not None:
            return {"opacity": "1"}
        if document.closest(element, AUTOHIDE_SELECTOR) is not None:
            return {"opacity": "0", "pointer-events": "none"}
        if _hidden_by_host(document, element):
            return None
        if self.hover_restore and document.is_hovered(element):
            return {"opacity": "1"}
        return {"opacity": format_opacity(self.intensity)}


def _hidden_by_host(document: Any, element: Any) -> bool:
    display = document.get_inline_style(element, "display")
    if display and display[0].strip().lower() == "none":
        return True
    visibility = document.get_inline_style(element, "visibility")
    if visibility and visibility[0].strip().lower() == "hidden":
        return True
    if any(document.has_class(element, name) for name in HOST_HIDDEN_CLASSES):
        return True
    return any(document.get_attribute(element, name) == value for name, value in HOST_HIDDEN_ATTRIBUTES)


class StyleRuleInstaller:
    def __init__(
        self,
        document: Any,
        config: EngineConfig,
        *,
        hover_restore: bool = True,
        style_id: str = STYLE_ELEMENT_ID,
        log: Callable[[str], None] | None = None,
    ) -> None:
        self._document = document
        self._config = config
        self._hover_restore = hover_restore
        self._style_id = style_id
        self._log = log
        self._installed: SuppressionRule | None = None

    @property
    def installed(self) -> SuppressionRule | None:
        return self._installed

    def current_rule(self) -> SuppressionRule:
        return SuppressionRule(intensity=self._config.intensity, hover_restore=self._hover_restore)

    def install(self, *, force: bool = False) -> bool:
        rule = self.current_rule()
        if not force and rule == self._installed:
            return False
        self._document.install_style(self._style_id, rule)
        self._installed = rule
        if self._log:
            self._log(f"style rule installed opacity={format_opacity(rule.intensity)}")
        return True

    def uninstall(self) -> bool:
        was_installed = self._installed is not None
        self._document.remove_style(self._style_id)
        self._installed = None
        if was_installed and self._log:
            self._log("style rule removed")
        return was_installed

    def invalidate(self) -> None:
        self._installed = None
