"""Admission policy for candidate elements."""

from __future__ import annotations

from typing import Any

from dimmer.constants import HOST_HIDDEN_ATTRIBUTES, HOST_HIDDEN_CLASSES
from dimmer.style_rule import PROTECTED_ZONE_SELECTOR


def admit(document: Any, element: Any) -> bool:
    # Evaluated on every pass: the host flips these states on its own.
    if document.closest(element, PROTECTED_ZONE_SELECTOR) is not None:
        return False
    if any(document.has_class(element, name) for name in HOST_HIDDEN_CLASSES):
        return False
    if any(document.get_attribute(element, name) == value for name, value in HOST_HIDDEN_ATTRIBUTES):
        return False
    style = document.computed_style(element)
    if str(style.get("display", "")).lower() == "none":
        return False
    if str(style.get("visibility", "")).lower() == "hidden":
        return False
    return True
