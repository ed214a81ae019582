"""Shared helpers for the browser-facing runtime."""

from __future__ import annotations

import importlib.util
from typing import Any
from urllib.parse import urlparse

from dimmer.constants import ALLOWED_HOST_SUFFIXES


def is_valid_url(text: str) -> bool:
    try:
        parsed = urlparse(text)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def host_allowed(url: str, suffixes: tuple[str, ...] = ALLOWED_HOST_SUFFIXES) -> bool:
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return False
    if not host:
        return False
    return any(host == suffix or host.endswith("." + suffix) for suffix in suffixes)


def playwright_available() -> bool:
    return importlib.util.find_spec("playwright.sync_api") is not None


def page_is_closed(page: Any | None) -> bool:
    if page is None:
        return True
    checker = getattr(page, "is_closed", None)
    if callable(checker):
        try:
            return bool(checker())
        except Exception:
            return True
    return False


def safe_page_url(page: Any) -> str:
    try:
        return str(getattr(page, "url", "") or "")
    except Exception:
        return ""
