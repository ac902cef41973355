"""Shared helpers for web augmentation modules."""

from __future__ import annotations

import importlib.util
from urllib.parse import urlparse


def collapse_ws(value: object) -> str:
    return " ".join(str(value or "").split())


def noop_log(_message: str) -> None:
    return


def is_valid_url(text: str) -> bool:
    try:
        parsed = urlparse(text)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def playwright_available() -> bool:
    return importlib.util.find_spec("playwright.async_api") is not None
