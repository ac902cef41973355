"""Localized user-facing strings."""

from __future__ import annotations

import os

DEFAULT_LANG = "fa"

_TEXTS: dict[str, dict[str, str]] = {
    "fa": {
        "control_label": "مشاهده نظرات دیجی‌کالا",
        "busy_prefix": "⏳ ",
        "error_label": "❌ یافت نشد",
        "no_title_alert": "خطا: عنوان محصول در صفحه پیدا نشد. لطفاً صفحه را رفرش کنید.",
        "malformed_response": "Error receiving data",
        "results_title": "نظرات کاربران",
        "error_title": "خطا",
        "close": "بستن",
        "empty_results": "نظری یافت نشد.",
    },
    "en": {
        "control_label": "Show Digikala reviews",
        "busy_prefix": "⏳ ",
        "error_label": "❌ Not found",
        "no_title_alert": "Error: product title not found on the page. Please refresh.",
        "malformed_response": "Error receiving data",
        "results_title": "Reviews",
        "error_title": "Error",
        "close": "Close",
        "empty_results": "No reviews found.",
    },
}


def current_lang() -> str:
    raw = str(os.getenv("SHOPBRIDGE_LANG", DEFAULT_LANG)).strip().lower()
    return raw if raw in _TEXTS else DEFAULT_LANG


def get_text(key: str, lang: str | None = None) -> str:
    table = _TEXTS.get(lang or current_lang(), _TEXTS[DEFAULT_LANG])
    return table.get(key, _TEXTS[DEFAULT_LANG].get(key, key))
