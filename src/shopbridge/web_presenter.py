"""Minimal in-page modal surfaces for results, errors, and alerts."""

from __future__ import annotations

import json
from typing import Any

from shopbridge.constants import CONTROL_COLOR_DEFAULT, CONTROL_COLOR_ERROR
from shopbridge.texts import current_lang, get_text
from shopbridge.web_document import OWN_UI_ATTR

_MODAL_JS = """
([attr, payload]) => {
  const existing = document.querySelector('[' + attr + '="modal"]');
  if (existing) existing.remove();
  const wrap = document.createElement('div');
  wrap.setAttribute(attr, 'modal');
  wrap.style.position = 'fixed';
  wrap.style.inset = '0';
  wrap.style.background = 'rgba(0,0,0,0.45)';
  wrap.style.zIndex = '2147483646';
  wrap.style.display = 'flex';
  wrap.style.alignItems = 'center';
  wrap.style.justifyContent = 'center';
  const box = document.createElement('div');
  box.style.background = '#fff';
  box.style.color = '#111';
  box.style.borderRadius = '10px';
  box.style.padding = '16px 20px';
  box.style.maxWidth = '640px';
  box.style.maxHeight = '80vh';
  box.style.overflowY = 'auto';
  box.style.font = '14px/1.6 sans-serif';
  box.style.direction = payload.rtl ? 'rtl' : 'ltr';
  box.style.borderTop = '4px solid ' + payload.accent;
  const title = document.createElement('div');
  title.textContent = payload.title;
  title.style.fontWeight = 'bold';
  title.style.marginBottom = '8px';
  box.appendChild(title);
  for (const line of payload.lines) {
    const row = document.createElement('div');
    row.textContent = line;
    row.style.padding = '6px 0';
    row.style.borderBottom = '1px solid #eee';
    box.appendChild(row);
  }
  const close = document.createElement('button');
  close.textContent = payload.close;
  close.style.marginTop = '12px';
  close.addEventListener('click', () => wrap.remove());
  box.appendChild(close);
  wrap.appendChild(box);
  wrap.addEventListener('click', (e) => { if (e.target === wrap) wrap.remove(); });
  document.documentElement.appendChild(wrap);
  return true;
}
"""


def result_lines(results: Any) -> list[str]:
    if results is None:
        return []
    if isinstance(results, (str, bytes)) or not isinstance(results, (list, tuple)):
        results = [results]
    lines: list[str] = []
    for item in results:
        if isinstance(item, dict):
            text = item.get("text") or item.get("comment") or item.get("body") or item.get("title")
            lines.append(str(text) if text else json.dumps(item, ensure_ascii=False))
        else:
            lines.append(str(item))
    return [line for line in lines if line.strip()]


def subject_title(subject: Any, fallback: str) -> str:
    if isinstance(subject, dict):
        value = subject.get("title") or subject.get("name")
        if value:
            return str(value)
    elif subject:
        return str(subject)
    return fallback


class PagePresenter:
    """Default presentation collaborator; any object with these coroutines may replace it."""

    def __init__(self, page: Any, *, lang: str | None = None) -> None:
        self.page = page
        self.lang = lang

    def _page_is_closed(self) -> bool:
        checker = getattr(self.page, "is_closed", None)
        if callable(checker):
            try:
                return bool(checker())
            except Exception:  # noqa: BLE001
                return True
        return False

    async def _modal(self, title: str, lines: list[str], accent: str) -> None:
        if self._page_is_closed():
            return
        payload = {
            "title": title,
            "lines": lines,
            "accent": accent,
            "close": get_text("close", self.lang),
            "rtl": (self.lang or current_lang()) == "fa",
        }
        await self.page.evaluate(_MODAL_JS, [OWN_UI_ATTR, payload])

    async def show_results(self, results: Any, subject: Any) -> None:
        lines = result_lines(results) or [get_text("empty_results", self.lang)]
        title = subject_title(subject, get_text("results_title", self.lang))
        await self._modal(title, lines, CONTROL_COLOR_DEFAULT)

    async def show_error(self, detail: str) -> None:
        await self._modal(get_text("error_title", self.lang), [str(detail or "")], CONTROL_COLOR_ERROR)

    async def alert(self, message: str) -> None:
        await self._modal(get_text("error_title", self.lang), [str(message or "")], "#f59e0b")
