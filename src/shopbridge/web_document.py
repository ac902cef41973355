"""Playwright-backed access to the host page's document."""

from __future__ import annotations

import json
from typing import Any

from shopbridge.constants import (
    CONTROL_CLASS,
    CONTROL_ID_ATTR,
    CONTROL_TITLE_ATTR,
    CONTROL_URL_ATTR,
    LANDMARK_TAGS,
    PROCESSED_MARKER_ATTR,
)
from shopbridge.models import Candidate, ControlSnapshot

MUTATION_BINDING = "__shopbridgeOnMutation"
CLICK_BINDING = "__shopbridgeOnControlClick"
OWN_UI_ATTR = "data-shopbridge-ui"

_HELPER_TEMPLATE = """
(() => {
  if (window !== window.top || window.__shopbridge) return;
  const CONTROL_CLASS = __CONTROL_CLASS__;
  const MARKER = __MARKER__;
  const TITLE_ATTR = __TITLE_ATTR__;
  const URL_ATTR = __URL_ATTR__;
  const ID_ATTR = __ID_ATTR__;
  const OWN_UI_ATTR = __OWN_UI_ATTR__;
  const LANDMARKS = __LANDMARKS__;
  const MUTATION_BINDING = __MUTATION_BINDING__;
  const CLICK_BINDING = __CLICK_BINDING__;
  const refs = new Map();
  let nextRef = 1;

  const textOf = (el) => String(el.innerText || el.textContent || '').trim();
  const classOf = (el) => {
    if (!el || typeof el.getAttribute !== 'function') return '';
    return String(el.getAttribute('class') || '');
  };
  const allControls = () => Array.from(document.querySelectorAll('.' + CONTROL_CLASS));

  const describe = (el, ref) => {
    const rect = el.getBoundingClientRect();
    const style = window.getComputedStyle(el);
    const parent = el.parentElement;
    const parentStyle = parent ? window.getComputedStyle(parent) : null;
    return {
      ref,
      tag: String(el.tagName || '').toLowerCase(),
      text: textOf(el),
      width: el.offsetWidth || rect.width || 0,
      height: el.offsetHeight || rect.height || 0,
      display: String(style.display || ''),
      visibility: String(style.visibility || ''),
      opacity: String(style.opacity),
      in_landmark: LANDMARKS.some((tag) => !!el.closest(tag)),
      processed: el.hasAttribute(MARKER),
      class_name: classOf(el),
      parent_class: classOf(parent),
      parent_display: parentStyle ? String(parentStyle.display || '') : '',
      parent_flex_direction: parentStyle ? String(parentStyle.flexDirection || '') : '',
      has_grandparent: !!(parent && parent.parentNode),
    };
  };

  const scan = (selector, fresh) => {
    if (fresh) refs.clear();
    let nodes = [];
    try {
      nodes = Array.from(document.querySelectorAll(selector));
    } catch (_e) {
      return [];
    }
    const out = [];
    for (const el of nodes) {
      if (el.closest('.' + CONTROL_CLASS) || el.closest('[' + OWN_UI_ATTR + ']')) continue;
      const ref = nextRef++;
      refs.set(ref, el);
      out.push(describe(el, ref));
    }
    return out;
  };

  const headingText = (selectors) => {
    for (const sel of selectors) {
      let el = null;
      try {
        el = document.querySelector(sel);
      } catch (_e) {
        el = null;
      }
      if (el) return textOf(el);
    }
    return null;
  };

  const controls = () => allControls().map((el) => ({
    control_id: String(el.getAttribute(ID_ATTR) || ''),
    title: String(el.getAttribute(TITLE_ATTR) || ''),
    url: String(el.getAttribute(URL_ATTR) || ''),
  }));

  const removeControls = () => {
    const all = allControls();
    all.forEach((el) => el.remove());
    return all.length;
  };

  const clearMarkers = (ref) => {
    if (ref !== null && ref !== undefined) {
      const el = refs.get(ref);
      if (!el || !el.hasAttribute(MARKER)) return 0;
      el.removeAttribute(MARKER);
      return 1;
    }
    const all = Array.from(document.querySelectorAll('[' + MARKER + ']'));
    all.forEach((el) => el.removeAttribute(MARKER));
    return all.length;
  };

  const attach = (ref, placement, snapshot, label, background) => {
    const anchor = refs.get(ref);
    if (!anchor) return { ok: false, reason: 'stale_ref', control_id: '' };
    if (!anchor.isConnected) return { ok: false, reason: 'detached', control_id: '' };
    if (document.querySelector('.' + CONTROL_CLASS)) return { ok: false, reason: 'exists', control_id: '' };
    const controlId = 'c' + Date.now().toString(36) + Math.random().toString(36).slice(2, 8);
    const btn = document.createElement('div');
    btn.className = CONTROL_CLASS;
    btn.textContent = label;
    btn.setAttribute(TITLE_ATTR, snapshot.title);
    btn.setAttribute(URL_ATTR, snapshot.url);
    btn.setAttribute(ID_ATTR, controlId);
    Object.assign(btn.style, {
      marginTop: '12px',
      padding: '10px',
      backgroundColor: background,
      color: 'white',
      borderRadius: '8px',
      cursor: 'pointer',
      textAlign: 'center',
      fontWeight: 'bold',
      width: '100%',
      display: 'flex',
      alignItems: 'center',
      justifyContent: 'center',
      boxSizing: 'border-box',
      boxShadow: '0 2px 5px rgba(0,0,0,0.1)',
    });
    btn.addEventListener('click', (e) => {
      e.preventDefault();
      e.stopPropagation();
      const fn = window[CLICK_BINDING];
      if (typeof fn === 'function') Promise.resolve(fn(controlId)).catch(() => {});
    });
    const parent = anchor.parentNode;
    if (placement === 'append_to_parent' && parent) {
      parent.appendChild(btn);
    } else if (placement === 'after_parent' && parent && parent.parentNode) {
      parent.parentNode.insertBefore(btn, parent.nextSibling);
      btn.style.marginTop = '8px';
    } else {
      anchor.insertAdjacentElement('afterend', btn);
    }
    anchor.setAttribute(MARKER, 'true');
    return { ok: true, reason: 'created', control_id: controlId };
  };

  const setView = (controlId, label, background) => {
    const el = allControls().find((c) => c.getAttribute(ID_ATTR) === controlId);
    if (!el) return false;
    el.textContent = label;
    el.style.backgroundColor = background;
    return true;
  };

  const observer = new MutationObserver((mutations) => {
    for (const m of mutations) {
      if (m.type === 'childList' && m.addedNodes.length > 0) {
        const fn = window[MUTATION_BINDING];
        if (typeof fn === 'function') Promise.resolve(fn(m.addedNodes.length)).catch(() => {});
        return;
      }
    }
  });
  observer.observe(document, { childList: true, subtree: true });

  window.__shopbridge = { scan, headingText, controls, removeControls, clearMarkers, attach, setView };
})()
"""

_HELPER_VALUES = {
    "__CONTROL_CLASS__": CONTROL_CLASS,
    "__MARKER__": PROCESSED_MARKER_ATTR,
    "__TITLE_ATTR__": CONTROL_TITLE_ATTR,
    "__URL_ATTR__": CONTROL_URL_ATTR,
    "__ID_ATTR__": CONTROL_ID_ATTR,
    "__OWN_UI_ATTR__": OWN_UI_ATTR,
    "__LANDMARKS__": list(LANDMARK_TAGS),
    "__MUTATION_BINDING__": MUTATION_BINDING,
    "__CLICK_BINDING__": CLICK_BINDING,
}


def _render_helper() -> str:
    script = _HELPER_TEMPLATE
    for token, value in _HELPER_VALUES.items():
        script = script.replace(token, json.dumps(value, ensure_ascii=False))
    return script.strip()


HELPER_JS = _render_helper()

_CALL_JS = """
([name, args]) => {
  const helper = window.__shopbridge;
  if (!helper) return { missing: true, value: null };
  return { missing: false, value: helper[name](...args) };
}
"""


class PageDocument:
    """Document operations the reconciliation loop needs, evaluated in the page's main frame.

    Every call re-reads the live document; nothing is cached between calls except the
    element references handed out by `scan`, which stay valid until the next fresh scan.
    """

    def __init__(self, page: Any) -> None:
        self.page = page

    async def install(self) -> None:
        await self.page.add_init_script(script=HELPER_JS)
        await self.page.evaluate(HELPER_JS)

    async def _helper(self, name: str, *args: Any) -> Any:
        result = await self.page.evaluate(_CALL_JS, [name, list(args)])
        if isinstance(result, dict) and result.get("missing"):
            await self.page.evaluate(HELPER_JS)
            result = await self.page.evaluate(_CALL_JS, [name, list(args)])
        if not isinstance(result, dict):
            return None
        return result.get("value")

    async def location(self) -> str:
        value = await self.page.evaluate("() => window.location.href")
        return str(value or "")

    async def document_title(self) -> str:
        return str(await self.page.title() or "")

    async def heading_text(self, selectors: tuple[str, ...] | list[str]) -> str | None:
        value = await self._helper("headingText", list(selectors))
        if value is None:
            return None
        return str(value)

    async def controls(self) -> list[ControlSnapshot]:
        raw = await self._helper("controls")
        if not isinstance(raw, list):
            return []
        return [ControlSnapshot.from_dict(item) for item in raw if isinstance(item, dict)]

    async def control_exists(self) -> bool:
        return bool(await self.controls())

    async def remove_controls(self) -> int:
        return int(await self._helper("removeControls") or 0)

    async def clear_markers(self, ref: int | None = None) -> int:
        return int(await self._helper("clearMarkers", ref) or 0)

    async def scan(self, selector: str, *, fresh: bool = False) -> list[Candidate]:
        raw = await self._helper("scan", selector, fresh)
        if not isinstance(raw, list):
            return []
        return [Candidate.from_dict(item) for item in raw if isinstance(item, dict)]

    async def attach_control(
        self,
        ref: int,
        placement: str,
        snapshot: ControlSnapshot,
        *,
        label: str,
        background: str,
    ) -> tuple[bool, str, str]:
        raw = await self._helper(
            "attach",
            ref,
            placement,
            {"title": snapshot.title, "url": snapshot.url},
            label,
            background,
        )
        if not isinstance(raw, dict):
            return False, "detached", ""
        return bool(raw.get("ok")), str(raw.get("reason") or ""), str(raw.get("control_id") or "")

    async def set_control_view(self, control_id: str, label: str, background: str) -> bool:
        return bool(await self._helper("setView", control_id, label, background))
