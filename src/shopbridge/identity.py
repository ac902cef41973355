"""Logical page identity: a cheap (title, url) fingerprint of the product being viewed."""

from __future__ import annotations

from typing import Any

from shopbridge.models import ControlSnapshot, PageIdentity
from shopbridge.sites import SiteRules, heading_selectors


async def derive_identity(document: Any, site: SiteRules, *, url: str | None = None) -> PageIdentity | None:
    """Read the current identity, or None when no heading exists yet."""
    current_url = url if url is not None else await document.location()
    title = await document.heading_text(heading_selectors(site))
    if title is None:
        return None
    return PageIdentity(title=title.strip(), url=current_url)


def url_base(url: str) -> str:
    return (url or "").split("?", 1)[0]


def snapshot_matches(snapshot: ControlSnapshot, identity: PageIdentity) -> bool:
    """A control is current when its url (query ignored) prefixes the page url and titles are equal."""
    base = url_base(snapshot.url)
    if not base:
        return False
    return identity.url.startswith(base) and snapshot.title == identity.title
