"""Reconciliation pass keeping exactly one identity-consistent control on the page."""

from __future__ import annotations

from typing import Any, Callable

from shopbridge.constants import (
    CONTROL_COLOR_DEFAULT,
    OUTCOME_ALREADY_PROCESSED,
    OUTCOME_CREATED,
    OUTCOME_FAILED,
    OUTCOME_NO_ANCHOR,
    OUTCOME_NO_TITLE,
    OUTCOME_NOOP,
    OUTCOME_RACED,
    OUTCOME_ROUTE_NOT_ELIGIBLE,
)
from shopbridge.identity import derive_identity, snapshot_matches
from shopbridge.models import ControlSnapshot
from shopbridge.sites import match_site
from shopbridge.texts import get_text
from shopbridge.web_common import noop_log
from shopbridge.web_locator import choose_placement, locate_target


class InjectionController:
    """Idempotent reconcile pass; safe to run from any trigger, any number of times.

    No state is carried between passes: the control's identity snapshot lives on the
    control element itself and the processed marker on its anchor, and both are
    re-read from the document on every pass.
    """

    def __init__(
        self,
        document: Any,
        *,
        lang: str | None = None,
        log: Callable[[str], None] | None = None,
    ) -> None:
        self.document = document
        self.lang = lang
        self.log = log or noop_log

    async def invalidate(self) -> None:
        removed = await self.document.remove_controls()
        cleared = await self.document.clear_markers()
        if removed or cleared:
            self.log(f"invalidate removed={removed} markers_cleared={cleared}")

    async def reconcile(self) -> str:
        url = await self.document.location()
        site = match_site(url)
        if site is None:
            return OUTCOME_ROUTE_NOT_ELIGIBLE

        identity = await derive_identity(self.document, site, url=url)
        if identity is None:
            return OUTCOME_NO_TITLE

        existing = await self.document.controls()
        if len(existing) == 1 and snapshot_matches(existing[0], identity):
            return OUTCOME_NOOP
        if existing:
            self.log(
                f"stale control removed count={len(existing)} "
                f"title={existing[0].title!r} url={existing[0].url}"
            )
            await self.invalidate()

        target = await locate_target(self.document, site)
        if target is None:
            return OUTCOME_NO_ANCHOR

        if target.processed:
            current = await self.document.controls()
            if current and current[0].title == identity.title:
                return OUTCOME_ALREADY_PROCESSED
            await self.document.clear_markers(target.ref)

        # Bind to the identity as it reads right now; the page may have moved on
        # while the locator was scanning.
        fresh = await derive_identity(self.document, site)
        if fresh is None:
            return OUTCOME_NO_TITLE
        snapshot = ControlSnapshot(control_id="", title=fresh.title, url=fresh.url)
        placement = choose_placement(target, site)
        ok, reason, control_id = await self.document.attach_control(
            target.ref,
            placement,
            snapshot,
            label=get_text("control_label", self.lang),
            background=CONTROL_COLOR_DEFAULT,
        )
        if ok:
            self.log(
                f"control created id={control_id} site={site.name} anchor={target.tag} "
                f"placement={placement} title={fresh.title!r}"
            )
            return OUTCOME_CREATED
        # "stale_ref": an overlapping pass rescanned and dropped this pass's refs.
        if reason in ("exists", "stale_ref"):
            return OUTCOME_RACED
        self.log(f"attach skipped reason={reason}")
        return OUTCOME_NO_ANCHOR

    async def reconcile_safely(self, trigger: str = "") -> str:
        try:
            return await self.reconcile()
        except Exception as exc:  # noqa: BLE001
            self.log(f"reconcile failed trigger={trigger or 'unknown'} error={exc}")
            return OUTCOME_FAILED
