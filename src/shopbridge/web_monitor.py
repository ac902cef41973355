"""Page identity monitor: decides when the reconciliation pass should run."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from shopbridge.constants import DEFAULT_POLL_SECONDS, DEFAULT_RETRY_DELAYS
from shopbridge.identity import derive_identity
from shopbridge.models import PageIdentity
from shopbridge.sites import match_site
from shopbridge.web_common import noop_log
from shopbridge.web_injection import InjectionController


class PageMonitor:
    """Timer, mutation, and post-change retry triggers feeding one reconcile pass.

    Triggers are neither ordered nor coalesced; overlapping passes are absorbed by the
    controller's idempotence.
    """

    def __init__(
        self,
        document: Any,
        controller: InjectionController,
        *,
        poll_seconds: float = DEFAULT_POLL_SECONDS,
        retry_delays: tuple[float, ...] = DEFAULT_RETRY_DELAYS,
        log: Callable[[str], None] | None = None,
    ) -> None:
        self.document = document
        self.controller = controller
        self.poll_seconds = max(0.01, float(poll_seconds))
        self.retry_delays = tuple(retry_delays)
        self.log = log or noop_log
        self.last_fingerprint = ""
        self._tasks: set[asyncio.Task[str]] = set()
        self._timers: set[asyncio.TimerHandle] = set()
        self._stopped = False

    def trigger(self, reason: str) -> asyncio.Task[str] | None:
        if self._stopped:
            return None
        task = asyncio.get_running_loop().create_task(self.controller.reconcile_safely(reason))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def on_mutation(self, added: int = 1) -> None:
        if int(added or 0) <= 0:
            return
        self.trigger("mutation")

    def schedule_retries(self) -> None:
        loop = asyncio.get_running_loop()
        now = loop.time()
        self._timers = {h for h in self._timers if not h.cancelled() and h.when() > now}
        for delay in self.retry_delays:
            self._timers.add(loop.call_later(max(0.0, float(delay)), self.trigger, "retry"))

    async def tick(self) -> None:
        url = await self.document.location()
        site = match_site(url)
        if site is None:
            return
        identity = await derive_identity(self.document, site, url=url)
        fingerprint = (identity or PageIdentity(title="", url=url)).fingerprint

        if fingerprint != self.last_fingerprint:
            previous = self.last_fingerprint
            self.last_fingerprint = fingerprint
            self.log(f"identity changed from={previous!r} to={fingerprint!r}")
            await self.controller.invalidate()
            self.schedule_retries()
            return

        if not await self.document.control_exists():
            self.trigger("heal")

    async def run(self) -> None:
        while not self._stopped:
            try:
                await self.tick()
            except Exception as exc:  # noqa: BLE001
                self.log(f"poll failed error={exc}")
            await asyncio.sleep(self.poll_seconds)

    async def stop(self) -> None:
        self._stopped = True
        for handle in list(self._timers):
            handle.cancel()
        self._timers.clear()
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
