"""Wires the monitor, controller, and channel client onto one Playwright page."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from shopbridge.config import AugmentConfig
from shopbridge.web_channel import ChannelClient, WebSocketChannel
from shopbridge.web_common import noop_log
from shopbridge.web_document import CLICK_BINDING, MUTATION_BINDING, PageDocument
from shopbridge.web_injection import InjectionController
from shopbridge.web_monitor import PageMonitor
from shopbridge.web_presenter import PagePresenter


class ShopAugmenter:
    def __init__(
        self,
        page: Any,
        config: AugmentConfig,
        *,
        presenter: Any | None = None,
        open_channel: Callable[[str], Awaitable[Any]] | None = None,
        log: Callable[[str], None] | None = None,
    ) -> None:
        self.page = page
        self.config = config
        self.log = log or noop_log
        self.document = PageDocument(page)
        self.presenter = presenter or PagePresenter(page, lang=config.lang)
        self.controller = InjectionController(self.document, lang=config.lang, log=self.log)
        self.monitor = PageMonitor(
            self.document,
            self.controller,
            poll_seconds=config.poll_seconds,
            retry_delays=config.retry_delays,
            log=self.log,
        )
        self.channels = ChannelClient(
            self.document,
            self.presenter,
            open_channel=open_channel or self._open_websocket,
            error_hold_seconds=config.error_hold_seconds,
            lang=config.lang,
            log=self.log,
        )
        self._monitor_task: asyncio.Task[None] | None = None

    async def _open_websocket(self, name: str) -> WebSocketChannel:
        return await WebSocketChannel.open(self.config.backend_url, name, log=self.log)

    def _on_mutation(self, added: Any = 1) -> None:
        try:
            count = int(added or 0)
        except (TypeError, ValueError):
            count = 1
        self.monitor.on_mutation(count)

    def _on_click(self, control_id: Any = "") -> None:
        self.log(f"control clicked id={control_id}")
        self.channels.on_click(str(control_id or ""))

    def _on_load(self, *_args: Any) -> None:
        self.monitor.trigger("load")

    async def start(self) -> None:
        await self.page.expose_function(MUTATION_BINDING, self._on_mutation)
        await self.page.expose_function(CLICK_BINDING, self._on_click)
        await self.document.install()
        self.page.on("domcontentloaded", self._on_load)
        self.log(f"augmenter started url={self.page.url}")
        await self.controller.reconcile_safely("initial")
        self._monitor_task = asyncio.get_running_loop().create_task(self.monitor.run())

    async def wait_closed(self) -> None:
        closed = asyncio.Event()
        self.page.on("close", lambda *_args: closed.set())
        if self.page.is_closed():
            closed.set()
        await closed.wait()

    async def stop(self) -> None:
        await self.monitor.stop()
        await self.channels.cancel_all()
        if self._monitor_task is not None:
            self._monitor_task.cancel()
            await asyncio.gather(self._monitor_task, return_exceptions=True)
            self._monitor_task = None
        self.log("augmenter stopped")

    async def run(self) -> None:
        await self.start()
        try:
            await self.wait_closed()
        finally:
            await self.stop()
