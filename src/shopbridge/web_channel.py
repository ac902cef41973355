"""Click-time backend interaction over a persistent websocket channel."""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any, AsyncIterator, Awaitable, Callable
from urllib.parse import unquote, urlparse

import websockets
from websockets.exceptions import ConnectionClosedError, WebSocketException

from shopbridge.constants import (
    CHANNEL_NAME,
    CONTROL_COLOR_DEFAULT,
    CONTROL_COLOR_ERROR,
    DEFAULT_ERROR_HOLD_SECONDS,
    GENERIC_HEADING_SELECTOR,
    SEARCH_ACTION,
    STATUS_COMPLETE,
    STATUS_ERROR,
    STATUS_PROGRESS,
)
from shopbridge.errors import BackendError, MalformedComplete, NoQueryFound
from shopbridge.models import ChannelMessage, ControlState
from shopbridge.sites import SiteRules, site_for_host
from shopbridge.texts import get_text
from shopbridge.web_common import collapse_ws, noop_log

SESSION_DISCONNECTED = "disconnected"
SESSION_NO_QUERY = "no_query"
SESSION_FAILED = "failed"

_SEPARATORS_RE = re.compile(r"[-_]+")


def query_from_path(url: str, site: SiteRules | None) -> str:
    if site is None or not site.query_from_path:
        return ""
    try:
        path = urlparse(url or "").path
    except ValueError:
        return ""
    parts = path.split("/")
    name = parts[-1] or (parts[-2] if len(parts) >= 2 else "")
    if len(name) < site.min_path_name_length:
        return ""
    if any(name.startswith(prefix) for prefix in site.non_name_prefixes):
        return ""
    return collapse_ws(_SEPARATORS_RE.sub(" ", unquote(name)))


def strip_title_suffix(title: str, site: SiteRules | None) -> str:
    value = title or ""
    if site is not None and site.title_suffix:
        value = value.replace(site.title_suffix, "")
    return collapse_ws(value)


def resolve_query(
    url: str,
    site: SiteRules | None,
    *,
    site_heading: str | None = None,
    generic_heading: str | None = None,
    document_title: str | None = None,
) -> str:
    """First non-empty strategy wins: url path, site heading, generic heading, document title."""
    strategies = (
        lambda: query_from_path(url, site),
        lambda: collapse_ws(site_heading),
        lambda: collapse_ws(generic_heading),
        lambda: strip_title_suffix(document_title or "", site),
    )
    for strategy in strategies:
        query = strategy()
        if query:
            return query
    raise NoQueryFound(f"No product title could be resolved for {url}")


def fold_status(state: ControlState, message: ChannelMessage) -> ControlState:
    if message.status == STATUS_PROGRESS:
        return ControlState(kind="busy", message=message.message)
    if message.status == STATUS_COMPLETE:
        return ControlState()
    if message.status == STATUS_ERROR:
        return ControlState(kind="error", message=message.error)
    return state


def render_state(state: ControlState, lang: str | None = None) -> tuple[str, str]:
    if state.kind == "busy":
        return get_text("busy_prefix", lang) + state.message, CONTROL_COLOR_DEFAULT
    if state.kind == "error":
        return get_text("error_label", lang), CONTROL_COLOR_ERROR
    return get_text("control_label", lang), CONTROL_COLOR_DEFAULT


def complete_payload(data: Any) -> tuple[Any, Any]:
    """Return (results, subject) from a complete payload or raise MalformedComplete."""
    if not isinstance(data, dict):
        raise MalformedComplete(get_text("malformed_response"))
    if "error" in data:
        raise MalformedComplete(str(data.get("error") or get_text("malformed_response")))
    return data.get("results"), data.get("subject")


class WebSocketChannel:
    """One named websocket connection; opened per click and closed exactly once."""

    def __init__(self, ws: Any, name: str, *, log: Callable[[str], None] | None = None) -> None:
        self._ws = ws
        self.name = name
        self.log = log or noop_log
        self.closed = False

    @classmethod
    async def open(
        cls,
        base_url: str,
        name: str = CHANNEL_NAME,
        *,
        log: Callable[[str], None] | None = None,
    ) -> "WebSocketChannel":
        uri = f"{base_url.rstrip('/')}/{name}"
        try:
            ws = await websockets.connect(uri)
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            raise BackendError(f"channel open failed uri={uri}: {exc}") from exc
        return cls(ws, name, log=log)

    async def send(self, payload: dict[str, Any]) -> None:
        try:
            await self._ws.send(json.dumps(payload, ensure_ascii=False))
        except WebSocketException as exc:
            raise BackendError(f"channel send failed: {exc}") from exc

    def __aiter__(self) -> AsyncIterator[ChannelMessage]:
        return self._messages()

    async def _messages(self) -> AsyncIterator[ChannelMessage]:
        try:
            async for raw in self._ws:
                try:
                    payload = json.loads(raw)
                except (TypeError, ValueError):
                    self.log(f"channel frame skipped reason=invalid_json name={self.name}")
                    continue
                if not isinstance(payload, dict):
                    self.log(f"channel frame skipped reason=not_object name={self.name}")
                    continue
                try:
                    yield ChannelMessage.from_dict(payload)
                except ValueError as exc:
                    self.log(f"channel frame skipped reason={exc} name={self.name}")
        except ConnectionClosedError as exc:
            raise BackendError(f"channel closed abnormally: {exc}") from exc

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self._ws.close()


class ControlView:
    """Projects a ControlState onto the one control element a session was started from."""

    def __init__(self, document: Any, control_id: str, *, lang: str | None = None) -> None:
        self.document = document
        self.control_id = control_id
        self.lang = lang
        self.state = ControlState()

    async def apply(self, state: ControlState) -> bool:
        self.state = state
        label, background = render_state(state, self.lang)
        return bool(await self.document.set_control_view(self.control_id, label, background))


class RequestSession:
    def __init__(
        self,
        open_channel: Callable[[str], Awaitable[Any]],
        view: ControlView,
        presenter: Any,
        *,
        error_hold_seconds: float = DEFAULT_ERROR_HOLD_SECONDS,
        log: Callable[[str], None] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.open_channel = open_channel
        self.view = view
        self.presenter = presenter
        self.error_hold_seconds = max(0.0, float(error_hold_seconds))
        self.log = log or noop_log
        self.sleep = sleep
        self.channel: Any | None = None
        self.last_status = ""

    async def run(self, query: str) -> str:
        try:
            self.channel = await self.open_channel(CHANNEL_NAME)
        except BackendError as exc:
            await self._backend_error(str(exc))
            return STATUS_ERROR
        try:
            await self.channel.send({"action": SEARCH_ACTION, "query": query})
            self.log(f"channel opened name={CHANNEL_NAME} query={query!r}")
            async for message in self.channel:
                self.last_status = message.status
                state = fold_status(self.view.state, message)
                if message.status == STATUS_PROGRESS:
                    await self.view.apply(state)
                    continue
                if message.status == STATUS_COMPLETE:
                    await self.view.apply(state)
                    await self._complete(message.data)
                    return STATUS_COMPLETE
                if message.status == STATUS_ERROR:
                    await self._backend_error(message.error)
                    return STATUS_ERROR
            self.log(f"channel ended without terminal status last={self.last_status or 'none'}")
            await self.view.apply(ControlState())
            return SESSION_DISCONNECTED
        except BackendError as exc:
            await self._backend_error(str(exc))
            return STATUS_ERROR
        finally:
            await self._close()

    async def _close(self) -> None:
        channel, self.channel = self.channel, None
        if channel is not None:
            await channel.close()

    async def _complete(self, data: Any) -> None:
        try:
            results, subject = complete_payload(data)
        except MalformedComplete as exc:
            self.log(f"complete payload rejected detail={exc}")
            await self.presenter.alert(str(exc))
            return
        await self.presenter.show_results(results, subject)

    async def _restore_after_hold(self) -> None:
        await self.sleep(self.error_hold_seconds)
        await self.view.apply(ControlState())

    async def _backend_error(self, detail: str) -> None:
        self.log(f"backend error detail={detail}")
        await self.view.apply(ControlState(kind="error", message=detail))
        # The hold runs from the moment the error label is shown, not after close.
        restore = asyncio.ensure_future(self._restore_after_hold())
        try:
            await self.presenter.show_error(detail)
            await self._close()
            await restore
        finally:
            if not restore.done():
                restore.cancel()


class ChannelClient:
    """Starts one cancellable request session per control click."""

    def __init__(
        self,
        document: Any,
        presenter: Any,
        *,
        open_channel: Callable[[str], Awaitable[Any]],
        error_hold_seconds: float = DEFAULT_ERROR_HOLD_SECONDS,
        lang: str | None = None,
        log: Callable[[str], None] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.document = document
        self.presenter = presenter
        self.open_channel = open_channel
        self.error_hold_seconds = error_hold_seconds
        self.lang = lang
        self.log = log or noop_log
        self.sleep = sleep
        self._tasks: set[asyncio.Task[str]] = set()

    def on_click(self, control_id: str = "") -> asyncio.Task[str]:
        task = asyncio.get_running_loop().create_task(self._run_click(str(control_id or "")))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_click(self, control_id: str) -> str:
        try:
            return await self.handle_click(control_id)
        except Exception as exc:  # noqa: BLE001
            self.log(f"click handling failed control={control_id} error={exc}")
            return SESSION_FAILED

    async def resolve(self) -> str:
        url = await self.document.location()
        try:
            hostname = urlparse(url).hostname or ""
        except ValueError:
            hostname = ""
        site = site_for_host(hostname)
        site_heading = None
        if site is not None and site.heading_selectors:
            site_heading = await self.document.heading_text(site.heading_selectors)
        generic_heading = await self.document.heading_text((GENERIC_HEADING_SELECTOR,))
        title = await self.document.document_title()
        return resolve_query(
            url,
            site,
            site_heading=site_heading,
            generic_heading=generic_heading,
            document_title=title,
        )

    async def handle_click(self, control_id: str) -> str:
        try:
            query = await self.resolve()
        except NoQueryFound as exc:
            self.log(f"click aborted reason=no_query detail={exc}")
            await self.presenter.alert(get_text("no_title_alert", self.lang))
            return SESSION_NO_QUERY
        session = RequestSession(
            self.open_channel,
            ControlView(self.document, control_id, lang=self.lang),
            self.presenter,
            error_hold_seconds=self.error_hold_seconds,
            log=self.log,
            sleep=self.sleep,
        )
        return await session.run(query)

    async def cancel_all(self) -> None:
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
