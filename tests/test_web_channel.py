import asyncio
import json
import unittest
from unittest.mock import AsyncMock, patch

from fake_document import FakeDocument, FakeElement, torob_product_page
from shopbridge.constants import (
    CHANNEL_NAME,
    CONTROL_COLOR_DEFAULT,
    CONTROL_COLOR_ERROR,
    SEARCH_ACTION,
    STATUS_COMPLETE,
    STATUS_ERROR,
)
from shopbridge.errors import BackendError, MalformedComplete, NoQueryFound
from shopbridge.models import ChannelMessage, ControlState
from shopbridge.sites import site_for_host
from shopbridge.web_channel import (
    SESSION_DISCONNECTED,
    SESSION_NO_QUERY,
    ChannelClient,
    WebSocketChannel,
    complete_payload,
    fold_status,
    query_from_path,
    render_state,
    resolve_query,
)
from shopbridge.web_injection import InjectionController

TOROB = site_for_host("torob.com")
ESAM = site_for_host("esam.ir")


class FakeChannel:
    def __init__(self, messages) -> None:
        self.messages = list(messages)
        self.sent: list[dict] = []
        self.close_calls = 0

    async def send(self, payload: dict) -> None:
        self.sent.append(payload)

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for message in self.messages:
            await asyncio.sleep(0)
            if isinstance(message, Exception):
                raise message
            yield message

    async def close(self) -> None:
        self.close_calls += 1


class _SlowCloseChannel(FakeChannel):
    def __init__(self, messages, *, close_seconds: float) -> None:
        super().__init__(messages)
        self.close_seconds = close_seconds

    async def close(self) -> None:
        self.close_calls += 1
        await asyncio.sleep(self.close_seconds)


class FakePresenter:
    def __init__(self) -> None:
        self.results: list[tuple] = []
        self.errors: list[str] = []
        self.alerts: list[str] = []

    async def show_results(self, results, subject) -> None:
        self.results.append((results, subject))

    async def show_error(self, detail: str) -> None:
        self.errors.append(detail)

    async def alert(self, message: str) -> None:
        self.alerts.append(message)


class FakeWebSocket:
    def __init__(self, frames) -> None:
        self.frames = list(frames)
        self.sent: list[str] = []
        self.close_calls = 0

    async def send(self, raw: str) -> None:
        self.sent.append(raw)

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for frame in self.frames:
            yield frame

    async def close(self) -> None:
        self.close_calls += 1


def _progress(text: str) -> ChannelMessage:
    return ChannelMessage(status="progress", message=text)


def _complete(data) -> ChannelMessage:
    return ChannelMessage(status="complete", data=data)


class QueryResolutionTests(unittest.TestCase):
    def test_torob_path_slug_wins(self) -> None:
        query = resolve_query(
            "https://torob.com/p/widget-a",
            TOROB,
            site_heading="Widget A Heading",
            document_title="Other | ترب",
        )
        self.assertEqual(query, "widget a")

    def test_path_slug_is_decoded_and_trailing_slash_tolerated(self) -> None:
        self.assertEqual(
            query_from_path("https://torob.com/p/%DA%AF%D9%88%D8%B4%DB%8C_x-1/", TOROB),
            "گوشی x 1",
        )

    def test_opaque_ids_and_short_names_are_not_queries(self) -> None:
        self.assertEqual(query_from_path("https://torob.com/p/p_12345", TOROB), "")
        self.assertEqual(query_from_path("https://torob.com/p/ab", TOROB), "")

    def test_esam_ignores_path(self) -> None:
        self.assertEqual(query_from_path("https://esam.ir/item/some-phone", ESAM), "")
        self.assertEqual(
            resolve_query("https://esam.ir/item/some-phone", ESAM, generic_heading="  Some   Phone "),
            "Some Phone",
        )

    def test_document_title_suffix_is_stripped(self) -> None:
        query = resolve_query("https://torob.com/p/p_1", TOROB, document_title="Widget C | ترب")
        self.assertEqual(query, "Widget C")

    def test_all_strategies_empty_raises(self) -> None:
        with self.assertRaises(NoQueryFound):
            resolve_query("https://esam.ir/item/1", ESAM, site_heading="", generic_heading=None)


class StatusFoldTests(unittest.TestCase):
    def test_progress_error_complete(self) -> None:
        state = fold_status(ControlState(), _progress("searching"))
        self.assertEqual(state, ControlState(kind="busy", message="searching"))
        self.assertEqual(render_state(state, "fa"), ("⏳ searching", CONTROL_COLOR_DEFAULT))

        failed = fold_status(state, ChannelMessage(status="error", error="boom"))
        self.assertEqual(render_state(failed, "fa"), ("❌ یافت نشد", CONTROL_COLOR_ERROR))
        self.assertTrue(fold_status(failed, _complete({})).is_default)

    def test_complete_payload_validation(self) -> None:
        self.assertEqual(complete_payload({"results": [1], "subject": {"title": "x"}}), ([1], {"title": "x"}))
        with self.assertRaises(MalformedComplete):
            complete_payload(None)
        with self.assertRaises(MalformedComplete) as ctx:
            complete_payload({"error": "not indexed"})
        self.assertEqual(str(ctx.exception), "not indexed")


class ChannelClientTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.doc = torob_product_page()
        await InjectionController(self.doc).reconcile()
        self.control_id = self.doc.controls_list[0].control_id
        self.presenter = FakePresenter()
        self.channels: list[FakeChannel] = []
        self.opened: list[str] = []
        self.script: list = []
        self.sleeps: list[tuple[float, str, str]] = []

    async def _open(self, name: str) -> FakeChannel:
        self.opened.append(name)
        channel = FakeChannel(self.script)
        self.channels.append(channel)
        return channel

    async def _sleep(self, delay: float) -> None:
        control = self.doc.controls_list[0]
        self.sleeps.append((delay, control.label, control.background))

    def _client(self, doc=None) -> ChannelClient:
        return ChannelClient(
            doc or self.doc,
            self.presenter,
            open_channel=self._open,
            error_hold_seconds=3.0,
            lang="fa",
            sleep=self._sleep,
        )

    async def test_sends_one_search_request_on_named_channel(self) -> None:
        self.script = [_complete({"results": [], "subject": None})]
        outcome = await self._client().on_click(self.control_id)
        self.assertEqual(outcome, STATUS_COMPLETE)
        self.assertEqual(self.opened, [CHANNEL_NAME])
        self.assertEqual(self.channels[0].sent, [{"action": SEARCH_ACTION, "query": "widget a"}])

    async def test_progress_updates_label_then_complete_restores_it(self) -> None:
        results = [{"text": "great"}]
        self.script = [_progress("Searching..."), _progress("Fetching reviews"), _complete({"results": results, "subject": {"title": "W"}})]
        outcome = await self._client().handle_click(self.control_id)
        self.assertEqual(outcome, STATUS_COMPLETE)
        labels = [label for _, label, _ in self.doc.view_updates]
        self.assertEqual(labels[:2], ["⏳ Searching...", "⏳ Fetching reviews"])
        self.assertEqual(labels[-1], "مشاهده نظرات دیجی‌کالا")
        self.assertEqual(self.presenter.results, [(results, {"title": "W"})])
        self.assertEqual(self.channels[0].close_calls, 1)
        self.assertEqual(self.presenter.errors, [])

    async def test_complete_with_error_payload_alerts_without_results(self) -> None:
        self.script = [_complete({"error": "nothing indexed"})]
        outcome = await self._client().handle_click(self.control_id)
        self.assertEqual(outcome, STATUS_COMPLETE)
        self.assertEqual(self.presenter.alerts, ["nothing indexed"])
        self.assertEqual(self.presenter.results, [])
        self.assertEqual(self.doc.controls_list[0].background, CONTROL_COLOR_DEFAULT)

    async def test_complete_without_data_reports_generic_error(self) -> None:
        self.script = [_complete(None)]
        await self._client().handle_click(self.control_id)
        self.assertEqual(self.presenter.alerts, ["Error receiving data"])

    async def test_backend_error_shows_transient_label(self) -> None:
        self.script = [_progress("Searching..."), ChannelMessage(status="error", error="backend down")]
        outcome = await self._client().handle_click(self.control_id)
        self.assertEqual(outcome, STATUS_ERROR)
        self.assertEqual(self.sleeps, [(3.0, "❌ یافت نشد", CONTROL_COLOR_ERROR)])
        control = self.doc.controls_list[0]
        self.assertEqual((control.label, control.background), ("مشاهده نظرات دیجی‌کالا", CONTROL_COLOR_DEFAULT))
        self.assertEqual(self.presenter.errors, ["backend down"])
        self.assertEqual(self.channels[0].close_calls, 1)

    async def test_error_window_is_not_stretched_by_slow_close(self) -> None:
        loop = asyncio.get_running_loop()
        changes: list[tuple[float, str]] = []
        real_set_view = self.doc.set_control_view

        async def timed_set_view(control_id, label, background):
            changes.append((loop.time(), background))
            return await real_set_view(control_id, label, background)

        self.doc.set_control_view = timed_set_view  # type: ignore[method-assign]
        slow = _SlowCloseChannel([ChannelMessage(status="error", error="backend down")], close_seconds=0.6)

        async def open_slow(_name: str):
            return slow

        client = ChannelClient(
            self.doc, self.presenter, open_channel=open_slow, error_hold_seconds=0.2, lang="fa"
        )
        outcome = await client.handle_click(self.control_id)
        self.assertEqual(outcome, STATUS_ERROR)
        self.assertEqual([bg for _, bg in changes], [CONTROL_COLOR_ERROR, CONTROL_COLOR_DEFAULT])
        shown = changes[1][0] - changes[0][0]
        self.assertGreaterEqual(shown, 0.19)
        self.assertLess(shown, 0.45)
        self.assertEqual(slow.close_calls, 1)

    async def test_open_failure_is_a_backend_error(self) -> None:
        async def refuse(_name: str):
            raise BackendError("channel open failed")

        client = self._client()
        client.open_channel = refuse
        outcome = await client.handle_click(self.control_id)
        self.assertEqual(outcome, STATUS_ERROR)
        self.assertEqual(self.presenter.errors, ["channel open failed"])
        self.assertEqual(len(self.sleeps), 1)

    async def test_stream_end_without_terminal_status_restores_default(self) -> None:
        self.script = [_progress("Searching...")]
        outcome = await self._client().handle_click(self.control_id)
        self.assertEqual(outcome, SESSION_DISCONNECTED)
        self.assertEqual(self.doc.controls_list[0].label, "مشاهده نظرات دیجی‌کالا")
        self.assertEqual(self.presenter.errors, [])

    async def test_abnormal_close_mid_stream(self) -> None:
        self.script = [_progress("Searching..."), BackendError("channel closed abnormally")]
        outcome = await self._client().handle_click(self.control_id)
        self.assertEqual(outcome, STATUS_ERROR)
        self.assertEqual(self.presenter.errors, ["channel closed abnormally"])

    async def test_missing_title_alerts_and_opens_nothing(self) -> None:
        doc = FakeDocument(url="https://esam.ir/item/5", elements=[FakeElement(tag="button", text="خرید")])
        outcome = await self._client(doc).handle_click("")
        self.assertEqual(outcome, SESSION_NO_QUERY)
        self.assertEqual(self.opened, [])
        self.assertEqual(len(self.presenter.alerts), 1)
        self.assertIn("عنوان محصول", self.presenter.alerts[0])

    async def test_cancel_all_stops_running_sessions(self) -> None:
        gate = asyncio.Event()

        async def hang(_name: str):
            await gate.wait()

        client = self._client()
        client.open_channel = hang
        task = client.on_click(self.control_id)
        await asyncio.sleep(0)
        await client.cancel_all()
        self.assertTrue(task.cancelled())


class WebSocketChannelTests(unittest.IsolatedAsyncioTestCase):
    async def test_open_connects_to_named_endpoint(self) -> None:
        ws = FakeWebSocket([])
        with patch("shopbridge.web_channel.websockets.connect", AsyncMock(return_value=ws)) as connect:
            channel = await WebSocketChannel.open("ws://127.0.0.1:8765/", CHANNEL_NAME)
        connect.assert_awaited_once_with("ws://127.0.0.1:8765/rightpick_stream")
        self.assertEqual(channel.name, CHANNEL_NAME)

    async def test_open_failure_raises_backend_error(self) -> None:
        with patch("shopbridge.web_channel.websockets.connect", AsyncMock(side_effect=OSError("refused"))):
            with self.assertRaises(BackendError):
                await WebSocketChannel.open("ws://127.0.0.1:1")

    async def test_frames_are_parsed_and_invalid_ones_skipped(self) -> None:
        lines: list[str] = []
        ws = FakeWebSocket(
            [
                "not json",
                json.dumps([1, 2]),
                json.dumps({"status": "weird"}),
                json.dumps({"status": "progress", "message": "در حال جستجو"}, ensure_ascii=False),
                json.dumps({"status": "complete", "data": {"results": []}}),
            ]
        )
        channel = WebSocketChannel(ws, CHANNEL_NAME, log=lines.append)
        await channel.send({"action": SEARCH_ACTION, "query": "گوشی"})
        messages = [message async for message in channel]
        self.assertEqual([m.status for m in messages], ["progress", "complete"])
        self.assertEqual(messages[0].message, "در حال جستجو")
        self.assertEqual(len(lines), 3)
        self.assertEqual(json.loads(ws.sent[0]), {"action": SEARCH_ACTION, "query": "گوشی"})
        self.assertIn("گوشی", ws.sent[0])

    async def test_close_is_idempotent(self) -> None:
        ws = FakeWebSocket([])
        channel = WebSocketChannel(ws, CHANNEL_NAME)
        await channel.close()
        await channel.close()
        self.assertEqual(ws.close_calls, 1)
        self.assertTrue(channel.closed)


if __name__ == "__main__":
    unittest.main()
