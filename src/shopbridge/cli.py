"""CLI entrypoint for shopbridge."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from shopbridge.config import AugmentConfig
from shopbridge.storage import (
    EventLog,
    RunContext,
    create_run_context,
    status_payload,
    tail_lines,
    write_status,
)
from shopbridge.web_augmenter import ShopAugmenter
from shopbridge.web_common import is_valid_url, playwright_available


DEFAULT_CDP_URL = "http://127.0.0.1:9222"


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    if args.command == "open":
        open_command(args.url, headless=args.headless)
        return
    if args.command == "attach":
        attach_command(args.cdp_url)
        return
    if args.command == "status":
        status_command()
        return
    if args.command == "logs":
        logs_command(args.tail)
        return

    parser.print_help()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shopbridge",
        description="Augment supported product pages with a review lookup control.",
    )
    subparsers = parser.add_subparsers(dest="command")

    open_parser = subparsers.add_parser("open", help="Launch Chromium on <url> and augment it")
    open_parser.add_argument("url", type=str)
    open_parser.add_argument("--headless", action="store_true", help="Run the browser headless.")

    attach_parser = subparsers.add_parser(
        "attach",
        help="Augment the first page of a running browser over CDP",
    )
    attach_parser.add_argument("--cdp-url", type=str, default=DEFAULT_CDP_URL)

    subparsers.add_parser("status", help="Show configuration and latest run status")

    logs_parser = subparsers.add_parser("logs", help="Tail the augment log of the latest run")
    logs_parser.add_argument("--tail", type=int, default=200)
    return parser


def _require_playwright() -> None:
    if not playwright_available():
        raise SystemExit(
            "Playwright is not installed. Run: pip install playwright && playwright install chromium"
        )


def open_command(url: str, *, headless: bool = False) -> None:
    if not is_valid_url(url):
        raise SystemExit(f"Invalid url: {url}")
    _require_playwright()
    config = AugmentConfig.from_env()
    if headless:
        config.headless = True
    ctx = create_run_context()
    try:
        asyncio.run(_open_and_augment(url, config, ctx))
    except KeyboardInterrupt:
        pass
    finally:
        write_status(run_id=ctx.run_id, run_dir=ctx.run_dir, url=url, state="closed")


def attach_command(cdp_url: str) -> None:
    if not is_valid_url(cdp_url):
        raise SystemExit(f"Invalid CDP url: {cdp_url}")
    _require_playwright()
    config = AugmentConfig.from_env()
    ctx = create_run_context()
    try:
        asyncio.run(_attach_and_augment(cdp_url, config, ctx))
    except KeyboardInterrupt:
        pass
    finally:
        write_status(run_id=ctx.run_id, run_dir=ctx.run_dir, url=cdp_url, state="closed")


async def _open_and_augment(url: str, config: AugmentConfig, ctx: RunContext) -> None:
    from playwright.async_api import async_playwright

    log = EventLog(ctx.augment_log)
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=config.headless)
        try:
            page = await browser.new_page()
            augmenter = ShopAugmenter(page, config, log=log)
            await augmenter.start()
            try:
                await page.goto(url)
                write_status(run_id=ctx.run_id, run_dir=ctx.run_dir, url=url, state="running")
                await augmenter.wait_closed()
            finally:
                await augmenter.stop()
        finally:
            await browser.close()


async def _attach_and_augment(cdp_url: str, config: AugmentConfig, ctx: RunContext) -> None:
    from playwright.async_api import async_playwright

    log = EventLog(ctx.augment_log)
    async with async_playwright() as p:
        browser = await p.chromium.connect_over_cdp(cdp_url)
        context = browser.contexts[0] if browser.contexts else None
        if context is None:
            raise SystemExit(f"No browser context available at {cdp_url}")
        page = context.pages[0] if context.pages else await context.new_page()
        augmenter = ShopAugmenter(page, config, log=log)
        write_status(run_id=ctx.run_id, run_dir=ctx.run_dir, url=page.url, state="running")
        await augmenter.run()


def status_command() -> None:
    payload = {
        "config": AugmentConfig.from_env().status_payload(),
        "last_run": status_payload(),
    }
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def logs_command(tail_count: int) -> None:
    payload = status_payload()
    if payload.get("status") == "no-runs":
        raise SystemExit("No runs available yet.")
    run_dir = Path(payload["run_dir"])
    print("\n".join(tail_lines(run_dir / "augment.log", tail_count)))


if __name__ == "__main__":
    main()
