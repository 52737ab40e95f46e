from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from services.checkout.app.config import parse_bool
from services.checkout.app.services.deep_links import parse_completion_link
from services.checkout.app.services.redirector_base import (
    BrowserOutcome,
    BrowserResultType,
    PlaywrightMissingError,
    RedirectorError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _BrowserConfig:
    headless: bool
    slow_mo_ms: int
    session_timeout_s: float | None
    artifacts_dir: Path

    @classmethod
    def from_env(cls) -> "_BrowserConfig":
        timeout_s = float(os.getenv("SEHATY_BROWSER_TIMEOUT_S", "0"))
        return cls(
            headless=parse_bool(os.getenv("SEHATY_BROWSER_HEADLESS", "false")),
            slow_mo_ms=int(os.getenv("SEHATY_BROWSER_SLOW_MO_MS", "0")),
            session_timeout_s=timeout_s if timeout_s > 0 else None,
            artifacts_dir=Path(
                os.getenv("SEHATY_BROWSER_ARTIFACTS_DIR", ".local/payment_artifacts")
            ).expanduser(),
        )


class PlaywrightPaymentRedirector:
    """Hosted payment page in a Playwright-driven Chromium window.

    The window stays open until one of:
    - the page navigates (or issues a request) to the return deep link: success,
    - the user closes the page: cancel, carrying the last URL seen,
    - the browser disconnects or SEHATY_BROWSER_TIMEOUT_S elapses: dismiss.

    Cancelling the awaiting task closes the browser.

    Env vars:
    - SEHATY_REDIRECTOR=browser
    - SEHATY_BROWSER_HEADLESS (default: false, the user has to type card details)
    - SEHATY_BROWSER_SLOW_MO_MS (default: 0)
    - SEHATY_BROWSER_TIMEOUT_S (default: 0, wait for the user indefinitely)
    - SEHATY_BROWSER_ARTIFACTS_DIR (default: .local/payment_artifacts)
    """

    name = "PLAYWRIGHT_BROWSER"

    def __init__(self, cfg: _BrowserConfig) -> None:
        self._cfg = cfg

    @classmethod
    def from_env(cls) -> "PlaywrightPaymentRedirector":
        return cls(_BrowserConfig.from_env())

    async def open(self, redirect_url: str, return_deep_link: str) -> BrowserOutcome:
        async with _async_playwright() as p:
            browser = await p.chromium.launch(
                headless=self._cfg.headless, slow_mo=self._cfg.slow_mo_ms
            )
            closed: asyncio.Future[BrowserOutcome] = asyncio.get_running_loop().create_future()

            def finish(outcome: BrowserOutcome) -> None:
                if not closed.done():
                    closed.set_result(outcome)

            def check_url(url: str) -> None:
                if url.startswith(return_deep_link) or parse_completion_link(url) is not None:
                    finish(BrowserOutcome(type=BrowserResultType.SUCCESS, url=url))

            try:
                context = await browser.new_context()
                page = await context.new_page()
                page.on("request", lambda request: check_url(request.url))
                page.on("framenavigated", lambda frame: check_url(frame.url))
                page.on(
                    "close",
                    lambda closed_page: finish(
                        BrowserOutcome(type=BrowserResultType.CANCEL, url=closed_page.url or None)
                    ),
                )
                browser.on(
                    "disconnected",
                    lambda _browser: finish(BrowserOutcome(type=BrowserResultType.DISMISS)),
                )

                try:
                    await page.goto(redirect_url, wait_until="domcontentloaded")
                except Exception as e:
                    # Navigating to a custom scheme aborts the load; that is the success path.
                    if not closed.done():
                        artifact = await _write_debug_artifacts(page, self._cfg.artifacts_dir)
                        raise RedirectorError(
                            f"Payment page failed to load: {type(e).__name__}: {e}. "
                            f"Artifact: {artifact}"
                        ) from e

                try:
                    return await asyncio.wait_for(closed, timeout=self._cfg.session_timeout_s)
                except asyncio.TimeoutError:
                    logger.info("payment browser timed out after %ss", self._cfg.session_timeout_s)
                    return BrowserOutcome(type=BrowserResultType.DISMISS)
            finally:
                await browser.close()


def _async_playwright() -> Any:
    try:
        from playwright.async_api import async_playwright
    except ImportError as e:  # pragma: no cover
        raise PlaywrightMissingError() from e

    return async_playwright()


async def _write_debug_artifacts(page: Any, artifacts_dir: Path) -> Path:
    run_dir = artifacts_dir / time.strftime("%Y%m%d_%H%M%S")
    run_dir.mkdir(parents=True, exist_ok=True)
    screenshot_path = run_dir / "payment_error.png"

    try:
        await page.screenshot(path=str(screenshot_path), full_page=True)
    except Exception:
        pass

    try:
        (run_dir / "payment_error.html").write_text(await page.content(), encoding="utf-8")
    except Exception:
        pass

    return screenshot_path
