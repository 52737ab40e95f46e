from __future__ import annotations

import asyncio

from services.checkout.app.services.redirector_base import BrowserOutcome, BrowserResultType

# "pending" keeps the page open until the caller cancels, like a user who walks away.
_MOCK_RESULTS = {"success", "cancel", "dismiss", "pending"}


class MockPaymentRedirector:
    name = "MOCK_BROWSER"

    def __init__(self, result: str = "pending", *, delay_s: float = 0.0) -> None:
        result = result.strip().lower()
        if result not in _MOCK_RESULTS:
            raise ValueError(
                f"Unknown mock browser result {result!r}. Expected one of {sorted(_MOCK_RESULTS)}."
            )
        self._result = result
        self._delay_s = delay_s
        self.opened: list[tuple[str, str]] = []

    async def open(self, redirect_url: str, return_deep_link: str) -> BrowserOutcome:
        self.opened.append((redirect_url, return_deep_link))

        if self._result == "pending":
            await asyncio.Event().wait()

        if self._delay_s:
            await asyncio.sleep(self._delay_s)

        if self._result == "success":
            return BrowserOutcome(type=BrowserResultType.SUCCESS, url=return_deep_link)

        return BrowserOutcome(type=BrowserResultType(self._result))
