from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Protocol

from services.checkout.app.services.deep_links import DeepLinkHub, parse_completion_link

logger = logging.getLogger(__name__)


class RedirectorError(Exception):
    """Base class for payment redirector errors."""


class PlaywrightMissingError(RedirectorError):
    def __init__(self) -> None:
        super().__init__(
            "playwright is not installed. Install the browser extra and browsers:\n"
            "  pip install -e '.[browser]'\n"
            "  playwright install chromium"
        )


class BrowserResultType(str, Enum):
    SUCCESS = "success"
    CANCEL = "cancel"
    DISMISS = "dismiss"


@dataclass(frozen=True, slots=True)
class BrowserOutcome:
    type: BrowserResultType
    url: str | None = None
    # iOS may report cancel even though this order's return deep link fired.
    tentative: bool = False


class PaymentRedirector(Protocol):
    name: str

    async def open(self, redirect_url: str, return_deep_link: str) -> BrowserOutcome: ...


async def open_payment_page(
    redirector: PaymentRedirector,
    redirect_url: str,
    return_deep_link: str,
    *,
    platform: str,
    hub: DeepLinkHub,
) -> BrowserOutcome:
    """Open the hosted payment page and apply platform workarounds to the result."""

    logger.info("opening payment page via %s return=%s", redirector.name, return_deep_link)
    outcome = await redirector.open(redirect_url, return_deep_link)
    logger.info("payment browser closed type=%s url=%s", outcome.type.value, outcome.url)

    expected_order_id = parse_completion_link(return_deep_link)
    if (
        platform == "ios"
        and outcome.type == BrowserResultType.CANCEL
        and expected_order_id is not None
        and parse_completion_link(outcome.url) == expected_order_id
    ):
        logger.info("ios cancel carried a completion url, re-dispatching %s", outcome.url)
        outcome = replace(outcome, tentative=True)
        hub.dispatch(outcome.url)

    return outcome
