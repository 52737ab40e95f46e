"""Inbound deep links.

The OS hands URLs back to the app in two ways: while it is running (delivered through
`DeepLinkHub.dispatch`) and at cold start (the launch URL, read once per session).
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

DeepLinkCallback = Callable[[str], None]

_COMPLETION_RE = re.compile(r"payment-complete/([^/?#]+)/?$")


def parse_completion_link(url: str | None) -> str | None:
    """Return the order id from a `<scheme>://payment-complete/<orderId>` URL, if any."""

    if not url:
        return None

    parts = urlsplit(url.strip())
    # For custom schemes "payment-complete" lands in netloc, for https links in the path.
    target = f"{parts.netloc}{parts.path}"
    match = _COMPLETION_RE.search(target)
    if not match:
        return None
    return match.group(1)


class Subscription:
    """Handle returned by `DeepLinkHub.subscribe`. Cancelling twice is a no-op."""

    def __init__(self, hub: "DeepLinkHub", callback: DeepLinkCallback) -> None:
        self._hub = hub
        self._callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._hub._remove(self)

    def _deliver(self, url: str) -> bool:
        if not self._active:
            return False
        self._callback(url)
        return True


class DeepLinkHub:
    def __init__(self, launch_url: str | None = None) -> None:
        self._subscriptions: list[Subscription] = []
        self._launch_url = launch_url
        self._initial_url = launch_url

    def subscribe(self, callback: DeepLinkCallback) -> Subscription:
        sub = Subscription(self, callback)
        self._subscriptions.append(sub)
        return sub

    def dispatch(self, url: str) -> int:
        """Deliver `url` to every live subscriber. Returns how many received it."""

        delivered = 0
        # Copy: a callback may resolve its session and cancel subscriptions mid-loop.
        for sub in list(self._subscriptions):
            if sub._deliver(url):
                delivered += 1

        logger.info("deep link dispatched url=%s subscribers=%d", url, delivered)
        return delivered

    def take_launch_url(self) -> str | None:
        url, self._launch_url = self._launch_url, None
        return url

    def foreground(self) -> int:
        """App came back to the foreground: offer the launch URL to live subscribers again.

        The OS keeps reporting the URL the app was launched with, so a session started after
        the cold launch still gets to see it. Sessions ignore links for other orders.
        """

        if self._initial_url is None:
            return 0
        return self.dispatch(self._initial_url)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def _remove(self, sub: Subscription) -> None:
        try:
            self._subscriptions.remove(sub)
        except ValueError:
            pass
