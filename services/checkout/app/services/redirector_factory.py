from __future__ import annotations

import os

from services.checkout.app.services.redirector_base import PaymentRedirector
from services.checkout.app.services.redirector_mock import MockPaymentRedirector


def get_payment_redirector() -> PaymentRedirector:
    """Select the redirector based on env vars.

    Defaults to the mock so tests never launch a browser. The mock's scripted result comes
    from SEHATY_MOCK_BROWSER_RESULT (success, cancel, dismiss or pending).
    """

    mode = os.getenv("SEHATY_REDIRECTOR", "mock").strip().lower()

    if mode == "mock":
        return MockPaymentRedirector(os.getenv("SEHATY_MOCK_BROWSER_RESULT", "pending"))

    if mode == "browser":
        from services.checkout.app.services.redirector_browser import (
            PlaywrightPaymentRedirector,
        )

        return PlaywrightPaymentRedirector.from_env()

    raise ValueError(f"Unknown SEHATY_REDIRECTOR={mode!r}. Expected mock or browser.")
