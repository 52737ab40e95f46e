from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from decimal import Decimal

DEFAULT_API_BASE_URL = "https://sehaty.bright-ignite.com/api"


@dataclass(frozen=True, slots=True)
class CheckoutSettings:
    """Checkout service settings.

    Env vars:
    - SEHATY_API_BASE_URL (default: https://sehaty.bright-ignite.com/api)
    - SEHATY_API_TOKEN (bearer token for the orders backend)
    - SEHATY_API_TIMEOUT_S (default: 10)
    - SEHATY_PLATFORM (default: android; ios enables the cancel-with-URL workaround)
    - SEHATY_POLL_INTERVAL_S (default: 5)
    - SEHATY_RECONCILE_MAX_WAIT_S (default: 900, 0 disables)
    - SEHATY_REDIRECT_DELAY_S (default: 1)
    - SEHATY_DELIVERY_FEE (default: 25)
    - SEHATY_LAUNCH_URL (deep link the app was cold-launched with, if any)
    - SEHATY_ATTEMPT_RETENTION_S (default: 3600; finished attempts older than this are dropped)
    """

    api_base_url: str
    api_token: str | None
    api_timeout_s: float
    platform: str
    poll_interval_s: float
    max_wait_s: float | None
    redirect_delay_s: float
    delivery_fee: Decimal
    launch_url: str | None
    attempt_retention_s: float

    @classmethod
    def from_env(cls) -> "CheckoutSettings":
        max_wait_s = float(os.getenv("SEHATY_RECONCILE_MAX_WAIT_S", "900"))

        return cls(
            api_base_url=os.getenv("SEHATY_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/"),
            api_token=(os.getenv("SEHATY_API_TOKEN") or "").strip() or None,
            api_timeout_s=float(os.getenv("SEHATY_API_TIMEOUT_S", "10")),
            platform=os.getenv("SEHATY_PLATFORM", "android").strip().lower(),
            poll_interval_s=float(os.getenv("SEHATY_POLL_INTERVAL_S", "5")),
            max_wait_s=max_wait_s if max_wait_s > 0 else None,
            redirect_delay_s=float(os.getenv("SEHATY_REDIRECT_DELAY_S", "1")),
            delivery_fee=Decimal(os.getenv("SEHATY_DELIVERY_FEE", "25")),
            launch_url=(os.getenv("SEHATY_LAUNCH_URL") or "").strip() or None,
            attempt_retention_s=float(os.getenv("SEHATY_ATTEMPT_RETENTION_S", "3600")),
        )


def configure_logging() -> None:
    level = os.getenv("SEHATY_LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}
