from __future__ import annotations

import argparse
import os

import httpx


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Hand an inbound app URL to a running Sehaty checkout service"
    )
    parser.add_argument("url", help="Deep link, e.g. sehaty://payment-complete/<orderId>")
    parser.add_argument(
        "--service-url",
        default=os.getenv("SEHATY_CHECKOUT_URL", "http://127.0.0.1:8000"),
        help="Checkout service base URL (default: http://127.0.0.1:8000)",
    )
    parser.add_argument(
        "--timeout-s",
        type=float,
        default=5.0,
        help="Request timeout in seconds (default: 5)",
    )

    args = parser.parse_args()

    endpoint = f"{args.service_url.rstrip('/')}/v1/deep-links"
    try:
        response = httpx.post(endpoint, json={"url": args.url}, timeout=args.timeout_s)
        response.raise_for_status()
    except httpx.HTTPError as e:
        print(f"Could not deliver {args.url}: {e}")
        return 1

    delivered = response.json().get("delivered_to", 0)
    if not delivered:
        print("No checkout session is listening. The link was dropped.")
        return 2

    print(f"Delivered to {delivered} session(s).")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
