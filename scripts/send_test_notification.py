#!/usr/bin/env python3
"""
Send a signed test notification to a running webhook endpoint.

Builds a MercadoPago-style payment notification, signs it with the webhook
secret exactly as MercadoPago does, and POSTs it. Useful for checking the
signature setup of a local or staging deployment.

Usage:
    python send_test_notification.py --payment-id 1234567890
    python send_test_notification.py --payment-id 1234567890 --url http://localhost:8000
    python send_test_notification.py --payment-id 1234567890 --tamper
"""

from __future__ import annotations

import argparse
import json
import os
import sys
import time
from pathlib import Path
from uuid import uuid4

import httpx
from dotenv import load_dotenv

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from services.signature import compute_signature

WEBHOOK_PATH = "/api/v1/webhooks/mercadopago"


def build_notification(payment_id: str, action: str) -> dict:
    """Notification body in MercadoPago's webhook (v1) format."""
    return {
        "id": int(time.time() * 1000),
        "live_mode": False,
        "type": "payment",
        "action": action,
        "api_version": "v1",
        "data": {"id": payment_id},
    }


def main() -> int:
    """Main entry point for the CLI."""
    load_dotenv(dotenv_path=Path(__file__).parent.parent / ".env")

    parser = argparse.ArgumentParser(
        description="Send a signed MercadoPago test notification",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Notify the local API about a payment
  python send_test_notification.py --payment-id 1234567890

  # Check that a bad signature is rejected with 401
  python send_test_notification.py --payment-id 1234567890 --tamper
        """
    )

    parser.add_argument(
        "--payment-id",
        "-p",
        required=True,
        help="MercadoPago payment id to reference in data.id"
    )

    parser.add_argument(
        "--url",
        "-u",
        default=os.getenv("APP_BASE_URL", "http://localhost:8000"),
        help="Base URL of the API (default: APP_BASE_URL or http://localhost:8000)"
    )

    parser.add_argument(
        "--action",
        "-a",
        default="payment.updated",
        choices=["payment.created", "payment.updated"],
        help="Notification action"
    )

    parser.add_argument(
        "--secret",
        default=os.getenv("MERCADOPAGO_WEBHOOK_SECRET"),
        help="Webhook secret (default: MERCADOPAGO_WEBHOOK_SECRET)"
    )

    parser.add_argument(
        "--tamper",
        action="store_true",
        help="Corrupt the signature to test rejection"
    )

    args = parser.parse_args()

    body = build_notification(args.payment_id, args.action)
    request_id = str(uuid4())
    ts = str(int(time.time()))

    headers = {"Content-Type": "application/json", "x-request-id": request_id}

    if args.secret:
        v1 = compute_signature(args.secret, args.payment_id, request_id, ts)
        if args.tamper:
            v1 = ("0" if v1[0] != "0" else "1") + v1[1:]
        headers["x-signature"] = f"ts={ts},v1={v1}"
    else:
        print("WARNING: no secret given; sending an unsigned notification")

    url = args.url.rstrip("/") + WEBHOOK_PATH

    try:
        print(f"POST {url}")
        print(f"  data.id: {args.payment_id}")
        print(f"  x-request-id: {request_id}")
        print(f"  signed: {'yes' if args.secret else 'no'}{' (tampered)' if args.tamper else ''}")

        response = httpx.post(url, content=json.dumps(body), headers=headers, timeout=10.0)

        print()
        print(f"Status: {response.status_code}")
        print(f"Body:   {response.text}")
        return 0 if response.status_code < 400 else 1

    except httpx.HTTPError as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
