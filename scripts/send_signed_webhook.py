#!/usr/bin/env python3
import argparse
import json
import sys
from pathlib import Path

import httpx

from payhook.services.signature import compute_signature


def make_payload(order_id: str, email: str, amount: str, currency: str, name: str) -> dict:
    return {
        "alert_name": "payment_succeeded",
        "email": email,
        "amount": amount,
        "currency": currency,
        "order_id": order_id,
        "customer_name": name,
    }


def load_payload(args: argparse.Namespace) -> dict:
    if args.payload_file:
        payload = json.loads(Path(args.payload_file).read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError("payload file must contain a JSON object")
        return payload
    return make_payload(args.order_id, args.email, args.amount, args.currency, args.name)


def print_report(response: httpx.Response) -> int:
    print(f"HTTP {response.status_code}")
    try:
        body = response.json()
    except ValueError:
        print(response.text)
        return 1
    print(json.dumps(body, indent=2))
    return 0 if body.get("success") else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Sign a Paddle-style payload and post it to a payhook instance")
    parser.add_argument("--base-url", default="http://localhost:8000", help="Base URL of API")
    parser.add_argument("--secret", required=True, help="Shared webhook secret (PADDLE_WEBHOOK_SECRET)")
    parser.add_argument("--header", default="Paddle-Signature", help="Header carrying the signature")
    parser.add_argument("--payload-file", help="JSON file with the payload; overrides the field options")
    parser.add_argument("--order-id", default="ORDER12345")
    parser.add_argument("--email", default="buyer@example.com")
    parser.add_argument("--amount", default="49.99")
    parser.add_argument("--currency", default="USD")
    parser.add_argument("--name", default="Alice Buyer")
    parser.add_argument("--print-only", action="store_true", help="Print payload and signature without sending")
    parser.add_argument("--request-timeout-seconds", type=float, default=10.0, help="HTTP request timeout")
    args = parser.parse_args()

    try:
        payload = load_payload(args)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    signature = compute_signature(payload, args.secret)
    if args.print_only:
        print(json.dumps(payload))
        print(signature)
        return 0

    with httpx.Client(timeout=args.request_timeout_seconds) as client:
        try:
            response = client.post(
                f"{args.base_url}/v1/webhooks/paddle",
                content=json.dumps(payload).encode("utf-8"),
                headers={"Content-Type": "application/json", args.header: signature},
            )
        except httpx.HTTPError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
    return print_report(response)


if __name__ == "__main__":
    sys.exit(main())
