"""Command-line client for interacting with a running donation server."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Dict

import httpx
import websockets
from websockets.exceptions import WebSocketException

DEFAULT_HOST = os.environ.get("EASYDONATE_HOST", "127.0.0.1")
DEFAULT_PORT = int(os.environ.get("EASYDONATE_PORT", "3000"))
# long enough to cover the server's own redemption timeout
DEFAULT_TIMEOUT = float(os.environ.get("EASYDONATE_TIMEOUT", "45.0"))


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    base_url = _resolve_base_url(args.host, args.port)
    timeout = args.timeout

    if args.command == "donate":
        try:
            payload = _build_donation_payload(args.link, args.donor, args.message)
        except ValueError as exc:
            parser.error(str(exc))
        return _submit_donation(f"{base_url}/api/donate", payload, timeout)

    if args.command == "recent":
        return _show_recent(base_url, args.limit, timeout)

    if args.command == "stats":
        return _show_stats(base_url, timeout)

    if args.command == "watch":
        try:
            return asyncio.run(_watch(_ws_url(base_url)))
        except KeyboardInterrupt:
            return 0

    parser.error("Unknown command")
    return 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="easydonate",
        description="Submit vouchers and follow donations on an Easy Donate server.",
    )
    parser.add_argument("--host", default=DEFAULT_HOST, help="API host (default: %(default)s)")
    parser.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help="API port (default: %(default)s)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="HTTP timeout in seconds (default: %(default)s)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    donate_parser = subparsers.add_parser("donate", help="Redeem a voucher link as a donation")
    donate_parser.add_argument("link", help="Voucher link")
    donate_parser.add_argument("message", nargs=argparse.REMAINDER, help="Donation message")
    donate_parser.add_argument("--donor", required=True, help="Donor display name")

    recent_parser = subparsers.add_parser("recent", help="List recent completed donations")
    recent_parser.add_argument("--limit", type=int, default=10, help="Number of donations (default: %(default)s)")

    subparsers.add_parser("stats", help="Print donation statistics")
    subparsers.add_parser("watch", help="Follow new donations live")

    return parser


def _resolve_base_url(host: str, port: int) -> str:
    if host.startswith("http://") or host.startswith("https://"):
        return host.rstrip("/")
    return f"http://{host}:{port}"


def _ws_url(base_url: str) -> str:
    if base_url.startswith("https://"):
        return "wss://" + base_url[len("https://") :] + "/ws"
    if base_url.startswith("http://"):
        return "ws://" + base_url[len("http://") :] + "/ws"
    return base_url + "/ws"


def _build_donation_payload(link: str, donor: str, message_parts: list[str]) -> Dict[str, Any]:
    link = link.strip()
    donor = donor.strip()
    if not link:
        raise ValueError("Voucher link cannot be empty")
    if not donor:
        raise ValueError("Donor name cannot be empty")
    if len(donor) > 100:
        raise ValueError("Donor name is too long (max 100 characters)")
    message = " ".join(part for part in message_parts).strip()
    if len(message) > 500:
        raise ValueError("Message is too long (max 500 characters)")
    return {"voucherLink": link, "donorName": donor, "message": message}


def _get_json(url: str, timeout: float, **params: Any) -> Dict[str, Any] | None:
    try:
        response = httpx.get(url, params=params or None, timeout=timeout)
        response.raise_for_status()
    except httpx.RequestError as exc:
        print(f"Request failed: {exc}", file=sys.stderr)
        return None
    except httpx.HTTPStatusError as exc:
        print(f"Server responded with error {exc.response.status_code}: {exc.response.text}", file=sys.stderr)
        return None

    payload = response.json()
    if not isinstance(payload, dict):
        print("Unexpected response payload", file=sys.stderr)
        return None
    return payload


def _submit_donation(url: str, payload: Dict[str, Any], timeout: float) -> int:
    try:
        response = httpx.post(url, json=payload, timeout=timeout)
    except httpx.RequestError as exc:
        print(f"Request failed: {exc}", file=sys.stderr)
        return 1

    try:
        result = response.json()
    except ValueError:
        print(f"Server responded with error {response.status_code}: {response.text}", file=sys.stderr)
        return 1

    message = result.get("message") if isinstance(result, dict) else None
    if response.is_success and isinstance(result, dict) and result.get("success"):
        print(message)
        return 0
    print(message or f"Donation failed ({response.status_code})", file=sys.stderr)
    return 1


def _show_recent(base_url: str, limit: int, timeout: float) -> int:
    payload = _get_json(f"{base_url}/api/donations", timeout, limit=limit)
    if payload is None:
        return 1

    donations = payload.get("data") or []
    if not donations:
        print("No donations yet")
        return 0
    for idx, donation in enumerate(donations, start=1):
        print(f"  {idx}. {donation.get('donorName')} - {donation.get('amount')} ({donation.get('timestamp')})")
        if donation.get("message"):
            print(f"     {donation['message']}")
    return 0


def _show_stats(base_url: str, timeout: float) -> int:
    payload = _get_json(f"{base_url}/api/stats", timeout)
    if payload is None:
        return 1

    stats = payload.get("data") or {}
    print(f"Total amount:    {stats.get('totalAmount', 0)}")
    print(f"Donations:       {stats.get('totalDonations', 0)}")
    print(f"Average:         {stats.get('averageAmount', 0)}")
    print(f"Top donation:    {stats.get('topDonation', 0)}")
    print(f"Last donation:   {stats.get('lastDonationTimestamp') or '-'}")
    return 0


async def _watch(url: str) -> int:
    try:
        async with websockets.connect(url) as ws:
            print(f"Watching {url} (Ctrl+C to stop)")
            async for raw in ws:
                try:
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    continue
                data = message.get("data") or {}
                print(f"[{message.get('event')}] {data.get('donorName')}: {data.get('amount')}")
                if data.get("message"):
                    print(f"     {data['message']}")
    except (OSError, WebSocketException) as exc:
        print(f"Live feed connection failed: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
