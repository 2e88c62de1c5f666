#!/usr/bin/env python3
"""Manual reschedule trigger script - submit one request to a running API."""

import argparse
import asyncio
import os
import sys

import httpx

DEFAULT_API_URL = "http://localhost:3000"
# Generous: the request may sit in the queue before it runs
REQUEST_TIMEOUT = 15 * 60.0


async def trigger_reschedule(
    api_url: str,
    client_search: str,
    new_date: str,
    new_time: str,
    current_appointment_date: str | None = None,
    api_key: str | None = None,
) -> bool:
    """Submit a reschedule request and print the outcome."""
    print(f"\n{'='*60}")
    print(f"🚀 Manual Reschedule: client={client_search} -> {new_date} {new_time}")
    print(f"{'='*60}\n")

    payload = {
        "clientSearch": client_search,
        "newDate": new_date,
        "newTime": new_time,
    }
    if current_appointment_date:
        payload["currentAppointmentDate"] = current_appointment_date

    headers = {"X-API-Key": api_key} if api_key else {}

    try:
        async with httpx.AsyncClient(base_url=api_url, timeout=REQUEST_TIMEOUT) as client:
            print("Step 1: Checking API health...")
            health = await client.get("/api/health")
            health.raise_for_status()
            status = health.json()
            print(
                f"  ✅ API up (busy={status['busy']}, queue length={status['queueLength']})"
            )

            print("\nStep 2: Submitting reschedule request (waits for completion)...")
            response = await client.post("/api/reschedule", json=payload, headers=headers)
            result = response.json()

        print(f"\n{'='*60}")
        if result.get("success"):
            print(f"✅ {result.get('message')}")
        else:
            print(f"❌ HTTP {response.status_code}: {result.get('error')}")
        print(f"{'='*60}\n")
        print("📋 Summary:")
        print(f"   - Request ID: {result.get('requestId', 'N/A')}")
        print(f"   - Duration: {result.get('duration', 0)}s\n")
        return bool(result.get("success"))

    except httpx.HTTPError as e:
        print(f"\n❌ Failed to reach API at {api_url}: {e}")
        return False


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Trigger an appointment reschedule")
    parser.add_argument("client_search", help="Client phone number or name to search for")
    parser.add_argument("new_date", help='New date, MM/DD/YYYY (e.g. "03/05/2026")')
    parser.add_argument("new_time", help='New time, H:MM AM/PM (e.g. "3:00 PM")')
    parser.add_argument(
        "--current-date",
        dest="current_appointment_date",
        help="Date of the appointment to move when the client has several, MM/DD/YYYY",
    )
    parser.add_argument("--api-url", default=os.getenv("API_URL", DEFAULT_API_URL))
    parser.add_argument("--api-key", default=os.getenv("API_KEY"))
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args(sys.argv[1:])
    success = asyncio.run(
        trigger_reschedule(
            api_url=args.api_url,
            client_search=args.client_search,
            new_date=args.new_date,
            new_time=args.new_time,
            current_appointment_date=args.current_appointment_date,
            api_key=args.api_key,
        )
    )
    sys.exit(0 if success else 1)
