#!/usr/bin/env python3
"""
Send test tracker reports to a running relay.

Usage:
    python scripts/send_test_report.py [count] [moving]

Examples:
    python scripts/send_test_report.py
    python scripts/send_test_report.py 3 true     # enough to trigger a movement alert
    python scripts/send_test_report.py 1 none     # position only, no movement flag
"""

import sys
import time

import httpx


def send_report(
    lat: float,
    lon: float,
    moving: str = "true",
    device_id: str = "tracker-01",
    url: str = "http://localhost:3000/api/data",
) -> None:
    """POST one report and print the relay's acknowledgment."""

    report = {"deviceId": device_id, "lat": lat, "lon": lon}
    if moving != "none":
        report["isMoving"] = moving == "true"

    print(f"Sending report to {url}: {report}")
    try:
        response = httpx.post(url, json=report, timeout=5)
        response.raise_for_status()
        print(f"Response: {response.text}")
    except httpx.HTTPError as e:
        print(f"ERROR: Could not reach the relay ({e}).")
        print("Make sure it is running: python -m gps_tracker.main --serve")
        sys.exit(1)


if __name__ == "__main__":
    count = int(sys.argv[1]) if len(sys.argv) > 1 else 1
    moving = sys.argv[2].lower() if len(sys.argv) > 2 else "true"

    # Walk north-east from central Sofia a little with every report
    for i in range(count):
        send_report(lat=42.6977 + i * 0.001, lon=23.3242 + i * 0.001, moving=moving)
        time.sleep(0.5)
