#!/usr/bin/env python3
"""
Send simulated sensor readings to the plant monitor API.

Usage:
    # Normal readings
    python scripts/send_sensor_readings.py

    # Test low soil moisture
    python scripts/send_sensor_readings.py --low-moisture

    # Several hot, dry readings against a deployed API
    python scripts/send_sensor_readings.py --high-temperature --low-humidity --count 5 --api-url https://plants.example.com

Flags:
    --low-temperature    Send temperature below the default range (~14°C)
    --high-temperature   Send temperature above the default range (~32°C)
    --low-humidity       Send humidity below the default range (~30%)
    --high-humidity      Send humidity above the default range (~80%)
    --low-moisture       Send soil moisture below the default range (~20%)
    --low-light          Send light below the default range (~500)
    --api-url URL        API base URL (default: $PLANT_API_URL or http://localhost:8000)
    --count N            Number of readings to send (default: 1)

Environment variables:
    PLANT_API_URL - API base URL (optional)
"""

import argparse
import os
import random
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict

import requests


def generate_reading(
    low_temp: bool = False,
    high_temp: bool = False,
    low_humidity: bool = False,
    high_humidity: bool = False,
    low_moisture: bool = False,
    low_light: bool = False,
) -> Dict[str, Any]:
    """Generate one reading; flags push a metric outside the default ideal range."""
    data: Dict[str, Any] = {"timestamp": datetime.now(timezone.utc).isoformat()}

    if low_temp:
        data["temperature"] = round(random.uniform(12.0, 16.0), 1)
    elif high_temp:
        data["temperature"] = round(random.uniform(30.0, 34.0), 1)
    else:
        data["temperature"] = round(22.0 + random.uniform(-2.0, 2.0), 1)

    if low_humidity:
        data["humidity"] = round(random.uniform(25.0, 35.0), 1)
    elif high_humidity:
        data["humidity"] = round(random.uniform(75.0, 85.0), 1)
    else:
        data["humidity"] = round(50.0 + random.uniform(-5.0, 5.0), 1)

    if low_moisture:
        data["soilMoisture"] = round(random.uniform(15.0, 25.0), 1)
    else:
        data["soilMoisture"] = round(50.0 + random.uniform(-10.0, 10.0), 1)

    if low_light:
        data["light"] = round(random.uniform(200, 800), 0)
    else:
        data["light"] = round(3000 + random.uniform(-800, 800), 0)

    return data


def send_reading(api_url: str, reading: Dict[str, Any]) -> Dict[str, Any]:
    resp = requests.post(f"{api_url.rstrip('/')}/api/sensors", json=reading, timeout=10)
    if resp.status_code >= 400:
        raise RuntimeError(f"API rejected reading ({resp.status_code}): {resp.text}")
    return resp.json()


def parse_args():
    parser = argparse.ArgumentParser(
        description="Send simulated sensor readings to the plant monitor API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--low-temperature", action="store_true", help="Send temperature below range (~14°C)")
    parser.add_argument("--high-temperature", action="store_true", help="Send temperature above range (~32°C)")
    parser.add_argument("--low-humidity", action="store_true", help="Send humidity below range (~30%%)")
    parser.add_argument("--high-humidity", action="store_true", help="Send humidity above range (~80%%)")
    parser.add_argument("--low-moisture", action="store_true", help="Send soil moisture below range (~20%%)")
    parser.add_argument("--low-light", action="store_true", help="Send light below range (~500)")
    parser.add_argument(
        "--api-url",
        type=str,
        default=os.getenv("PLANT_API_URL", "http://localhost:8000"),
        help="API base URL (default: $PLANT_API_URL or http://localhost:8000)",
    )
    parser.add_argument("--count", type=int, default=1, help="Number of readings to send (default: 1)")
    return parser.parse_args()


def main():
    args = parse_args()

    scenarios = []
    if args.low_temperature:
        scenarios.append("LOW TEMPERATURE")
    if args.high_temperature:
        scenarios.append("HIGH TEMPERATURE")
    if args.low_humidity:
        scenarios.append("LOW HUMIDITY")
    if args.high_humidity:
        scenarios.append("HIGH HUMIDITY")
    if args.low_moisture:
        scenarios.append("LOW MOISTURE")
    if args.low_light:
        scenarios.append("LOW LIGHT")
    scenario_desc = " | ".join(scenarios) if scenarios else "NORMAL"

    print(f"\nSending {args.count} reading(s) to {args.api_url}")
    print(f"Scenario: {scenario_desc}\n")

    for i in range(args.count):
        if i > 0:
            time.sleep(0.5)

        reading = generate_reading(
            low_temp=args.low_temperature,
            high_temp=args.high_temperature,
            low_humidity=args.low_humidity,
            high_humidity=args.high_humidity,
            low_moisture=args.low_moisture,
            low_light=args.low_light,
        )
        stored = send_reading(args.api_url, reading)
        print(f"   [{i+1}/{args.count}] {stored.get('id')}: {reading}")

    print(f"\nSent {args.count} reading(s).")
    print("Check the evaluation via: GET /api/status")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)
