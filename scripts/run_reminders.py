#!/usr/bin/env python3
"""
Run reminder sweeps once, for cron.

Usage:
    python scripts/run_reminders.py              # all sweeps, in-process
    python scripts/run_reminders.py --kind 1h
    python scripts/run_reminders.py --remote     # call POST /reminders/send

Environment Variables:
    DATABASE_URL: Used for in-process runs
    CRON_SECRET: Sent as X-Cron-Api-Key for --remote runs
    API_URL: Base API URL for --remote runs (default: http://localhost:8000)
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

import dotenv
import requests

dotenv.load_dotenv()

# Allow running from a checkout without installing the package
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

KINDS = ("24h", "1h", "followup", "all")


async def run_local(kind: str) -> dict:
    """Run sweeps against the database directly."""
    from app.database import AsyncSessionLocal, engine
    from app.middleware.logging import configure_logging
    from app.schemas.reminders import ReminderKind
    from app.services.reminder_service import ReminderService

    configure_logging()
    try:
        async with AsyncSessionLocal() as session:
            service = ReminderService(session)
            if kind == "all":
                results = await service.run_all()
            else:
                reminder_kind = ReminderKind(kind)
                results = {reminder_kind: await service.run_sweep(reminder_kind)}
    finally:
        await engine.dispose()

    return {k.value: r.model_dump() for k, r in results.items()}


def run_remote(kind: str) -> dict:
    """Ask a running API instance to run the sweeps."""
    cron_secret = os.getenv("CRON_SECRET")
    if not cron_secret:
        print("Error: CRON_SECRET environment variable not set", file=sys.stderr)
        sys.exit(1)

    api_url = os.getenv("API_URL", "http://localhost:8000")
    response = requests.post(
        f"{api_url}/api/v1/reminders/send",
        params={"kind": kind},
        headers={"X-Cron-Api-Key": cron_secret},
        timeout=120,
    )
    response.raise_for_status()
    return response.json()["results"]


def main() -> int:
    parser = argparse.ArgumentParser(description="Send appointment reminder emails")
    parser.add_argument("--kind", choices=KINDS, default="all", help="Sweep to run")
    parser.add_argument(
        "--remote", action="store_true", help="Call the API instead of the database"
    )
    args = parser.parse_args()

    try:
        results = run_remote(args.kind) if args.remote else asyncio.run(run_local(args.kind))
    except requests.RequestException as e:
        print(f"✗ Reminder request failed: {e}", file=sys.stderr)
        return 1

    print(json.dumps(results, indent=2))
    return 1 if any(r["failed"] for r in results.values()) else 0


if __name__ == "__main__":
    sys.exit(main())
