#!/usr/bin/env python3
"""
Chart image maintenance for one user.

Usage:
  python scripts/chart_maintenance.py stats --user-id <uuid>
  python scripts/chart_maintenance.py cleanup --user-id <uuid>
  python scripts/chart_maintenance.py reconcile --user-id <uuid>

Database URL comes from DATABASE_URL / TRADE_JOURNAL_DATABASE_URL.
"""

import argparse
import asyncio
import json
import sys
import uuid
from pathlib import Path

from tradejournal.db.database import get_db
from tradejournal.logging_config import configure_logging
from tradejournal.services.charts.local_cache import LocalBlobCache
from tradejournal.services.charts.service import ChartImageService


async def run(command: str, user_id: uuid.UUID, cache_dir: Path | None) -> dict:
    async for session in get_db():
        service = ChartImageService(session, user_id, LocalBlobCache(cache_dir))
        if command == "stats":
            result = await service.get_storage_stats()
        elif command == "cleanup":
            result = await service.cleanup_all_orphaned_data()
        else:
            result = await service.reconcile_legacy_trade_ids()
        return result.model_dump()
    return {}


def main():
    parser = argparse.ArgumentParser(description="Chart image maintenance")
    parser.add_argument("command", choices=["stats", "cleanup", "reconcile"])
    parser.add_argument("--user-id", required=True, help="User UUID")
    parser.add_argument("--cache-dir", type=Path, help="Local chart cache directory (default from settings)")
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args()

    try:
        user_id = uuid.UUID(args.user_id)
    except ValueError:
        print(f"ERROR: invalid user id {args.user_id!r}")
        sys.exit(1)

    configure_logging(level=args.log_level)
    result = asyncio.run(run(args.command, user_id, args.cache_dir))
    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
