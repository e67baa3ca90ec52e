"""
Delete events older than the retention window, with everything attached.

Runs daily from the web app (see CleanupScheduler) and can be run by hand:

    python -m beerfest.cleanup [--days N] [--dry-run]
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timedelta, timezone
from typing import Optional

from . import config, db, store
from .store import CleanupCounts

logger = logging.getLogger(__name__)


def retention_cutoff(now: datetime, days: int) -> int:
    return int((now - timedelta(days=days)).timestamp() * 1000)


def run_cleanup(now: Optional[datetime] = None, days: Optional[int] = None, dry_run: bool = False) -> CleanupCounts:
    now = now or datetime.now(timezone.utc)
    days = config.RETENTION_DAYS if days is None else days
    cutoff = retention_cutoff(now, days)

    logger.info("Starting cleanup of events older than %d days", days)
    expired = store.find_expired_events(cutoff)
    logger.info("Found %d old events to clean up", len(expired))

    totals = CleanupCounts()
    for event in expired:
        if dry_run:
            logger.info("Would delete event %s (%s)", event.id, event.name)
            continue
        try:
            totals.add(store.delete_event_cascade(event.id))
        except Exception as e:
            logger.error("Failed to clean up event %s: %s", event.id, e)
            continue
        logger.info("Cleaned up event %s (%s)", event.id, event.name)

    logger.info("Cleanup completed: %s", totals.to_dict())
    return totals


def seconds_until_next_run(now: datetime, hour: int) -> float:
    next_run = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()


class CleanupScheduler:
    """Runs the cleanup once a day at a fixed UTC hour until stopped."""

    def __init__(self, hour: Optional[int] = None):
        self.hour = config.CLEANUP_HOUR_UTC if hour is None else hour
        self.stop_event = asyncio.Event()

    async def run(self) -> None:
        logger.info("cleanup scheduler started (daily at %02d:00 UTC)", self.hour)
        while not self.stop_event.is_set():
            delay = seconds_until_next_run(datetime.now(timezone.utc), self.hour)
            try:
                await asyncio.wait_for(self.stop_event.wait(), timeout=delay)
                break
            except asyncio.TimeoutError:
                pass
            try:
                await asyncio.to_thread(run_cleanup)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception("cleanup run failed: %s", exc)

    async def shutdown(self) -> None:
        self.stop_event.set()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Delete beerfest events past the retention window.")
    parser.add_argument("--days", type=int, default=None, help="retention window in days")
    parser.add_argument("--dry-run", action="store_true", help="list expired events without deleting")
    args = parser.parse_args(argv)

    config.configure_logging()
    db.init_db()
    try:
        counts = run_cleanup(days=args.days, dry_run=args.dry_run)
    except Exception:
        logger.exception("Cleanup failed")
        return 1
    print(
        f"Events deleted: {counts.events}\n"
        f"Beers deleted: {counts.beers}\n"
        f"Scores deleted: {counts.scores}\n"
        f"Attendees deleted: {counts.attendees}\n"
        f"Photos deleted: {counts.photos}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
