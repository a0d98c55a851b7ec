from __future__ import annotations

import argparse
import asyncio
import logging
from typing import List, Optional

from feed_core.ordered_view import OrderedSyncView, ReconcileResult
from feed_client import settings
from feed_client.controller import FeedController
from feed_client.logging_config import setup_logging
from feed_client.source import FileRecordSource, HttpRecordSource


log = logging.getLogger("feed_client.runner")


def log_new_records(view: OrderedSyncView, result: ReconcileResult) -> None:
    for record in result.records:
        log.info("record ts=%s id=%s", record.timestamp, record.record_id)
    log.info("View now holds %d record(s), watermark=%s", len(view), result.watermark)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Poll a photo feed and keep a newest-first view of it.")
    ap.add_argument("--url", default=settings.FEED_BASE_URL, help="Base URL of the photo backend")
    ap.add_argument("--path", default=settings.FEED_PHOTOS_PATH, help="Metadata endpoint path")
    ap.add_argument("--file", default=None, help="Read snapshots from a JSON file instead of HTTP")
    ap.add_argument("--interval", type=float, default=settings.POLL_INTERVAL_S, help="Seconds between refreshes")
    ap.add_argument("--iterations", type=int, default=0, help="Number of refreshes, 0 = run forever")
    ap.add_argument(
        "--dedup",
        choices=["watermark", "identity"],
        default=settings.DEDUP_POLICY,
        help="How already-known records are recognised",
    )
    ap.add_argument("--log-level", default=settings.LOG_LEVEL)
    ap.add_argument("--log-dir", default="logs")
    return ap


async def run(controller: FeedController, interval_s: float, iterations: int) -> None:
    n = 0
    while iterations <= 0 or n < iterations:
        n += 1
        try:
            await controller.refresh()
        except Exception:
            log.exception("Refresh %d failed; keeping last good view", n)
        if iterations > 0 and n >= iterations:
            break
        await asyncio.sleep(interval_s)


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    log_path = setup_logging(
        level=args.log_level,
        component="feed",
        subdir="runner",
        base_dir=args.log_dir,
        to_file=settings.LOG_TO_FILE,
    )
    if log_path is not None:
        log.info("Logging to %s", log_path)

    if args.file:
        source = FileRecordSource(args.file)
    else:
        source = HttpRecordSource(base_url=args.url, path=args.path)

    controller = FeedController(source, OrderedSyncView(policy=args.dedup))
    controller.view.subscribe(log_new_records)
    asyncio.run(run(controller, max(0.0, args.interval), args.iterations))


if __name__ == "__main__":
    main()
