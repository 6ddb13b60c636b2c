#!/usr/bin/env python3
"""Run the downloads intake without the HTTP API.

Watches a downloads directory, merges multi-part cloud archives as their last
part lands and classifies every extracted asset. Settings come from the
environment (``INTAKE_*``) and ``.env``; the flags below override the most
common ones.
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from loguru import logger

from app.utils.config import get_settings
from domains.file_ingest.collectors.downloads import DownloadsWatcher
from domains.file_ingest.errors import ConfigError
from domains.file_ingest.pipeline import IngestPipeline


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""

    parser = argparse.ArgumentParser(
        description="Merge multi-part downloads and classify media assets.",
    )
    parser.add_argument(
        "--downloads",
        type=Path,
        default=None,
        help="Directory to watch (default: INTAKE_DOWNLOADS_DIR or ~/Downloads).",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Where merged archives are extracted (default: the downloads directory).",
    )
    parser.add_argument(
        "--recursive",
        action="store_true",
        help="Also watch subdirectories.",
    )
    parser.add_argument(
        "--poll",
        type=float,
        default=1.0,
        help="How often the main loop checks for shutdown (seconds).",
    )
    parser.add_argument(
        "--scan-only",
        action="store_true",
        help="Register fragments already on disk, run one sweep and exit.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: INTAKE_LOG_LEVEL or INFO).",
    )

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the CLI script."""

    args = parse_args(argv)
    settings = get_settings()

    updates = {}
    if args.downloads is not None:
        updates["downloads_dir"] = args.downloads
    if args.output is not None:
        updates["output_dir"] = args.output
    if args.recursive:
        updates["watch_recursive"] = True
    if updates:
        settings = settings.model_copy(update=updates)

    logger.remove()
    logger.add(
        sys.stderr,
        format="{time:YYYY-MM-DD HH:mm:ss} [{level}] {message}",
        level=(args.log_level or settings.log_level).upper(),
    )

    pipeline = IngestPipeline(settings)
    watcher = DownloadsWatcher(pipeline)

    if args.scan_only:
        found = watcher.scan_existing()
        pipeline.sweeper.sweep_once()
        logger.info(f"Scan complete: {found} fragment(s), {len(pipeline.registry)} group(s) still incomplete")
        pipeline.stop()
        return 0

    try:
        pipeline.start()
        watcher.start_watching()
    except (ConfigError, OSError) as e:
        logger.error(f"Could not start watching {watcher.directory}: {e}")
        pipeline.stop()
        return 1

    stop_event = threading.Event()

    def _signal_handler(signum, frame):  # noqa: D401
        logger.info(f"Received signal {signum}, shutting down.")
        stop_event.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        while not stop_event.is_set():
            stop_event.wait(args.poll)
    finally:
        watcher.stop_watching()
        pipeline.stop()

    logger.info("Intake watcher stopped.")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI bridge
    sys.exit(main())
