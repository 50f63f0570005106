from __future__ import annotations

import argparse
import os
import signal

from balancelog.config import get_settings
from balancelog.logging_utils import logger_for
from balancelog.storage import StorageUnavailable
from balancelog.tracker import build_tracker


def main() -> None:
    parser = argparse.ArgumentParser(description="Balance-Log monitor (headless work/rest/idle tracking)")
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Override DATA_DIR (the SQLite database lives here)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL (DEBUG shows every snapshot write)",
    )
    args = parser.parse_args()

    if args.data_dir:
        os.environ["DATA_DIR"] = args.data_dir
    if args.log_level:
        os.environ["LOG_LEVEL"] = args.log_level

    settings = get_settings()
    logger = logger_for("monitor", settings)
    try:
        tracker = build_tracker(settings, logger)
    except StorageUnavailable as exc:
        logger.error("Cannot open the database: %s", exc)
        raise SystemExit(1)

    def _graceful_stop(signum, frame):
        logger.info("Received signal %s - shutting down monitor", signum)
        tracker.request_stop()

    signal.signal(signal.SIGINT, _graceful_stop)
    signal.signal(signal.SIGTERM, _graceful_stop)

    try:
        tracker.run()
    finally:
        status = tracker.status()
        logger.info(
            "Monitor stopped: state=%s work=%ss rest=%ss idle=%ss",
            status.state.label,
            status.totals.work,
            status.totals.rest,
            status.totals.idle,
        )


if __name__ == "__main__":
    main()
