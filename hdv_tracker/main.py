"""
HDV_Tracker — Entry Point

Captures marketplace (HDV) traffic, extracts prices and hands them to a
sink. Capture needs libpcap and root / Administrator.

Usage:
    python -m hdv_tracker.main                              # live, log prices
    python -m hdv_tracker.main --output data/prices.jsonl   # live, JSON lines
    python -m hdv_tracker.main --record captures            # also save segments
    python -m hdv_tracker.main --replay captures/x.json -v  # offline replay
    python -m hdv_tracker.main --dashboard                  # terminal UI
"""

from __future__ import annotations

import json
import logging
import signal
import sys
import threading

from hdv_tracker.config import TrackerConfig, build_parser
from hdv_tracker.tracker import Tracker

log = logging.getLogger("hdv_tracker")

HEALTH_LOG_INTERVAL = 30.0


def run_headless(tracker: Tracker) -> None:
    """Run until Ctrl+C / SIGTERM, or until a replay runs out."""
    stop = threading.Event()

    def _on_signal(signum, _frame) -> None:
        log.info("Received signal %d, stopping", signum)
        stop.set()

    signal.signal(signal.SIGTERM, _on_signal)

    tracker.start()
    try:
        while not stop.is_set():
            if not tracker.capturing:
                log.info("Capture source finished")
                break
            stop.wait(HEALTH_LOG_INTERVAL if not tracker.replay else 0.5)
            if tracker.sniffer:
                log.info("Health: %s", json.dumps(tracker.health().to_dict()))
    except KeyboardInterrupt:
        print()
        log.info("Stopped by user")
    finally:
        tracker.stop()
        log.info("Health: %s", json.dumps(tracker.health().to_dict()))


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = TrackerConfig.from_args(args)

    # Logging (the dashboard owns the terminal, so keep it quiet there)
    level = logging.DEBUG if config.verbose else logging.INFO
    if config.dashboard and not config.verbose:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("scapy").setLevel(logging.WARNING)

    try:
        tracker = Tracker(config)
    except (OSError, ValueError) as e:
        log.error("Startup failed: %s", e)
        return 1

    if config.dashboard:
        from hdv_tracker.dashboard.app import HDVDashboard
        HDVDashboard(tracker).run()
    else:
        run_headless(tracker)
    return 0


if __name__ == "__main__":
    sys.exit(main())
