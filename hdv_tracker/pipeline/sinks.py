"""
HDV_Tracker — Price Sinks

Real persistence lives outside this repository. These two cover running
the tracker standalone: append JSON lines to a file, or just log.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Sequence

from hdv_tracker.pipeline.prices import PriceObservation

log = logging.getLogger(__name__)


class JsonlPriceSink:
    """Appends one JSON object per observation to a file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.written = 0
        self._lock = threading.Lock()

    def _write(self, observations: Sequence[PriceObservation]) -> None:
        lines = "".join(json.dumps(o.to_dict()) + "\n" for o in observations)
        with self._lock:
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(lines)
            self.written += len(observations)
        log.debug("Wrote %d observation(s) to %s", len(observations), self.path)

    def persist(self, observations: Sequence[PriceObservation]) -> None:
        self._write(observations)

    def persist_batch(self, observations: Sequence[PriceObservation]) -> None:
        self._write(observations)


class LoggingPriceSink:
    """Logs each observation at INFO. Useful with --replay."""

    def __init__(self, logger: logging.Logger | None = None):
        self._log = logger or log

    def persist(self, observations: Sequence[PriceObservation]) -> None:
        for o in observations:
            self._log.info("price gid=%d cat=%d %s", o.item_gid, o.category_id, o.format_price())

    def persist_batch(self, observations: Sequence[PriceObservation]) -> None:
        self.persist(observations)
