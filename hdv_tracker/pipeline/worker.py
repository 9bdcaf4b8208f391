"""
HDV_Tracker — Ingest Worker

Runs the consumer loop on a daemon thread.

    while not stopped:
        consume_batch() / consume_one()
        on CircuitOpen: wait out the breaker (interruptible by stop())
        every monitor_interval: QueueMonitor.check() + stats log
    on stop: drain_all()
"""

from __future__ import annotations

import logging
import threading
import time

from hdv_tracker.errors import CircuitOpen
from hdv_tracker.pipeline.consumer import IngestConsumer
from hdv_tracker.pipeline.ingest_queue import QueueMonitor

log = logging.getLogger(__name__)

# Longest single sleep while the breaker is open, so stop() stays responsive.
MAX_BACKOFF = 5.0


class IngestWorker:
    """Owns the consumer thread. The consumer must not be shared."""

    def __init__(
        self,
        consumer: IngestConsumer,
        batch_mode: bool = True,
        monitor_interval: float = 5.0,
    ):
        self.consumer = consumer
        self.batch_mode = batch_mode
        self.monitor_interval = monitor_interval
        self.monitor = QueueMonitor(consumer.queue)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_monitor = 0.0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, name="hdv-ingest", daemon=True)
        self._thread.start()
        log.info("Ingest worker started (%s mode)", "batch" if self.batch_mode else "single")

    def stop(self, timeout: float | None = 10.0) -> None:
        """Signal the loop to finish its current step, drain and exit."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                log.warning("Ingest worker did not stop within %.1fs", timeout)
            self._thread = None

    def step(self) -> int:
        """One loop iteration. Returns frames taken (0 or 1 in single mode)."""
        try:
            if self.batch_mode:
                return self.consumer.consume_batch()
            return 1 if self.consumer.consume_one() else 0
        except CircuitOpen as e:
            wait = min(max(e.retry_in, 0.1), MAX_BACKOFF)
            log.debug("Circuit open, backing off %.1fs (%d queued)", wait, self.consumer.queue.size())
            self._stop.wait(wait)
            return 0

    def run(self) -> None:
        try:
            while not self._stop.is_set():
                self.step()
                self._maybe_monitor()
        except Exception:
            log.exception("Ingest worker crashed")
            raise
        finally:
            self._shutdown_drain()

    def _maybe_monitor(self) -> None:
        now = time.monotonic()
        if now - self._last_monitor < self.monitor_interval:
            return
        self._last_monitor = now
        self.monitor.check()
        log.info("Ingest stats: %s", self.consumer.statistics())

    def _shutdown_drain(self) -> None:
        queue = self.consumer.queue
        if queue.is_empty():
            return
        try:
            self.consumer.drain_all()
        except CircuitOpen as e:
            log.error(
                "Circuit open during shutdown drain, %d frame(s) left unprocessed (retry in %.1fs)",
                queue.size(), e.retry_in,
            )
