"""
HDV_Tracker — Ingest Queue

Bounded FIFO between the capture thread and the consumer worker.

- enqueue() waits at most a short timeout, then drops the frame and
  counts it. The capture thread is never blocked indefinitely.
- size() reads the deque length without taking the lock.
- Capacity is fixed at construction.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum

log = logging.getLogger(__name__)

WARNING_UTILIZATION = 0.80
CRITICAL_UTILIZATION = 0.95
DEFAULT_ENQUEUE_TIMEOUT = 0.1


@dataclass(frozen=True)
class RawFrame:
    """Captured bytes waiting to be decoded."""
    payload: bytes
    captured_at: float = field(default_factory=time.time)
    direction: str = "S2C"

    @property
    def size(self) -> int:
        return len(self.payload)


class QueuePressure(Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


def pressure_for(utilization: float) -> QueuePressure:
    if utilization >= CRITICAL_UTILIZATION:
        return QueuePressure.CRITICAL
    if utilization >= WARNING_UTILIZATION:
        return QueuePressure.WARNING
    return QueuePressure.NORMAL


class IngestQueue:
    """Thread-safe bounded queue of RawFrame."""

    def __init__(self, capacity: int = 1000, enqueue_timeout: float = DEFAULT_ENQUEUE_TIMEOUT):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._enqueue_timeout = enqueue_timeout
        self._items: deque[RawFrame] = deque()
        self._cond = threading.Condition(threading.Lock())
        self._closed = False
        self.dropped = 0
        self.enqueued = 0

    # ---- Producer side ----

    def enqueue(self, frame: RawFrame, timeout: float | None = None) -> bool:
        """Add a frame. Returns False (and counts a drop) if no slot frees up in time."""
        timeout = self._enqueue_timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout
        with self._cond:
            while len(self._items) >= self._capacity and not self._closed:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self.dropped += 1
                    log.warning(
                        "Ingest queue full (capacity=%d), dropping %d byte frame",
                        self._capacity, frame.size,
                    )
                    return False
                self._cond.wait(remaining)
            if self._closed:
                log.debug("Ingest queue closed, rejecting %d byte frame", frame.size)
                return False
            self._items.append(frame)
            self.enqueued += 1
            self._cond.notify_all()
            return True

    def close(self) -> None:
        """Stop accepting frames. Queued frames stay available to consumers."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        return self._closed

    # ---- Consumer side ----

    def dequeue(self, timeout: float = 0.0) -> RawFrame | None:
        """Pop the oldest frame, waiting up to `timeout` seconds for one."""
        deadline = time.monotonic() + timeout
        with self._cond:
            while not self._items:
                remaining = deadline - time.monotonic()
                if remaining <= 0 or self._closed:
                    return None
                self._cond.wait(remaining)
            frame = self._items.popleft()
            self._cond.notify_all()
            return frame

    # ---- Introspection ----

    def size(self) -> int:
        return len(self._items)

    def capacity(self) -> int:
        return self._capacity

    def is_empty(self) -> bool:
        return not self._items

    def utilization(self) -> float:
        """Fill ratio in [0, 1]."""
        return len(self._items) / self._capacity

    def pressure(self) -> QueuePressure:
        return pressure_for(self.utilization())

    def stats(self) -> dict:
        return {
            "size": self.size(),
            "capacity": self._capacity,
            "utilization_pct": round(self.utilization() * 100, 1),
            "enqueued": self.enqueued,
            "dropped": self.dropped,
        }


class QueueMonitor:
    """Logs queue pressure; meant to be polled every few seconds."""

    def __init__(self, queue: IngestQueue):
        self.queue = queue
        self.last_pressure = QueuePressure.NORMAL

    def check(self) -> QueuePressure:
        size = self.queue.size()
        capacity = self.queue.capacity()
        pct = round(self.queue.utilization() * 100)
        pressure = self.queue.pressure()

        match pressure:
            case QueuePressure.CRITICAL:
                log.error(
                    "CRITICAL: ingest queue is %d%% full (%d/%d), frames may be dropped",
                    pct, size, capacity,
                )
            case QueuePressure.WARNING:
                log.warning(
                    "Ingest queue is %d%% full (%d/%d), consumer is falling behind",
                    pct, size, capacity,
                )
            case QueuePressure.NORMAL:
                if self.last_pressure is not QueuePressure.NORMAL:
                    log.info("Ingest queue back to normal (%d/%d)", size, capacity)
                elif size:
                    log.debug("Ingest queue: %d/%d", size, capacity)

        self.last_pressure = pressure
        return pressure
