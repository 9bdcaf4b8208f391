"""
HDV_Tracker — Pipeline Counters

ConsumerMetrics is created by whoever builds the pipeline and handed to
the consumer, so the health surface and the dashboard read the same
counters without any module-level state.
"""

from __future__ import annotations

import threading
import time
from collections import Counter, deque
from dataclasses import dataclass, field


class RateCounter:
    """Events per second over a sliding window."""

    def __init__(self, window: float = 5.0):
        self._window = window
        self._timestamps: deque[float] = deque()
        self._lock = threading.Lock()

    def record(self, n: int = 1, ts: float | None = None) -> None:
        ts = ts or time.time()
        with self._lock:
            self._timestamps.extend([ts] * n)
            self._prune(ts)

    def _prune(self, now: float) -> None:
        while self._timestamps and self._timestamps[0] < now - self._window:
            self._timestamps.popleft()

    def rate(self, now: float | None = None) -> float:
        now = now or time.time()
        with self._lock:
            self._prune(now)
            return len(self._timestamps) / self._window


@dataclass
class ConsumerMetrics:
    """Counters owned by one IngestConsumer."""
    frames_processed: int = 0
    frames_failed: int = 0
    batches: int = 0
    decode_errors: Counter = field(default_factory=Counter)
    unknown_messages: int = 0
    observations_emitted: int = 0
    invalid_observations: int = 0
    sink_failures: int = 0
    circuit_rejections: int = 0
    frame_rate: RateCounter = field(default_factory=RateCounter)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def total_decode_errors(self) -> int:
        with self._lock:
            return sum(self.decode_errors.values())

    def record_frames(self, n: int) -> None:
        with self._lock:
            self.frames_processed += n
        self.frame_rate.record(n)

    def record_decode_error(self, kind: str) -> None:
        with self._lock:
            self.decode_errors[kind] += 1

    def record_unknown(self) -> None:
        with self._lock:
            self.unknown_messages += 1

    def record_emitted(self, n: int) -> None:
        with self._lock:
            self.observations_emitted += n

    def record_invalid(self, n: int) -> None:
        if n:
            with self._lock:
                self.invalid_observations += n

    def record_sink_failure(self, frames: int) -> None:
        with self._lock:
            self.sink_failures += 1
            self.frames_failed += frames

    def record_batch(self) -> None:
        with self._lock:
            self.batches += 1

    def record_rejection(self) -> None:
        with self._lock:
            self.circuit_rejections += 1

    def reset(self) -> None:
        with self._lock:
            self.frames_processed = 0
            self.frames_failed = 0
            self.batches = 0
            self.decode_errors.clear()
            self.unknown_messages = 0
            self.observations_emitted = 0
            self.invalid_observations = 0
            self.sink_failures = 0
            self.circuit_rejections = 0

    def summary(self) -> str:
        return (
            f"frames={self.frames_processed} prices={self.observations_emitted} "
            f"errors={self.total_decode_errors} invalid={self.invalid_observations} "
            f"sink_failures={self.sink_failures}"
        )

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "frames_processed": self.frames_processed,
                "frames_failed": self.frames_failed,
                "batches": self.batches,
                "decode_errors": dict(self.decode_errors),
                "unknown_messages": self.unknown_messages,
                "observations_emitted": self.observations_emitted,
                "invalid_observations": self.invalid_observations,
                "sink_failures": self.sink_failures,
                "circuit_rejections": self.circuit_rejections,
            }
