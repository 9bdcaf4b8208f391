"""
HDV_Tracker — Ingest Consumer

Drains the ingest queue, decodes frames, extracts prices and forwards
them to a PriceSink behind a circuit breaker.

    IngestQueue → IngestConsumer → MessageCodec → extract_prices → PriceSink
                        ↑
                  CircuitBreaker

Decode problems stay local to a frame and only bump counters. Sink
problems count against the breaker. A batch is one sink call, so a
batch failure is charged to every frame in it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Protocol, Sequence

from hdv_tracker.errors import CircuitOpen, SinkUnavailable
from hdv_tracker.pipeline.breaker import CircuitBreaker, CircuitState
from hdv_tracker.pipeline.ingest_queue import IngestQueue, RawFrame
from hdv_tracker.pipeline.metrics import ConsumerMetrics
from hdv_tracker.pipeline.prices import Clock, PriceObservation, extract_prices, validate
from hdv_tracker.protocol.codec import MessageCodec
from hdv_tracker.protocol.messages import UnknownMessage, flatten

log = logging.getLogger(__name__)


class PriceSink(Protocol):
    """Where observations go. Deduplication is the sink's business."""

    def persist(self, observations: Sequence[PriceObservation]) -> None: ...

    def persist_batch(self, observations: Sequence[PriceObservation]) -> None: ...


ObservationCallback = Callable[[list[PriceObservation]], None]


@dataclass
class ConsumerConfig:
    """Consumer tuning."""
    batch_size: int = 10
    poll_timeout: float = 1.0
    failure_threshold: int = 5
    reset_timeout: float = 60.0


class IngestConsumer:
    """Single-owner consumer: one worker thread calls it at a time."""

    def __init__(
        self,
        queue: IngestQueue,
        sink: PriceSink,
        codec: MessageCodec | None = None,
        config: ConsumerConfig | None = None,
        metrics: ConsumerMetrics | None = None,
        breaker: CircuitBreaker | None = None,
        clock: Clock = time.time,
    ):
        self.queue = queue
        self.sink = sink
        self.codec = codec or MessageCodec()
        self.config = config or ConsumerConfig()
        self.metrics = metrics or ConsumerMetrics()
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=self.config.failure_threshold,
            reset_timeout=self.config.reset_timeout,
        )
        self._clock = clock
        self._callbacks: list[ObservationCallback] = []

    @property
    def circuit_state(self) -> CircuitState:
        return self.breaker.state

    def on_observations(self, callback: ObservationCallback) -> None:
        """Subscribe to observations after the sink accepted them."""
        self._callbacks.append(callback)

    def _notify(self, observations: list[PriceObservation]) -> None:
        for cb in self._callbacks:
            try:
                cb(observations)
            except Exception:
                log.exception("Observation callback failed")

    def _gate(self) -> None:
        try:
            self.breaker.check()
        except CircuitOpen:
            self.metrics.record_rejection()
            raise

    # ---- Decode + extract ----

    def process_frame(self, frame: RawFrame) -> list[PriceObservation]:
        """Decode one frame into validated observations. Never raises for bad bytes."""
        observations: list[PriceObservation] = []
        for result in self.codec.decode_all(frame.payload):
            if result.error is not None:
                self.metrics.record_decode_error(result.error.kind)
                log.warning("Dropping undecodable frame (%d bytes): %s", frame.size, result.error)
                continue
            for leaf in flatten(result.message):
                if isinstance(leaf, UnknownMessage):
                    self.metrics.record_unknown()
            extracted = extract_prices(result.message, self._clock)
            self.metrics.record_invalid(extracted.discarded_tiers)
            observations.extend(extracted.observations)

        valid, rejected = validate(observations)
        self.metrics.record_invalid(rejected)
        return valid

    def _forward(self, observations: list[PriceObservation], frames: int, batch: bool) -> bool:
        """Hand observations to the sink, charging the breaker with the outcome."""
        if not observations:
            return True
        try:
            if batch:
                self.sink.persist_batch(observations)
            else:
                self.sink.persist(observations)
        except Exception as e:
            err = SinkUnavailable(str(e), observations=len(observations))
            log.error("Price sink failed for %d frame(s): %s", frames, err)
            self.metrics.record_sink_failure(frames)
            self.breaker.record_failure()
            return False

        self.breaker.record_success()
        self.metrics.record_emitted(len(observations))
        self._notify(observations)
        return True

    # ---- Consumption ----

    def consume_one(self) -> bool:
        """Process a single frame. Returns True if a frame was handled end to end.

        Raises CircuitOpen without touching the queue while the breaker is open.
        """
        self._gate()
        frame = self.queue.dequeue(self.config.poll_timeout)
        if frame is None:
            return False

        observations = self.process_frame(frame)
        ok = self._forward(observations, frames=1, batch=False)
        if ok:
            self.metrics.record_frames(1)
            log.debug(
                "Consumed %d byte frame -> %d price(s) (%d queued)",
                frame.size, len(observations), self.queue.size(),
            )
        return ok

    def consume_batch(self) -> int:
        """Process up to batch_size frames with one sink call. Returns frames taken.

        Raises CircuitOpen without touching the queue while the breaker is open.
        """
        self._gate()
        batch = self._collect_batch()
        if not batch:
            return 0

        observations: list[PriceObservation] = []
        for frame in batch:
            observations.extend(self.process_frame(frame))

        self.metrics.record_batch()
        if self._forward(observations, frames=len(batch), batch=True):
            self.metrics.record_frames(len(batch))
            log.debug(
                "Consumed batch of %d frame(s) -> %d price(s) (%d queued)",
                len(batch), len(observations), self.queue.size(),
            )
        return len(batch)

    def _collect_batch(self) -> list[RawFrame]:
        batch: list[RawFrame] = []
        deadline = time.monotonic() + self.config.poll_timeout
        while len(batch) < self.config.batch_size:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            frame = self.queue.dequeue(remaining)
            if frame is None:
                break
            batch.append(frame)
        return batch

    def drain_all(self) -> int:
        """Batch-consume until the queue is empty. Goes through the breaker."""
        log.info("Draining ingest queue (%d queued)", self.queue.size())
        total = 0
        batches = 0
        while not self.queue.is_empty():
            taken = self.consume_batch()
            if taken == 0:
                break
            total += taken
            batches += 1
        log.info("Queue drain complete: %d frame(s) in %d batch(es)", total, batches)
        return total

    # ---- Stats ----

    def statistics(self) -> str:
        return f"{self.metrics.summary()} circuit={self.breaker.state.value}"

    def reset(self) -> None:
        log.info("Resetting ingest consumer")
        self.breaker.reset()
        self.metrics.reset()
