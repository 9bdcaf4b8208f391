"""
HDV_Tracker — Health Snapshot

Read-only view of the pipeline for monitoring.

    UP       breaker CLOSED and queue < 80%
    WARNING  queue >= 80% or breaker HALF_OPEN
    DOWN     breaker OPEN or queue >= 95%
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from hdv_tracker.pipeline.breaker import CircuitState
from hdv_tracker.pipeline.consumer import IngestConsumer
from hdv_tracker.pipeline.ingest_queue import (
    CRITICAL_UTILIZATION,
    WARNING_UTILIZATION,
    IngestQueue,
)


class HealthStatus(Enum):
    UP = "UP"
    WARNING = "WARNING"
    DOWN = "DOWN"


def status_for(state: CircuitState, utilization: float) -> HealthStatus:
    if state is CircuitState.OPEN or utilization >= CRITICAL_UTILIZATION:
        return HealthStatus.DOWN
    if state is CircuitState.HALF_OPEN or utilization >= WARNING_UTILIZATION:
        return HealthStatus.WARNING
    return HealthStatus.UP


@dataclass(frozen=True)
class HealthSnapshot:
    status: HealthStatus
    queue_depth: int
    queue_capacity: int
    utilization_pct: float
    dropped_frames: int
    circuit_state: CircuitState
    frames_processed: int
    decode_errors: int
    observations_emitted: int
    invalid_observations: int
    frame_rate: float

    @property
    def issue(self) -> str | None:
        if self.circuit_state is CircuitState.OPEN:
            return "Price sink unavailable, circuit breaker open"
        if self.utilization_pct >= CRITICAL_UTILIZATION * 100:
            return "Queue is critically full (>=95%)"
        if self.circuit_state is CircuitState.HALF_OPEN:
            return "Circuit breaker probing sink"
        if self.utilization_pct >= WARNING_UTILIZATION * 100:
            return "Queue utilization is high (>=80%)"
        return None

    def to_dict(self) -> dict:
        d = {
            "status": self.status.value,
            "queue_depth": self.queue_depth,
            "queue_capacity": self.queue_capacity,
            "utilization_pct": self.utilization_pct,
            "dropped_frames": self.dropped_frames,
            "circuit_state": self.circuit_state.value,
            "frames_processed": self.frames_processed,
            "decode_errors": self.decode_errors,
            "observations_emitted": self.observations_emitted,
            "invalid_observations": self.invalid_observations,
            "frame_rate": round(self.frame_rate, 2),
        }
        if self.issue:
            d["issue"] = self.issue
        return d


def health_snapshot(queue: IngestQueue, consumer: IngestConsumer) -> HealthSnapshot:
    utilization = queue.utilization()
    state = consumer.breaker.state
    m = consumer.metrics
    return HealthSnapshot(
        status=status_for(state, utilization),
        queue_depth=queue.size(),
        queue_capacity=queue.capacity(),
        utilization_pct=round(utilization * 100, 1),
        dropped_frames=queue.dropped,
        circuit_state=state,
        frames_processed=m.frames_processed,
        decode_errors=m.total_decode_errors,
        observations_emitted=m.observations_emitted,
        invalid_observations=m.invalid_observations,
        frame_rate=m.frame_rate.rate(),
    )
