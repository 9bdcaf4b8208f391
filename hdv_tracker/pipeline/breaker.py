"""
HDV_Tracker — Circuit Breaker

    CLOSED --(failures >= threshold)--> OPEN
    OPEN --(reset_timeout elapsed)--> HALF_OPEN
    HALF_OPEN --(success)--> CLOSED
    HALF_OPEN --(failure)--> OPEN

transition() is the whole state machine as a pure function; the
CircuitBreaker class only turns counters and the clock into events and
serializes them behind one lock.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum, auto
from typing import Callable

from hdv_tracker.errors import CircuitOpen

log = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class BreakerEvent(Enum):
    SUCCESS = auto()
    FAILURE = auto()
    THRESHOLD_REACHED = auto()
    RESET_TIMEOUT_ELAPSED = auto()


def transition(state: CircuitState, event: BreakerEvent) -> CircuitState:
    """Next state for (state, event). Pairs not listed keep the state."""
    match (state, event):
        case (CircuitState.CLOSED, BreakerEvent.THRESHOLD_REACHED):
            return CircuitState.OPEN
        case (CircuitState.OPEN, BreakerEvent.RESET_TIMEOUT_ELAPSED):
            return CircuitState.HALF_OPEN
        case (CircuitState.HALF_OPEN, BreakerEvent.SUCCESS):
            return CircuitState.CLOSED
        case (CircuitState.HALF_OPEN, BreakerEvent.FAILURE | BreakerEvent.THRESHOLD_REACHED):
            return CircuitState.OPEN
        case _:
            return state


StateListener = Callable[[CircuitState, CircuitState], None]


class CircuitBreaker:
    """Guards calls to the price sink."""

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if failure_threshold < 1:
            raise ValueError(f"failure_threshold must be >= 1, got {failure_threshold}")
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = 0.0
        self._lock = threading.Lock()
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def on_state_change(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def _apply(self, event: BreakerEvent) -> tuple[CircuitState, CircuitState] | None:
        """Apply an event under _lock. Returns (old, new) when the state moved."""
        old = self._state
        new = transition(old, event)
        if new is old:
            return None
        self._state = new
        match new:
            case CircuitState.OPEN:
                self._opened_at = self._clock()
                log.error(
                    "Circuit breaker OPENED after %d consecutive failure(s)",
                    self._consecutive_failures,
                )
            case CircuitState.HALF_OPEN:
                self._consecutive_failures = 0
                log.info("Circuit breaker HALF_OPEN, allowing a trial call")
            case CircuitState.CLOSED:
                log.info("Circuit breaker CLOSED, sink recovered")
        return old, new

    def _notify(self, change: tuple[CircuitState, CircuitState] | None) -> None:
        # Listeners run with _lock released; they may block or call back in.
        if change is None:
            return
        for listener in list(self._listeners):
            try:
                listener(*change)
            except Exception:
                log.exception("Circuit breaker listener failed")

    def retry_in(self) -> float:
        if self._state is not CircuitState.OPEN:
            return 0.0
        return max(0.0, self.reset_timeout - (self._clock() - self._opened_at))

    def check(self) -> CircuitState:
        """Gate a call. Raises CircuitOpen while open and not yet eligible."""
        with self._lock:
            change = None
            if self._state is CircuitState.OPEN:
                if self._clock() - self._opened_at >= self.reset_timeout:
                    change = self._apply(BreakerEvent.RESET_TIMEOUT_ELAPSED)
                else:
                    raise CircuitOpen(self.retry_in())
            state = self._state
        self._notify(change)
        return state

    def record_success(self) -> None:
        with self._lock:
            if self._consecutive_failures:
                log.info("Sink recovered, resetting failure count (%d)", self._consecutive_failures)
            self._consecutive_failures = 0
            change = self._apply(BreakerEvent.SUCCESS)
        self._notify(change)

    def record_failure(self) -> None:
        with self._lock:
            self._consecutive_failures += 1
            log.warning("Sink failure #%d", self._consecutive_failures)
            if self._consecutive_failures >= self.failure_threshold:
                change = self._apply(BreakerEvent.THRESHOLD_REACHED)
            else:
                change = self._apply(BreakerEvent.FAILURE)
        self._notify(change)

    def reset(self) -> None:
        with self._lock:
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
            self._opened_at = 0.0
