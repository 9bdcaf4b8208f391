"""
HDV_Tracker Dashboard — Textual TUI App

Real-time terminal view of the price pipeline: health (queue pressure,
circuit breaker, counters), the latest prices and an event log.

The Tracker runs on its own threads; the app only subscribes to
observations / breaker transitions and polls the health snapshot.

Keys:
  p — pause the price table refresh
  c — clear the event log
  r — reset the circuit breaker and counters
"""

from __future__ import annotations

import asyncio

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.timer import Timer
from textual.widgets import Footer, Static

from hdv_tracker.dashboard.widgets import EventPanel, HealthPanel, PricePanel
from hdv_tracker.pipeline.breaker import CircuitState
from hdv_tracker.pipeline.prices import PriceObservation
from hdv_tracker.tracker import Tracker


class HDVDashboard(App):
    """HDV_Tracker real-time price dashboard."""

    CSS = """
    #header-bar { height: 1; background: $boost; }
    #status-label { width: 1fr; }
    #rate-label { width: auto; }
    HealthPanel { height: 5; border: round $accent; padding: 0 1; }
    PricePanel { height: 2fr; border: round $accent; }
    EventPanel { height: 1fr; border: round $accent; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("p", "toggle_pause", "Pause"),
        Binding("c", "clear_log", "Clear"),
        Binding("r", "reset", "Reset"),
    ]

    def __init__(self, tracker: Tracker, refresh_interval: float = 1.0):
        super().__init__()
        self.tracker = tracker
        self._refresh_interval = refresh_interval
        self._paused = False
        self._refresh_timer: Timer | None = None
        self._closing = False

    def compose(self) -> ComposeResult:
        with Horizontal(id="header-bar"):
            yield Static("HDV_Tracker", id="status-label")
            yield Static("", id="rate-label")
        yield HealthPanel()
        yield PricePanel()
        yield EventPanel()
        yield Footer()

    def on_mount(self) -> None:
        self.tracker.consumer.on_observations(self._on_observations)
        self.tracker.consumer.breaker.on_state_change(self._on_circuit_change)
        self._refresh_timer = self.set_interval(self._refresh_interval, self._periodic_refresh)
        self.tracker.start()
        self.query_one(EventPanel).log_message(f"Tracker started ({self.tracker.mode})", "bold")
        self._periodic_refresh()

    async def on_unmount(self) -> None:
        # The worker drains on stop and may still call back into the loop.
        self._closing = True
        if self._refresh_timer is not None:
            self._refresh_timer.stop()
        await asyncio.to_thread(self.tracker.stop)

    # ---- Callbacks from pipeline threads ----

    def _on_observations(self, observations: list[PriceObservation]) -> None:
        if self._closing:
            return
        self.call_from_thread(self._show_observations, observations)

    def _on_circuit_change(self, old: CircuitState, new: CircuitState) -> None:
        if self._closing:
            return
        self.call_from_thread(self._show_circuit, old, new)

    def _show_circuit(self, old: CircuitState, new: CircuitState) -> None:
        if self._closing:
            return
        self.query_one(EventPanel).log_circuit(old, new)

    def _show_observations(self, observations: list[PriceObservation]) -> None:
        if self._closing:
            return
        self.query_one(PricePanel).add_observations(observations)
        self.query_one(EventPanel).log_prices(observations)

    # ---- UI updates ----

    def _update_header(self) -> None:
        status: Static = self.query_one("#status-label", Static)
        rate_label: Static = self.query_one("#rate-label", Static)
        mode = self.tracker.mode
        if self.tracker.replay and not self.tracker.capturing:
            mode += " DONE"
        paused = " [PAUSED]" if self._paused else ""
        status.update(f"HDV_Tracker | {mode}{paused}")
        prices = self.query_one(PricePanel)
        rate_label.update(f"{prices.tracked} prices tracked")

    def _periodic_refresh(self) -> None:
        self._update_header()
        self.query_one(HealthPanel).refresh_health(self.tracker.health())
        if not self._paused:
            self.query_one(PricePanel).refresh_prices()

    # ---- Actions ----

    def action_toggle_pause(self) -> None:
        self._paused = not self._paused
        self._update_header()
        self.notify("Paused" if self._paused else "Resumed")

    def action_clear_log(self) -> None:
        self.query_one(EventPanel).clear_log()

    def action_reset(self) -> None:
        self.tracker.consumer.reset()
        self.query_one(EventPanel).log_message("Breaker and counters reset", "magenta")
