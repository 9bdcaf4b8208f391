"""
HDV_Tracker Dashboard — Panel Widgets

Three panels for the TUI dashboard:
1. HealthPanel  — queue / breaker / counters from a HealthSnapshot
2. PricePanel   — latest price per (item, quantity)
3. EventPanel   — log of emitted prices and breaker transitions
"""

from __future__ import annotations

import time

from rich.text import Text
from textual.containers import Vertical
from textual.widgets import DataTable, RichLog, Static

from hdv_tracker.data.items import category_name, item_name
from hdv_tracker.pipeline.breaker import CircuitState
from hdv_tracker.pipeline.health import HealthSnapshot, HealthStatus
from hdv_tracker.pipeline.prices import PriceObservation


def _fmt_time(ts: float) -> str:
    return time.strftime("%H:%M:%S", time.localtime(ts))


def _fmt_kamas(value: int) -> str:
    return f"{value:,}".replace(",", " ")


_STATUS_COLORS: dict[HealthStatus, str] = {
    HealthStatus.UP: "green",
    HealthStatus.WARNING: "yellow",
    HealthStatus.DOWN: "bold red",
}

_CIRCUIT_COLORS: dict[CircuitState, str] = {
    CircuitState.CLOSED: "green",
    CircuitState.HALF_OPEN: "yellow",
    CircuitState.OPEN: "red",
}


def _bar(pct: float, width: int = 20) -> Text:
    filled = min(width, int(round(pct / 100 * width)))
    color = "red" if pct >= 95 else "yellow" if pct >= 80 else "green"
    text = Text("[", style="bright_black")
    text.append("#" * filled, style=color)
    text.append("." * (width - filled), style="bright_black")
    text.append("]", style="bright_black")
    return text


# ---- 1. Health Panel ----

class HealthPanel(Static):
    """Pipeline health summary."""

    def refresh_health(self, snap: HealthSnapshot) -> None:
        text = Text()
        text.append("Status ", style="bold")
        text.append(snap.status.value, style=_STATUS_COLORS[snap.status])
        text.append("   Circuit ", style="bold")
        text.append(snap.circuit_state.value, style=_CIRCUIT_COLORS[snap.circuit_state])
        if snap.issue:
            text.append(f"   {snap.issue}", style="italic")
        text.append("\nQueue  ", style="bold")
        text.append_text(_bar(snap.utilization_pct))
        text.append(f" {snap.queue_depth}/{snap.queue_capacity} ({snap.utilization_pct:.1f}%)")
        text.append(f"  dropped={snap.dropped_frames}", style="red" if snap.dropped_frames else "bright_black")
        text.append("\nFrames ", style="bold")
        text.append(f"{snap.frames_processed} processed  {snap.frame_rate:.1f}/s  ")
        text.append(f"decode errors={snap.decode_errors}", style="yellow" if snap.decode_errors else "bright_black")
        text.append("\nPrices ", style="bold")
        text.append(f"{snap.observations_emitted} emitted  ")
        text.append(
            f"invalid={snap.invalid_observations}",
            style="yellow" if snap.invalid_observations else "bright_black",
        )
        self.update(text)


# ---- 2. Price Panel ----

class PricePanel(Vertical):
    """Latest observed price per (item, quantity)."""

    MAX_ROWS = 300

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._latest: dict[tuple[int, int], PriceObservation] = {}

    def compose(self):
        table = DataTable(id="price-table")
        table.cursor_type = "row"
        yield table

    def on_mount(self) -> None:
        table: DataTable = self.query_one("#price-table", DataTable)
        table.add_columns("Item", "Category", "Qty", "Price", "Unit", "Seen")

    def add_observations(self, observations: list[PriceObservation]) -> None:
        for obs in observations:
            self._latest[(obs.item_gid, obs.quantity)] = obs

    def refresh_prices(self) -> None:
        table: DataTable = self.query_one("#price-table", DataTable)
        table.clear()
        rows = sorted(self._latest.values(), key=lambda o: o.observed_at, reverse=True)
        for obs in rows[:self.MAX_ROWS]:
            table.add_row(
                Text(item_name(obs.item_gid), style="cyan"),
                Text(category_name(obs.category_id), style="bright_black"),
                Text(f"x{obs.quantity}"),
                Text(_fmt_kamas(obs.price), style="bold yellow"),
                Text(_fmt_kamas(obs.unit_price)),
                Text(_fmt_time(obs.observed_at), style="bright_black"),
            )

    @property
    def tracked(self) -> int:
        return len(self._latest)


# ---- 3. Event Panel ----

class EventPanel(Vertical):
    """Scrolling log of pipeline events."""

    def compose(self):
        yield RichLog(highlight=True, markup=True, max_lines=500, id="event-log")

    def log_prices(self, observations: list[PriceObservation]) -> None:
        log: RichLog = self.query_one("#event-log", RichLog)
        for obs in observations:
            text = Text()
            text.append(f"[{_fmt_time(obs.observed_at)}] ", style="bright_black")
            text.append("PRICE ", style="bold green")
            text.append(item_name(obs.item_gid), style="cyan")
            text.append(f" x{obs.quantity} = {_fmt_kamas(obs.price)}", style="yellow")
            log.write(text)

    def log_circuit(self, old: CircuitState, new: CircuitState) -> None:
        log: RichLog = self.query_one("#event-log", RichLog)
        text = Text()
        text.append(f"[{_fmt_time(time.time())}] ", style="bright_black")
        text.append("CIRCUIT ", style="bold magenta")
        text.append(old.value, style=_CIRCUIT_COLORS[old])
        text.append(" -> ")
        text.append(new.value, style=_CIRCUIT_COLORS[new])
        log.write(text)

    def log_message(self, message: str, style: str = "white") -> None:
        log: RichLog = self.query_one("#event-log", RichLog)
        text = Text()
        text.append(f"[{_fmt_time(time.time())}] ", style="bright_black")
        text.append(message, style=style)
        log.write(text)

    def clear_log(self) -> None:
        log: RichLog = self.query_one("#event-log", RichLog)
        log.clear()
