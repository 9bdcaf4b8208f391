"""
Capture Session — record live traffic, save it, replay it later.

A recorded session is a JSON file of TCP segments. Replaying it pushes
the segments through a fresh reassembler, so a session behaves like any
other capture source:

    session = CaptureSession.load("captures/hdv.json")
    attach_to_queue(session, queue)
    session.replay()
"""

from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Protocol

from hdv_tracker.pipeline.ingest_queue import IngestQueue, RawFrame

from .capture import FrameCallback, HDVPacket, HDVSniffer
from .stream import MessageStreamReassembler

log = logging.getLogger(__name__)


class CaptureSource(Protocol):
    """Anything that emits complete frames."""

    def on_frame(self, callback: FrameCallback) -> None: ...


def attach_to_queue(source: CaptureSource, queue: IngestQueue, direction: str = "S2C") -> None:
    """Enqueue every frame the source emits. Drops are counted by the queue."""

    def _enqueue(payload: bytes, captured_at: float) -> None:
        queue.enqueue(RawFrame(payload, captured_at, direction))

    source.on_frame(_enqueue)


class CaptureSession:
    """A recording of TCP segments, replayable as a capture source."""

    def __init__(self, name: str = "", directions: tuple[str, ...] = ("S2C",)):
        self.name = name or time.strftime("%Y%m%d_%H%M%S")
        self.directions = directions
        self.packets: list[HDVPacket] = []
        self.frame_callbacks: list[FrameCallback] = []
        self._start_time: float = 0
        self._replay_clock: float = 0

    def record(self, sniffer: HDVSniffer) -> None:
        """Collect every segment the sniffer sees from now on."""
        self._start_time = time.time()
        sniffer.on_packet(self.packets.append)
        log.info("Session '%s' recording", self.name)

    def on_frame(self, callback: FrameCallback) -> None:
        self.frame_callbacks.append(callback)

    def replay(self, speed: float = 0.0, stop_event: threading.Event | None = None) -> int:
        """Feed the recording through a reassembler. Returns frames emitted.

        speed=0 replays as fast as possible; 1.0 keeps recorded timing,
        2.0 plays twice as fast. Setting stop_event ends the replay before
        the next segment.
        """
        stop = stop_event or threading.Event()
        reassembler = MessageStreamReassembler()
        emitted = 0

        def _dispatch(direction: str, data: bytes) -> None:
            nonlocal emitted
            if direction not in self.directions:
                return
            emitted += 1
            for cb in self.frame_callbacks:
                try:
                    cb(data, self._replay_clock)
                except Exception:
                    log.exception("Replay frame callback failed")

        reassembler.on_message(_dispatch)
        log.info("Replaying session '%s' (%d segments)", self.name, len(self.packets))

        prev_ts: float | None = None
        for pkt in self.packets:
            if stop.is_set():
                break
            if speed > 0 and prev_ts is not None:
                delay = (pkt.timestamp - prev_ts) / speed
                if delay > 0 and stop.wait(delay):
                    break
            prev_ts = pkt.timestamp
            self._replay_clock = pkt.timestamp
            reassembler.feed(pkt.direction, pkt.payload)

        leftover = sum(s["buffered"] for s in reassembler.stats().values())
        if leftover:
            log.warning("Replay ended with %d byte(s) of incomplete frame data", leftover)
        if stop.is_set():
            log.info("Replay stopped: %d frame(s)", emitted)
        else:
            log.info("Replay complete: %d frame(s)", emitted)
        return emitted

    def save(self, directory: str | Path = "captures") -> Path:
        """Save session to JSON."""
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        out_path = out_dir / f"{self.name}.json"

        data = {
            "name": self.name,
            "start_time": self._start_time,
            "duration": time.time() - self._start_time if self._start_time else 0,
            "packet_count": len(self.packets),
            "packets": [p.to_dict() for p in self.packets],
        }

        out_path.write_text(json.dumps(data, indent=2))
        log.info("Session saved: %s (%d packets)", out_path, len(self.packets))
        return out_path

    @classmethod
    def load(cls, path: str | Path) -> CaptureSession:
        """Load a saved session for replay."""
        data = json.loads(Path(path).read_text())
        session = cls(name=data["name"])
        session._start_time = data.get("start_time", 0)
        session.packets = [HDVPacket.from_dict(p) for p in data.get("packets", [])]
        return session

    def summary(self) -> str:
        c2s = sum(1 for p in self.packets if p.direction == "C2S")
        s2c = len(self.packets) - c2s
        return (
            f"Session: {self.name}\n"
            f"  Packets: {len(self.packets)} total ({c2s} C2S, {s2c} S2C)\n"
            f"  Bytes: {sum(p.size for p in self.packets)}"
        )
