"""Tests for dashboard lifecycle: the tracker drains cleanly when the app exits."""

import asyncio
import threading
import time

from hdv_tracker.config import TrackerConfig, build_parser
from hdv_tracker.dashboard.app import HDVDashboard
from hdv_tracker.sniffer.capture import HDVPacket
from hdv_tracker.sniffer.session import CaptureSession
from hdv_tracker.tracker import Tracker


class GatedSink:
    """PriceSink whose calls block until the gate opens."""

    def __init__(self):
        self.gate = threading.Event()
        self.observations: list = []
        self._lock = threading.Lock()

    def persist(self, observations):
        self.persist_batch(observations)

    def persist_batch(self, observations):
        self.gate.wait(5.0)
        with self._lock:
            self.observations.extend(observations)


def _tracker(tmp_path, make_listing, sink, count: int) -> Tracker:
    session = CaptureSession(name="dash")
    for i in range(count):
        session.packets.append(HDVPacket(
            timestamp=1000.0 + i,
            direction="S2C",
            src_ip="172.65.1.10",
            dst_ip="192.168.1.100",
            src_port=5555,
            dst_port=54321,
            payload=make_listing([(289 + i, 15, [100 + i, 0, 0])]),
        ))
    path = session.save(tmp_path)
    args = build_parser().parse_args(["--replay", str(path), "--poll-timeout", "0.05", "--dashboard"])
    return Tracker(TrackerConfig.from_args(args), sink=sink)


def test_exit_drains_queue_without_hanging(tmp_path, make_listing):
    sink = GatedSink()
    tracker = _tracker(tmp_path, make_listing, sink, count=20)
    app = HDVDashboard(tracker, refresh_interval=0.1)

    async def run() -> float:
        async with app.run_test() as pilot:
            await pilot.pause()
            threading.Timer(0.5, sink.gate.set).start()
            started = time.monotonic()
        return time.monotonic() - started

    elapsed = asyncio.run(run())

    assert elapsed < 5.0
    assert tracker.queue.size() == 0
    assert len(sink.observations) == 20
    assert not tracker.worker.running
