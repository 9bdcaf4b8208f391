"""
HDV_Tracker — Pipeline Assembly

Wires a capture source to the ingest queue and the consumer worker:

    HDVSniffer / CaptureSession ──attach_to_queue──▶ IngestQueue
                                                        │
                                   IngestWorker ◀───────┘
                                        │
                                  IngestConsumer ──▶ PriceSink

Shutdown order: stop the source, close the queue, stop the worker
(which finishes its batch and drains), then save any recording.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from hdv_tracker.config import TrackerConfig
from hdv_tracker.pipeline.consumer import IngestConsumer, PriceSink
from hdv_tracker.pipeline.health import HealthSnapshot, health_snapshot
from hdv_tracker.pipeline.ingest_queue import IngestQueue
from hdv_tracker.pipeline.sinks import JsonlPriceSink, LoggingPriceSink
from hdv_tracker.pipeline.worker import IngestWorker
from hdv_tracker.protocol.codec import MessageCodec
from hdv_tracker.sniffer.capture import HDVSniffer, log_packet
from hdv_tracker.sniffer.session import CaptureSession, attach_to_queue

log = logging.getLogger(__name__)


def make_sink(config: TrackerConfig) -> PriceSink:
    if config.output:
        return JsonlPriceSink(config.output)
    return LoggingPriceSink()


class Tracker:
    """Owns every pipeline component for one run."""

    def __init__(self, config: TrackerConfig, sink: PriceSink | None = None):
        self.config = config
        self.queue = IngestQueue(config.queue.capacity, config.queue.enqueue_timeout)
        self.codec = MessageCodec(config.ids)
        self.consumer = IngestConsumer(
            self.queue,
            sink or make_sink(config),
            codec=self.codec,
            config=config.consumer,
        )
        self.worker = IngestWorker(
            self.consumer,
            batch_mode=config.batch_mode,
            monitor_interval=config.queue.monitor_interval,
        )

        self.sniffer: HDVSniffer | None = None
        self.replay: CaptureSession | None = None
        self.recording: CaptureSession | None = None
        self._replay_thread: threading.Thread | None = None
        self._stop_replay = threading.Event()
        self._stopped = False

        cap = config.capture
        if cap.replay_path:
            self.replay = CaptureSession.load(cap.replay_path)
            attach_to_queue(self.replay, self.queue)
        else:
            self.sniffer = HDVSniffer(port=cap.port, iface=cap.iface, server_ips=cap.server_ips)
            self.sniffer.on_packet(log_packet)
            attach_to_queue(self.sniffer, self.queue)
            if cap.record_dir:
                self.recording = CaptureSession()
                self.recording.record(self.sniffer)

    @property
    def mode(self) -> str:
        return "REPLAY" if self.replay else "LIVE"

    @property
    def capturing(self) -> bool:
        if self.replay:
            return self._replay_thread is not None and self._replay_thread.is_alive()
        return self.sniffer is not None and self.sniffer.running

    def start(self) -> None:
        self.worker.start()
        if self.replay:
            self._replay_thread = threading.Thread(
                target=self.replay.replay,
                args=(self.config.capture.replay_speed, self._stop_replay),
                name="hdv-replay",
                daemon=True,
            )
            self._replay_thread.start()
        elif self.sniffer:
            self.sniffer.start_background()

    def health(self) -> HealthSnapshot:
        return health_snapshot(self.queue, self.consumer)

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        log.info("Shutting down (%d frame(s) queued)", self.queue.size())
        if self.sniffer:
            self.sniffer.stop()
        self._stop_replay.set()
        if self._replay_thread is not None:
            self._replay_thread.join()
        self.queue.close()
        self.worker.stop()
        if self.recording and self.config.capture.record_dir:
            self.recording.save(Path(self.config.capture.record_dir))
        log.info("Final stats: %s", self.consumer.statistics())
