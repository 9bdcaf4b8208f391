"""
HDV_Tracker — Runtime Configuration

Plain dataclasses with the tracker defaults; main.py fills them from
the command line.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field

from hdv_tracker.pipeline.consumer import ConsumerConfig
from hdv_tracker.pipeline.ingest_queue import DEFAULT_ENQUEUE_TIMEOUT
from hdv_tracker.protocol.messages import DEFAULT_IDS, MessageIds
from hdv_tracker.sniffer.capture import DEFAULT_PORT


@dataclass
class CaptureConfig:
    iface: str | None = None
    port: int = DEFAULT_PORT
    server_ips: list[str] = field(default_factory=list)
    replay_path: str | None = None
    replay_speed: float = 0.0
    record_dir: str | None = None


@dataclass
class QueueConfig:
    capacity: int = 1000
    enqueue_timeout: float = DEFAULT_ENQUEUE_TIMEOUT
    monitor_interval: float = 5.0


@dataclass
class TrackerConfig:
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    consumer: ConsumerConfig = field(default_factory=ConsumerConfig)
    ids: MessageIds = DEFAULT_IDS
    batch_mode: bool = True
    output: str | None = None
    dashboard: bool = False
    verbose: bool = False

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> TrackerConfig:
        return cls(
            capture=CaptureConfig(
                iface=args.iface,
                port=args.port,
                server_ips=args.server or [],
                replay_path=args.replay,
                replay_speed=args.speed,
                record_dir=args.record,
            ),
            queue=QueueConfig(
                capacity=args.queue_capacity,
                enqueue_timeout=args.enqueue_timeout,
            ),
            consumer=ConsumerConfig(
                batch_size=args.batch_size,
                poll_timeout=args.poll_timeout,
                failure_threshold=args.failure_threshold,
                reset_timeout=args.reset_timeout,
            ),
            ids=MessageIds(
                container=args.container_id,
                category=args.category_id,
                listing=args.listing_id,
            ),
            batch_mode=not args.single,
            output=args.output,
            dashboard=args.dashboard,
            verbose=args.verbose,
        )


def build_parser() -> argparse.ArgumentParser:
    defaults = TrackerConfig()
    parser = argparse.ArgumentParser(description="HDV_Tracker — Dofus Retro marketplace price capture")

    cap = parser.add_argument_group("capture")
    cap.add_argument("--iface", help="Network interface to sniff on")
    cap.add_argument("--port", type=int, default=defaults.capture.port, help="Game server port")
    cap.add_argument("--server", action="append", help="Game server IP (repeatable, default: any)")
    cap.add_argument("--replay", metavar="FILE", help="Replay a recorded session instead of sniffing")
    cap.add_argument("--speed", type=float, default=0.0, help="Replay speed (0 = as fast as possible)")
    cap.add_argument("--record", metavar="DIR", help="Record captured segments to DIR on exit")

    q = parser.add_argument_group("queue / consumer")
    q.add_argument("--queue-capacity", type=int, default=defaults.queue.capacity)
    q.add_argument("--enqueue-timeout", type=float, default=defaults.queue.enqueue_timeout)
    q.add_argument("--batch-size", type=int, default=defaults.consumer.batch_size)
    q.add_argument("--poll-timeout", type=float, default=defaults.consumer.poll_timeout)
    q.add_argument("--failure-threshold", type=int, default=defaults.consumer.failure_threshold)
    q.add_argument("--reset-timeout", type=float, default=defaults.consumer.reset_timeout)
    q.add_argument("--single", action="store_true", help="Consume one frame per sink call")

    ids = parser.add_argument_group("message ids")
    ids.add_argument("--listing-id", type=int, default=defaults.ids.listing)
    ids.add_argument("--category-id", type=int, default=defaults.ids.category)
    ids.add_argument("--container-id", type=int, default=defaults.ids.container)

    parser.add_argument("--output", metavar="FILE", help="Append prices as JSON lines (default: log them)")
    parser.add_argument("--dashboard", action="store_true", help="Run the terminal dashboard")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser
