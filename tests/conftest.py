"""Shared fixtures for HDV_Tracker tests."""

import zlib

import pytest

from hdv_tracker.protocol.framing import encode_frame
from hdv_tracker.protocol.messages import DEFAULT_IDS
from hdv_tracker.protocol.reader import ByteWriter
from hdv_tracker.sniffer.capture import HDVPacket


class FakeClock:
    """Manually advanced clock for breaker / extraction tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSink:
    """PriceSink that remembers every call."""

    def __init__(self):
        self.calls: list[tuple[str, list]] = []

    def persist(self, observations):
        self.calls.append(("persist", list(observations)))

    def persist_batch(self, observations):
        self.calls.append(("persist_batch", list(observations)))

    @property
    def observations(self) -> list:
        return [o for _, obs in self.calls for o in obs]


class FailingSink(RecordingSink):
    """PriceSink that raises until `healthy` is set."""

    def __init__(self):
        super().__init__()
        self.healthy = False
        self.attempts = 0

    def persist(self, observations):
        self.attempts += 1
        if not self.healthy:
            raise ConnectionError("database unreachable")
        super().persist(observations)

    def persist_batch(self, observations):
        self.attempts += 1
        if not self.healthy:
            raise ConnectionError("database unreachable")
        super().persist_batch(observations)


def listing_payload(items: list[tuple[int, int, list[int]]]) -> bytes:
    w = ByteWriter().write_var_int(len(items))
    for gid, category, prices in items:
        w.write_var_int(gid).write_var_int(category).write_var_int(len(prices))
        for p in prices:
            w.write_var_long(p)
    return w.getvalue()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_listing():
    """Factory: [(gid, category, [prices...]), ...] -> framed listing message."""
    def _make(items):
        return encode_frame(DEFAULT_IDS.listing, listing_payload(items))
    return _make


@pytest.fixture
def make_category():
    def _make(category_id: int, description: str | None = None):
        w = ByteWriter().write_var_int(category_id)
        if description is not None:
            w.write_utf(description)
        return encode_frame(DEFAULT_IDS.category, w.getvalue())
    return _make


@pytest.fixture
def make_container():
    """Factory: inner frame bytes -> framed compressed container."""
    def _make(inner: bytes):
        compressed = zlib.compress(inner)
        return encode_frame(DEFAULT_IDS.container, ByteWriter().write_byte_array(compressed).getvalue())
    return _make


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def failing_sink() -> FailingSink:
    return FailingSink()


@pytest.fixture
def sample_s2c_packet() -> HDVPacket:
    """A server→client segment carrying one empty-payload frame."""
    return HDVPacket(
        timestamp=1000.5,
        direction="S2C",
        src_ip="172.65.1.10",
        dst_ip="192.168.1.100",
        src_port=5555,
        dst_port=54321,
        payload=b"\x12\x34Hello",
        seq=2000,
        ack=1012,
        flags="PA",
    )
