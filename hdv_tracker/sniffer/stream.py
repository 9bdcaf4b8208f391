"""
Message Stream Reassembler — rebuild protocol frames from TCP segments.

TCP can split a frame across segments or pack several frames into one.
This module:
1. Buffers incoming TCP data per direction
2. Cuts complete frames using the 2-byte header + variable length field
3. Emits each frame, header included, to subscribers

A frame whose declared size exceeds max_frame_size is treated as a lost
boundary: skip one byte and retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from hdv_tracker.protocol.framing import frame_size

log = logging.getLogger(__name__)

DEFAULT_MAX_FRAME_SIZE = 1 << 20


@dataclass
class StreamBuffer:
    """Buffer for one direction of a TCP stream."""
    direction: str
    buffer: bytearray = field(default_factory=bytearray)
    segment_count: int = 0
    frames_emitted: int = 0
    resyncs: int = 0

    def append(self, data: bytes) -> None:
        self.buffer.extend(data)
        self.segment_count += 1

    def consume(self, n: int) -> bytes:
        """Consume n bytes from the front of the buffer."""
        data = bytes(self.buffer[:n])
        del self.buffer[:n]
        return data

    def peek(self, n: int) -> bytes:
        return bytes(self.buffer[:n])

    def clear(self) -> None:
        self.buffer.clear()

    @property
    def size(self) -> int:
        return len(self.buffer)


class MessageStreamReassembler:
    """Reassemble both directions of the game connection into frames."""

    def __init__(self, max_frame_size: int = DEFAULT_MAX_FRAME_SIZE):
        self.max_frame_size = max_frame_size
        self.streams: dict[str, StreamBuffer] = {
            "C2S": StreamBuffer("C2S"),
            "S2C": StreamBuffer("S2C"),
        }
        self.callbacks: list[Callable[[str, bytes], None]] = []

    def on_message(self, callback: Callable[[str, bytes], None]) -> None:
        """Register callback for complete frames. Args: (direction, data)."""
        self.callbacks.append(callback)

    def feed(self, direction: str, data: bytes) -> None:
        """Feed a TCP payload for one direction."""
        stream = self.streams[direction]
        stream.append(data)
        self._try_extract(stream)

    def _try_extract(self, stream: StreamBuffer) -> None:
        while stream.size:
            # 2-byte header + up to 3 length bytes is all frame_size needs
            total = frame_size(stream.peek(5))
            if total is None:
                break  # Need more data
            if total > self.max_frame_size:
                stream.consume(1)
                stream.resyncs += 1
                log.warning(
                    "[%s] declared frame size %d exceeds %d, resyncing",
                    stream.direction, total, self.max_frame_size,
                )
                continue
            if stream.size < total:
                break
            self._emit(stream, stream.consume(total))

    def _emit(self, stream: StreamBuffer, data: bytes) -> None:
        stream.frames_emitted += 1
        for cb in self.callbacks:
            try:
                cb(stream.direction, data)
            except Exception:
                log.exception("Stream callback failed")

    def reset(self, direction: str | None = None) -> None:
        """Drop buffered bytes (e.g. after a reconnect)."""
        targets = [self.streams[direction]] if direction else self.streams.values()
        for s in targets:
            s.clear()

    def stats(self) -> dict:
        return {
            d: {
                "buffered": s.size,
                "tcp_segments": s.segment_count,
                "frames": s.frames_emitted,
                "resyncs": s.resyncs,
            }
            for d, s in self.streams.items()
        }
