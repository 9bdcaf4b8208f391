"""
Message Framing — header, length field and payload.

Wire layout of one message:

    [header:u16be][length:0-3 bytes be][payload:length bytes]

    header >> 2   = message type id (14 bits)
    header & 0x03 = width of the length field in bytes (0 = empty payload)

Example: header bytes 12 34 -> 0x1234 -> type id 1165, width 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from hdv_tracker.errors import HeaderLengthMismatch, TruncatedInput
from hdv_tracker.protocol.reader import ByteReader, ByteWriter

HEADER_SIZE = 2
MAX_TYPE_ID = 0x3FFF


@dataclass(frozen=True)
class MessageHeader:
    """Decoded message header."""
    message_type_id: int
    length_width: int
    payload_length: int

    @property
    def size(self) -> int:
        """Bytes taken by header + length field."""
        return HEADER_SIZE + self.length_width

    @property
    def frame_size(self) -> int:
        return self.size + self.payload_length


@dataclass(frozen=True)
class Frame:
    """One framed message: type id plus raw payload."""
    message_type_id: int
    payload: bytes

    @property
    def size(self) -> int:
        return len(self.payload)


def split_header(value: int) -> tuple[int, int]:
    """Split a raw u16 header into (message_type_id, length_width)."""
    return value >> 2, value & 0x03


def read_header(reader: ByteReader) -> MessageHeader:
    """Read header + length field. The cursor ends at the first payload byte."""
    message_type_id, width = split_header(reader.read_u16())
    payload_length = reader.read_uint(width)
    return MessageHeader(message_type_id, width, payload_length)


def read_frame(reader: ByteReader) -> Frame:
    """Read one complete frame from the reader.

    Raises HeaderLengthMismatch if fewer payload bytes are available
    than the header declares. The cursor is restored on failure.
    """
    start = reader.position
    try:
        header = read_header(reader)
    except TruncatedInput:
        reader.seek(start)
        raise
    if reader.remaining() < header.payload_length:
        available = reader.remaining()
        reader.seek(start)
        raise HeaderLengthMismatch(
            f"message {header.message_type_id} declares {header.payload_length} "
            f"payload byte(s), {available} available"
        )
    return Frame(header.message_type_id, reader.read_bytes(header.payload_length))


def iter_frames(data: bytes) -> Iterator[Frame]:
    """Yield every frame in a buffer that may hold several coalesced messages."""
    reader = ByteReader(data)
    while reader.has_remaining():
        yield read_frame(reader)


def frame_size(buffer: bytes | bytearray) -> int | None:
    """Total size of the frame at the start of `buffer`, or None if the
    header / length field is not complete yet."""
    if len(buffer) < HEADER_SIZE:
        return None
    _, width = split_header(int.from_bytes(buffer[:HEADER_SIZE], "big"))
    if len(buffer) < HEADER_SIZE + width:
        return None
    payload_length = int.from_bytes(buffer[HEADER_SIZE:HEADER_SIZE + width], "big")
    return HEADER_SIZE + width + payload_length


def length_width_for(payload_length: int) -> int:
    """Smallest length-field width able to carry `payload_length`."""
    if payload_length == 0:
        return 0
    if payload_length <= 0xFF:
        return 1
    if payload_length <= 0xFFFF:
        return 2
    if payload_length <= 0xFFFFFF:
        return 3
    raise ValueError(f"payload too large for a 3-byte length field: {payload_length}")


def encode_frame(message_type_id: int, payload: bytes = b"") -> bytes:
    """Build a complete frame (used for fixtures, replays and tests)."""
    if not 0 <= message_type_id <= MAX_TYPE_ID:
        raise ValueError(f"message type id out of range: {message_type_id}")
    width = length_width_for(len(payload))
    return (
        ByteWriter()
        .write_u16((message_type_id << 2) | width)
        .write_uint(len(payload), width)
        .write_bytes(payload)
        .getvalue()
    )
