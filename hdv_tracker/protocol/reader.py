"""
Binary Reader / Writer — primitive encodings of the game protocol.

All fixed-width integers are big-endian (network order). Variable-length
integers use 7 data bits per byte, least significant group first, with
the high bit as a continuation flag:

    300   -> AC 02
    16384 -> 80 80 01

Reads never move past the end of the buffer: a short read raises
TruncatedInput and leaves the cursor where it was.
"""

from __future__ import annotations

import struct

from hdv_tracker.errors import MalformedString, MalformedVarInt, TruncatedInput

# (max encoded bytes, exclusive upper bound) per varint width
VAR_SHORT = (3, 1 << 16)
VAR_INT = (5, 1 << 32)
VAR_LONG = (10, 1 << 64)


class ByteReader:
    """Cursor over an immutable byte buffer."""

    def __init__(self, data: bytes | bytearray | memoryview):
        self._data = bytes(data)
        self._pos = 0

    # ---- Cursor ----

    @property
    def position(self) -> int:
        return self._pos

    def remaining(self) -> int:
        return len(self._data) - self._pos

    def has_remaining(self) -> bool:
        return self._pos < len(self._data)

    def seek(self, position: int) -> None:
        if not 0 <= position <= len(self._data):
            raise ValueError(f"position {position} outside buffer of {len(self._data)} bytes")
        self._pos = position

    def __len__(self) -> int:
        return len(self._data)

    def _take(self, n: int) -> bytes:
        if n < 0:
            raise ValueError(f"negative read length: {n}")
        if self.remaining() < n:
            raise TruncatedInput(self._pos, n, self.remaining())
        chunk = self._data[self._pos:self._pos + n]
        self._pos += n
        return chunk

    def skip(self, n: int) -> None:
        self._take(n)

    # ---- Fixed width ----

    def read_bytes(self, n: int) -> bytes:
        return self._take(n)

    def read_u8(self) -> int:
        return self._take(1)[0]

    def read_bool(self) -> bool:
        return self.read_u8() != 0

    def read_u16(self) -> int:
        return struct.unpack(">H", self._take(2))[0]

    def read_i16(self) -> int:
        return struct.unpack(">h", self._take(2))[0]

    def read_u32(self) -> int:
        return struct.unpack(">I", self._take(4))[0]

    def read_i32(self) -> int:
        return struct.unpack(">i", self._take(4))[0]

    def read_i64(self) -> int:
        return struct.unpack(">q", self._take(8))[0]

    def read_f64(self) -> float:
        return struct.unpack(">d", self._take(8))[0]

    def read_uint(self, width: int) -> int:
        """Big-endian unsigned integer of an arbitrary byte width (0 reads nothing)."""
        if width == 0:
            return 0
        return int.from_bytes(self._take(width), "big")

    # ---- Variable length ----

    def _read_var(self, limits: tuple[int, int], label: str) -> int:
        max_bytes, bound = limits
        start = self._pos
        result = 0
        for index in range(max_bytes):
            if not self.has_remaining():
                self._pos = start
                raise TruncatedInput(start, index + 1, len(self._data) - start)
            b = self._data[self._pos]
            self._pos += 1
            result |= (b & 0x7F) << (7 * index)
            if not b & 0x80:
                if result >= bound:
                    self._pos = start
                    raise MalformedVarInt(f"{label} at offset {start} overflows: {result}")
                return result
        self._pos = start
        raise MalformedVarInt(f"{label} at offset {start} longer than {max_bytes} bytes")

    def read_var_short(self) -> int:
        return self._read_var(VAR_SHORT, "VarShort")

    def read_var_int(self) -> int:
        return self._read_var(VAR_INT, "VarInt")

    def read_var_long(self) -> int:
        return self._read_var(VAR_LONG, "VarLong")

    # ---- Strings / arrays ----

    def _decode_utf8(self, raw: bytes, start: int) -> str:
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            self._pos = start
            raise MalformedString(f"invalid UTF-8 at offset {start}: {e.reason}") from e

    def read_utf(self) -> str:
        """String with a u16 length prefix."""
        start = self._pos
        length = self.read_u16()
        try:
            raw = self._take(length)
        except TruncatedInput:
            self._pos = start
            raise
        return self._decode_utf8(raw, start)

    def read_utf_var(self) -> str:
        """String with a VarInt length prefix."""
        start = self._pos
        length = self.read_var_int()
        try:
            raw = self._take(length)
        except TruncatedInput:
            self._pos = start
            raise
        return self._decode_utf8(raw, start)

    def read_byte_array(self) -> bytes:
        """Byte array with a VarInt length prefix."""
        start = self._pos
        length = self.read_var_int()
        try:
            return self._take(length)
        except TruncatedInput:
            self._pos = start
            raise

    # ---- Debug ----

    def remaining_hex(self) -> str:
        return self._data[self._pos:].hex(" ")

    def __repr__(self) -> str:
        return f"ByteReader(pos={self._pos}, remaining={self.remaining()}, size={len(self._data)})"


# ---- Encoding ----

def _encode_var(value: int, limits: tuple[int, int], label: str) -> bytes:
    _, bound = limits
    if value < 0 or value >= bound:
        raise ValueError(f"{label} out of range: {value}")
    out = bytearray()
    while value > 0x7F:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def encode_var_short(value: int) -> bytes:
    return _encode_var(value, VAR_SHORT, "VarShort")


def encode_var_int(value: int) -> bytes:
    return _encode_var(value, VAR_INT, "VarInt")


def encode_var_long(value: int) -> bytes:
    return _encode_var(value, VAR_LONG, "VarLong")


class ByteWriter:
    """Builds buffers in the same encodings ByteReader reads."""

    def __init__(self):
        self._buf = bytearray()

    def write_bytes(self, data: bytes) -> ByteWriter:
        self._buf.extend(data)
        return self

    def write_u8(self, value: int) -> ByteWriter:
        self._buf.append(value & 0xFF)
        return self

    def write_u16(self, value: int) -> ByteWriter:
        self._buf.extend(struct.pack(">H", value))
        return self

    def write_uint(self, value: int, width: int) -> ByteWriter:
        if width:
            self._buf.extend(value.to_bytes(width, "big"))
        return self

    def write_var_int(self, value: int) -> ByteWriter:
        self._buf.extend(encode_var_int(value))
        return self

    def write_var_long(self, value: int) -> ByteWriter:
        self._buf.extend(encode_var_long(value))
        return self

    def write_utf(self, text: str) -> ByteWriter:
        raw = text.encode("utf-8")
        self.write_u16(len(raw))
        self._buf.extend(raw)
        return self

    def write_utf_var(self, text: str) -> ByteWriter:
        raw = text.encode("utf-8")
        self.write_var_int(len(raw))
        self._buf.extend(raw)
        return self

    def write_byte_array(self, data: bytes) -> ByteWriter:
        self.write_var_int(len(data))
        self._buf.extend(data)
        return self

    def getvalue(self) -> bytes:
        return bytes(self._buf)

    def __len__(self) -> int:
        return len(self._buf)
