"""
Message Codec — turn framed bytes into decoded message variants.

decode() expects exactly one frame; decode_all() walks a buffer that
may hold several coalesced frames. Neither raises for bad input: every
DecodeError is handed back inside a DecodeResult so one broken frame
never stops the caller's loop.
"""

from __future__ import annotations

import logging
import zlib
from dataclasses import dataclass
from typing import Callable

from hdv_tracker.errors import (
    DecodeError,
    DecompressionFailed,
    HeaderLengthMismatch,
)
from hdv_tracker.protocol.framing import Frame, iter_frames, read_frame, split_header
from hdv_tracker.protocol.messages import (
    DEFAULT_IDS,
    CompressedContainer,
    DecodedMessage,
    ItemPriceDescriptor,
    MarketCategoryMessage,
    MarketListingMessage,
    MessageIds,
    UnknownMessage,
)
from hdv_tracker.protocol.reader import ByteReader

log = logging.getLogger(__name__)

# Limits for compressed containers.
MAX_INFLATED_SIZE = 4 * 1024 * 1024
MAX_CONTAINER_DEPTH = 4


@dataclass(frozen=True)
class DecodeResult:
    """Either a decoded message or the error that stopped it."""
    message_type_id: int
    message: DecodedMessage | None = None
    error: DecodeError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


PayloadDecoder = Callable[[ByteReader], DecodedMessage]


# ---- Payload decoders ----

def decode_market_listing(reader: ByteReader) -> MarketListingMessage:
    count = reader.read_var_int()
    items: list[ItemPriceDescriptor] = []
    for _ in range(count):
        gid = reader.read_var_int()
        category = reader.read_var_int()
        tier_count = reader.read_var_int()
        prices = tuple(reader.read_var_long() for _ in range(tier_count))
        items.append(ItemPriceDescriptor(gid, category, prices))
    return MarketListingMessage(tuple(items))


def decode_market_category(reader: ByteReader) -> MarketCategoryMessage:
    category = reader.read_var_int()
    description = reader.read_utf() if reader.has_remaining() else None
    return MarketCategoryMessage(category, description)


def inflate(data: bytes, limit: int = MAX_INFLATED_SIZE) -> bytes:
    """zlib-inflate with an output cap. Raises DecompressionFailed."""
    inflater = zlib.decompressobj()
    try:
        out = inflater.decompress(data, limit)
    except zlib.error as e:
        raise DecompressionFailed(f"zlib: {e}") from e
    if inflater.unconsumed_tail or (len(out) >= limit and not inflater.eof):
        raise DecompressionFailed(f"inflated size exceeds {limit} bytes")
    if not inflater.eof:
        raise DecompressionFailed("compressed stream is incomplete")
    return out


# ---- Codec ----

class MessageCodec:
    """Dispatches message type ids to payload decoders."""

    def __init__(self, ids: MessageIds = DEFAULT_IDS, max_inflated: int = MAX_INFLATED_SIZE):
        self.ids = ids
        self.max_inflated = max_inflated
        self._decoders: dict[int, PayloadDecoder] = {
            ids.listing: decode_market_listing,
            ids.category: decode_market_category,
        }

    def register(self, message_type_id: int, decoder: PayloadDecoder) -> None:
        """Add or replace the decoder for a message id."""
        self._decoders[message_type_id] = decoder

    def is_known(self, message_type_id: int) -> bool:
        return message_type_id in self._decoders or message_type_id == self.ids.container

    # ---- Public entry points ----

    def decode(self, raw: bytes) -> DecodeResult:
        """Decode a buffer holding exactly one frame."""
        reader = ByteReader(raw)
        try:
            frame = read_frame(reader)
            if reader.has_remaining():
                raise HeaderLengthMismatch(
                    f"{reader.remaining()} trailing byte(s) after message {frame.message_type_id}"
                )
            return DecodeResult(frame.message_type_id, message=self.decode_frame(frame))
        except DecodeError as e:
            log.debug("Decode failed (%s): %s", e.kind, e)
            return DecodeResult(self._peek_type_id(raw), error=e)

    def decode_all(self, raw: bytes) -> list[DecodeResult]:
        """Decode every frame in `raw`, stopping at the first framing error."""
        results: list[DecodeResult] = []
        frames = iter_frames(raw)
        while True:
            try:
                frame = next(frames)
            except StopIteration:
                break
            except DecodeError as e:
                log.debug("Framing failed after %d frame(s): %s", len(results), e)
                results.append(DecodeResult(-1, error=e))
                break
            try:
                results.append(DecodeResult(frame.message_type_id, message=self.decode_frame(frame)))
            except DecodeError as e:
                log.debug("Decode of message %d failed (%s): %s", frame.message_type_id, e.kind, e)
                results.append(DecodeResult(frame.message_type_id, error=e))
        return results

    def decode_frame(self, frame: Frame, depth: int = 0) -> DecodedMessage:
        """Decode one frame's payload. Raises DecodeError."""
        if frame.message_type_id == self.ids.container:
            return self._decode_container(frame, depth)

        decoder = self._decoders.get(frame.message_type_id)
        if decoder is None:
            log.debug("Unknown message id %d (%d bytes)", frame.message_type_id, frame.size)
            return UnknownMessage(frame.message_type_id, frame.payload)

        reader = ByteReader(frame.payload)
        message = decoder(reader)
        if reader.has_remaining():
            raise HeaderLengthMismatch(
                f"message {frame.message_type_id} declares {frame.size} byte(s), "
                f"decoder consumed {reader.position}"
            )
        return message

    def _decode_container(self, frame: Frame, depth: int) -> CompressedContainer:
        if depth >= MAX_CONTAINER_DEPTH:
            raise DecompressionFailed(f"containers nested deeper than {MAX_CONTAINER_DEPTH}")
        reader = ByteReader(frame.payload)
        compressed = reader.read_byte_array()
        if reader.has_remaining():
            raise HeaderLengthMismatch(
                f"container declares {frame.size} byte(s), decoder consumed {reader.position}"
            )
        inner = inflate(compressed, self.max_inflated)
        log.debug("Inflated container %d -> %d bytes", len(compressed), len(inner))
        messages = tuple(self.decode_frame(f, depth + 1) for f in iter_frames(inner))
        return CompressedContainer(len(compressed), messages)

    # ---- Header peeks ----

    @staticmethod
    def _peek_type_id(raw: bytes) -> int:
        if len(raw) < 2:
            return -1
        return split_header(int.from_bytes(raw[:2], "big"))[0]

    def is_market_message(self, raw: bytes) -> bool:
        """True if the frame header names a listing or category message."""
        return self._peek_type_id(raw) in (self.ids.listing, self.ids.category)

    def contains_price_data(self, raw: bytes) -> bool:
        """True if the frame header names a listing message."""
        return self._peek_type_id(raw) == self.ids.listing


def describe(result: DecodeResult, ids: MessageIds = DEFAULT_IDS) -> str:
    """One-line summary for logs and the dashboard."""
    name = ids.name_of(result.message_type_id)
    if result.error is not None:
        return f"{name} (id={result.message_type_id}) error={result.error.kind}: {result.error}"
    match result.message:
        case MarketListingMessage(items=items):
            tiers = sum(1 for item in items for p in item.tier_prices if p > 0)
            return f"{name} items={len(items)} prices={tiers}"
        case MarketCategoryMessage(category_id=cid, description=desc):
            return f"{name} category={cid}" + (f" '{desc}'" if desc else "")
        case CompressedContainer(compressed_size=size, messages=inner):
            return f"{name} {size}b -> {len(inner)} message(s)"
        case UnknownMessage(payload=payload):
            return f"{name} (id={result.message_type_id}) {len(payload)}b"
        case _:
            return name
