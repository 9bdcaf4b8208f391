from .reader import ByteReader, ByteWriter
from .framing import Frame, MessageHeader, encode_frame, frame_size, read_frame
from .messages import (
    DEFAULT_IDS, MessageIds, DecodedMessage, ItemPriceDescriptor,
    MarketListingMessage, MarketCategoryMessage, CompressedContainer, UnknownMessage,
)
from .codec import MessageCodec, DecodeResult, describe

__all__ = [
    "ByteReader", "ByteWriter",
    "Frame", "MessageHeader", "encode_frame", "frame_size", "read_frame",
    "DEFAULT_IDS", "MessageIds", "DecodedMessage", "ItemPriceDescriptor",
    "MarketListingMessage", "MarketCategoryMessage", "CompressedContainer", "UnknownMessage",
    "MessageCodec", "DecodeResult", "describe",
]
