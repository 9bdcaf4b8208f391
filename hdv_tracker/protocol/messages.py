"""
Protocol Messages — id table and decoded message variants.

The numeric ids below come from a related protocol version and are not
confirmed against live Retro traffic. They live in one table
(MessageIds) so they can be overridden from the command line or in code
without touching the codec.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


# ---- Message id table ----

@dataclass(frozen=True)
class MessageIds:
    """Type ids of the messages the codec understands."""
    container: int = 2
    category: int = 5905
    listing: int = 5904

    def name_of(self, message_type_id: int) -> str:
        if message_type_id == self.listing:
            return "MARKET_LISTING"
        if message_type_id == self.category:
            return "MARKET_CATEGORY"
        if message_type_id == self.container:
            return "DATA_CONTAINER"
        return MESSAGE_NAMES.get(message_type_id, "UNKNOWN")


DEFAULT_IDS = MessageIds()

# Ids seen in captures that we label but never decode.
MESSAGE_NAMES: dict[int, str] = {
    110: "AUTHENTICATION_TICKET",
}


def register_name(message_type_id: int, name: str) -> None:
    """Label a newly identified message id (display only)."""
    MESSAGE_NAMES[message_type_id] = name


# ---- Variants ----

TIER_QUANTITIES: tuple[int, ...] = (1, 10, 100)


@dataclass(frozen=True)
class ItemPriceDescriptor:
    """One item row of a marketplace listing.

    tier_prices[i] is the lot price for TIER_QUANTITIES[i]; 0 means the
    lot size is not offered.
    """
    object_gid: int
    category_id: int
    tier_prices: tuple[int, ...]

    def price_for_quantity(self, quantity: int) -> int:
        try:
            index = TIER_QUANTITIES.index(quantity)
        except ValueError:
            return 0
        return self.tier_prices[index] if index < len(self.tier_prices) else 0


@dataclass(frozen=True)
class MarketListingMessage:
    """Marketplace listing: items with per-lot prices."""
    items: tuple[ItemPriceDescriptor, ...]

    @property
    def item_count(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class MarketCategoryMessage:
    """Marketplace category opened by the client."""
    category_id: int
    description: str | None = None


@dataclass(frozen=True)
class CompressedContainer:
    """zlib-wrapped batch of messages, already decoded."""
    compressed_size: int
    messages: tuple[DecodedMessage, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class UnknownMessage:
    """A message id the codec has no decoder for. Tolerated, not an error."""
    message_type_id: int
    payload: bytes

    @property
    def size(self) -> int:
        return len(self.payload)

    def preview(self, limit: int = 50) -> str:
        if not self.payload:
            return "(empty)"
        text = self.payload[:limit].hex(" ")
        return text + " ..." if len(self.payload) > limit else text


DecodedMessage = Union[
    MarketListingMessage,
    MarketCategoryMessage,
    CompressedContainer,
    UnknownMessage,
]


def flatten(message: DecodedMessage) -> list[DecodedMessage]:
    """Expand containers into the leaf messages they carry, in order."""
    match message:
        case CompressedContainer(messages=inner):
            out: list[DecodedMessage] = []
            for m in inner:
                out.extend(flatten(m))
            return out
        case _:
            return [message]
