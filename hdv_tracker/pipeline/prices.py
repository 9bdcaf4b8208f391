"""
Price Extraction — decoded listings to normalized observations.

Array position implies lot size: index 0/1/2 -> quantity 1/10/100.
Zero prices mean the lot is not offered and are never emitted.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable

from hdv_tracker.protocol.messages import (
    TIER_QUANTITIES,
    DecodedMessage,
    ItemPriceDescriptor,
    MarketListingMessage,
    flatten,
)

log = logging.getLogger(__name__)

VALID_QUANTITIES = frozenset(TIER_QUANTITIES)
MAX_PRICE = (1 << 63) - 1

Clock = Callable[[], float]


@dataclass(frozen=True)
class PriceObservation:
    """One lot price seen in the marketplace."""
    item_gid: int
    category_id: int
    quantity: int
    price: int
    observed_at: float

    @property
    def unit_price(self) -> int:
        return self.price // self.quantity if self.quantity > 0 else 0

    @property
    def is_bulk(self) -> bool:
        return self.quantity >= 10

    def format_price(self) -> str:
        return f"{self.price} kamas (x{self.quantity})"

    def to_dict(self) -> dict:
        return {
            "item_gid": self.item_gid,
            "category_id": self.category_id,
            "quantity": self.quantity,
            "price": self.price,
            "observed_at": self.observed_at,
        }


@dataclass
class ExtractionResult:
    observations: list[PriceObservation]
    discarded_tiers: int = 0


def extract_descriptor(
    item: ItemPriceDescriptor, observed_at: float,
) -> ExtractionResult:
    """One observation per non-zero tier; tiers past the third are discarded."""
    observations = []
    discarded = 0
    for index, price in enumerate(item.tier_prices):
        if index >= len(TIER_QUANTITIES):
            if price:
                discarded += 1
            continue
        if price == 0:
            continue
        observations.append(PriceObservation(
            item_gid=item.object_gid,
            category_id=item.category_id,
            quantity=TIER_QUANTITIES[index],
            price=price,
            observed_at=observed_at,
        ))
    return ExtractionResult(observations, discarded)


def extract_prices(message: DecodedMessage, clock: Clock = time.time) -> ExtractionResult:
    """Extract every observation carried by a message (containers included)."""
    now = clock()
    result = ExtractionResult([])
    for leaf in flatten(message):
        if not isinstance(leaf, MarketListingMessage):
            continue
        for item in leaf.items:
            part = extract_descriptor(item, now)
            result.observations.extend(part.observations)
            result.discarded_tiers += part.discarded_tiers
    if result.discarded_tiers:
        log.debug("Discarded %d tier price(s) beyond the 100-lot", result.discarded_tiers)
    return result


def is_valid(obs: PriceObservation) -> bool:
    return obs.quantity in VALID_QUANTITIES and 0 < obs.price <= MAX_PRICE


def validate(observations: Iterable[PriceObservation]) -> tuple[list[PriceObservation], int]:
    """Gate before the sink. Returns (valid, rejected_count)."""
    valid: list[PriceObservation] = []
    rejected = 0
    for obs in observations:
        if is_valid(obs):
            valid.append(obs)
        else:
            rejected += 1
            log.warning(
                "Dropping invalid observation: gid=%d qty=%d price=%d",
                obs.item_gid, obs.quantity, obs.price,
            )
    return valid, rejected
