"""Post-fetch filter chain applied to raw listings before persistence.

Bounds are inclusive: a value equal to a min or max passes. When a bound
is set and the listing lacks the value, the listing is rejected.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, List, Optional, Sequence, Tuple

from propwatch.scrapers.base import RawListing


@dataclass(frozen=True)
class ListingFilters:
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    min_rooms: Optional[int] = None
    max_rooms: Optional[int] = None
    min_area: Optional[Decimal] = None
    max_area: Optional[Decimal] = None
    # None means every property type is allowed
    property_types: Optional[Tuple[str, ...]] = None

    @classmethod
    def from_config(cls, config: Any) -> "ListingFilters":
        """Build filters from a ScraperConfig row."""
        property_types = config.property_types
        return cls(
            min_price=config.min_price,
            max_price=config.max_price,
            min_rooms=config.min_rooms,
            max_rooms=config.max_rooms,
            min_area=config.min_area,
            max_area=config.max_area,
            property_types=tuple(t.upper() for t in property_types) if property_types is not None else None,
        )


Predicate = Callable[[RawListing], bool]


def _at_least(attr: str, bound) -> Predicate:
    def check(listing: RawListing) -> bool:
        value = getattr(listing, attr)
        return value is not None and value >= bound

    check.__name__ = f"min_{attr}"
    return check


def _at_most(attr: str, bound) -> Predicate:
    def check(listing: RawListing) -> bool:
        value = getattr(listing, attr)
        return value is not None and value <= bound

    check.__name__ = f"max_{attr}"
    return check


def _allowed_type(allowed: Sequence[str]) -> Predicate:
    def check(listing: RawListing) -> bool:
        if listing.property_type is None:
            return False
        return listing.property_type.value in allowed

    check.__name__ = "property_type"
    return check


def build_chain(filters: ListingFilters) -> List[Predicate]:
    """Ordered predicates for the bounds that are actually set."""
    chain: List[Predicate] = []
    if filters.min_price is not None:
        chain.append(_at_least("price", filters.min_price))
    if filters.max_price is not None:
        chain.append(_at_most("price", filters.max_price))
    if filters.min_rooms is not None:
        chain.append(_at_least("rooms", filters.min_rooms))
    if filters.max_rooms is not None:
        chain.append(_at_most("rooms", filters.max_rooms))
    if filters.min_area is not None:
        chain.append(_at_least("area_m2", filters.min_area))
    if filters.max_area is not None:
        chain.append(_at_most("area_m2", filters.max_area))
    if filters.property_types is not None:
        chain.append(_allowed_type(filters.property_types))
    return chain


def passes_filters(listing: RawListing, chain: Sequence[Predicate]) -> bool:
    """True if the listing satisfies every predicate; stops at the first failure."""
    return all(predicate(listing) for predicate in chain)
