"""Change detection between a stored listing and a freshly scraped one.

reconcile() is pure: it takes the current stored state (or None) and the
incoming RawListing and returns the state to persist plus a change
classification. The catalog store performs the actual write.
"""

import enum
import uuid
from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, NamedTuple, Optional, Tuple

from propwatch.scrapers.base import RawListing

# Fields copied from every scrape
DESCRIPTIVE_FIELDS = (
    "title",
    "description",
    "price",
    "operation_type",
    "property_type",
    "rooms",
    "bathrooms",
    "area_m2",
    "address",
    "city",
    "province",
    "postal_code",
    "zone",
    "latitude",
    "longitude",
    "image_urls",
    "url",
)

# Known values are kept when a later scrape doesn't carry them
PRESERVED_WHEN_MISSING = frozenset(
    {"postal_code", "description", "latitude", "longitude", "province", "price"}
)

_CENTS = Decimal("0.01")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChangeKind(str, enum.Enum):
    NEW = "NEW"
    UNCHANGED = "UNCHANGED"
    UPDATED = "UPDATED"
    PRICE_CHANGED = "PRICE_CHANGED"

    @property
    def is_update(self) -> bool:
        return self is not ChangeKind.NEW


@dataclass(frozen=True)
class ListingSnapshot:
    """Detached, immutable view of a persisted listing."""

    external_id: str
    source: str
    first_seen_at: datetime
    last_seen_at: datetime
    id: Optional[uuid.UUID] = None
    is_active: bool = True
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    price_per_m2: Optional[Decimal] = None
    operation_type: Optional[str] = None
    property_type: Optional[str] = None
    rooms: Optional[int] = None
    bathrooms: Optional[int] = None
    area_m2: Optional[Decimal] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    zone: Optional[str] = None
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None
    image_urls: Tuple[str, ...] = ()
    url: Optional[str] = None

    @classmethod
    def from_model(cls, model: Any) -> "ListingSnapshot":
        """Build a snapshot from a Listing ORM row (or anything with the same attributes)."""
        values = {f.name: getattr(model, f.name) for f in fields(cls)}
        values["image_urls"] = tuple(values["image_urls"] or ())
        return cls(**values)

    def column_values(self) -> Dict[str, Any]:
        """Values to write to the Listing row, id excluded."""
        values = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "id"}
        values["image_urls"] = list(self.image_urls)
        return values


class ReconcileResult(NamedTuple):
    state: ListingSnapshot
    kind: ChangeKind
    # Price to append to the history, if any
    record_price: Optional[Decimal]


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, enum.Enum) else value


def _incoming_values(incoming: RawListing) -> Dict[str, Any]:
    values = {name: getattr(incoming, name) for name in DESCRIPTIVE_FIELDS}
    values["operation_type"] = _enum_value(values["operation_type"])
    values["property_type"] = _enum_value(values["property_type"])
    values["image_urls"] = tuple(values["image_urls"])
    return values


def price_per_m2(price: Optional[Decimal], area: Optional[Decimal]) -> Optional[Decimal]:
    if price is None or not area or area <= 0:
        return None
    return (Decimal(price) / Decimal(area)).quantize(_CENTS, rounding=ROUND_HALF_UP)


def reconcile(
    existing: Optional[ListingSnapshot],
    incoming: RawListing,
    now: Optional[datetime] = None,
) -> ReconcileResult:
    """Merge an incoming scrape into the stored state.

    Args:
        existing: Stored listing with the same (external_id, source), or None
        incoming: Freshly scraped listing
        now: Observation time, defaults to the current UTC time

    Returns:
        ReconcileResult. kind is NEW for an unseen listing; PRICE_CHANGED when
        a known price differs; UPDATED when any other descriptive field
        changed; UNCHANGED otherwise. record_price is set whenever a price
        history entry is due: the first known price, or a differing one.
    """
    now = now or utcnow()
    values = _incoming_values(incoming)

    if existing is None:
        state = ListingSnapshot(
            external_id=incoming.external_id,
            source=incoming.source,
            first_seen_at=now,
            last_seen_at=now,
            is_active=True,
            price_per_m2=price_per_m2(values["price"], values["area_m2"]),
            **values,
        )
        return ReconcileResult(state, ChangeKind.NEW, incoming.price)

    for name in PRESERVED_WHEN_MISSING:
        if values[name] is None:
            values[name] = getattr(existing, name)

    state = replace(
        existing,
        is_active=True,
        last_seen_at=now,
        price_per_m2=price_per_m2(values["price"], values["area_m2"]),
        **values,
    )

    price_differs = incoming.price is not None and incoming.price != existing.price
    record_price = incoming.price if price_differs else None

    if price_differs and existing.price is not None:
        kind = ChangeKind.PRICE_CHANGED
    elif any(getattr(state, name) != getattr(existing, name) for name in DESCRIPTIVE_FIELDS):
        kind = ChangeKind.UPDATED
    else:
        kind = ChangeKind.UNCHANGED

    return ReconcileResult(state, kind, record_price)
