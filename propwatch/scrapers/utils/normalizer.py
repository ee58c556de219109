"""Extraction helpers shared by every source scraper.

All parsers return None when nothing usable is found; none of them raise.
Prices and areas use the Spanish convention: "." groups thousands and ","
is the decimal separator ("1.250.000 €", "85,5 m²").
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Iterable, NamedTuple, Optional
from urllib.parse import urljoin

from propwatch.models.listing import PropertyType

_NUMBER_RE = re.compile(r"\d+\.?\d*")
_INT_RE = re.compile(r"\d+")
_POSTAL_CODE_RE = re.compile(r"\b(\d{5})\b")

# Ordered: first keyword found in the title wins
PROPERTY_TYPE_KEYWORDS = [
    ("piso", PropertyType.PISO),
    ("apartamento", PropertyType.APARTAMENTO),
    ("chalet", PropertyType.CHALET),
    ("casa", PropertyType.CASA),
    ("ático", PropertyType.ATICO),
    ("atico", PropertyType.ATICO),
    ("dúplex", PropertyType.DUPLEX),
    ("duplex", PropertyType.DUPLEX),
    ("estudio", PropertyType.ESTUDIO),
    ("loft", PropertyType.LOFT),
]


class LocationInfo(NamedTuple):
    """Source-specific URL slug and the province a location belongs to."""

    slug: str
    province: Optional[str]


def _to_decimal(token: str) -> Optional[Decimal]:
    try:
        return Decimal(token)
    except InvalidOperation:
        return None


class ListingNormalizer:
    """Parsing helpers for the loosely formatted text found on listing cards."""

    @staticmethod
    def parse_price(raw: Optional[str]) -> Optional[Decimal]:
        """Parse a price string such as "1.250.000 €" or "950 €/mes".

        Args:
            raw: Raw price text

        Returns:
            Decimal price, or None if no number is present
        """
        if not raw or not raw.strip():
            return None

        cleaned = (
            raw.replace(".", "")
            .replace(",", ".")
            .replace("€", "")
            .replace("/mes", "")
            .replace(" ", "")
            .replace("\xa0", "")
            .strip()
        )
        match = _NUMBER_RE.search(cleaned)
        return _to_decimal(match.group(0)) if match else None

    @staticmethod
    def parse_int(raw: Optional[str]) -> Optional[int]:
        """Return the first integer token in the text ("3 habs." -> 3)."""
        if not raw or not raw.strip():
            return None
        match = _INT_RE.search(raw)
        return int(match.group(0)) if match else None

    @staticmethod
    def parse_area(raw: Optional[str]) -> Optional[Decimal]:
        """Parse a surface such as "85 m²", "1.200 m2" or "85,5m²"."""
        if not raw or not raw.strip():
            return None

        cleaned = (
            raw.replace(".", "")
            .replace(",", ".")
            .replace("m²", "")
            .replace("m2", "")
            .replace(" ", "")
            .replace("\xa0", "")
            .strip()
        )
        match = _NUMBER_RE.search(cleaned)
        return _to_decimal(match.group(0)) if match else None

    @staticmethod
    def extract_postal_code(*texts: Optional[str]) -> Optional[str]:
        """Return the first 5-digit token found in any of the given texts."""
        for text in texts:
            if not text:
                continue
            match = _POSTAL_CODE_RE.search(text)
            if match:
                return match.group(1)
        return None


class Features(NamedTuple):
    rooms: Optional[int] = None
    bathrooms: Optional[int] = None
    area_m2: Optional[Decimal] = None


_ROOMS_RE = re.compile(r"(\d+)\s*hab")
_BATHS_RE = re.compile(r"(\d+)\s*baño")
_AREA_RE = re.compile(r"(\d+)\s*m[²2]")


def parse_features(texts: Iterable[str], fallback_text: Optional[str] = None) -> Features:
    """Pick rooms, bathrooms and area out of a card's feature snippets.

    Each snippet is classified by keyword ("hab", "m²"/"m2", "baño"); the
    first snippet of each kind wins. If fallback_text is given, fields still
    missing are searched for in it with looser patterns.
    """
    rooms = bathrooms = None
    area = None

    for raw in texts:
        text = raw.lower()
        if "hab" in text and rooms is None:
            rooms = ListingNormalizer.parse_int(text)
        elif ("m²" in text or "m2" in text) and area is None:
            area = ListingNormalizer.parse_area(text)
        elif "baño" in text and bathrooms is None:
            bathrooms = ListingNormalizer.parse_int(text)

    if fallback_text:
        lowered = fallback_text.lower()
        if area is None:
            match = _AREA_RE.search(lowered)
            area = _to_decimal(match.group(1)) if match else None
        if rooms is None:
            match = _ROOMS_RE.search(lowered)
            rooms = int(match.group(1)) if match else None
        if bathrooms is None:
            match = _BATHS_RE.search(lowered)
            bathrooms = int(match.group(1)) if match else None

    return Features(rooms=rooms, bathrooms=bathrooms, area_m2=area)


class PropertyTypeClassifier:
    """Keyword-based property type inference from the ad title."""

    @staticmethod
    def classify(title: Optional[str], default: PropertyType = PropertyType.OTRO) -> PropertyType:
        if not title:
            return PropertyType.OTRO

        title_lower = title.lower()
        for keyword, property_type in PROPERTY_TYPE_KEYWORDS:
            if keyword in title_lower:
                return property_type
        return default


def absolute_url(base_url: str, href: str) -> str:
    """Resolve a possibly relative link against the source base URL."""
    if href.startswith("http"):
        return href
    return urljoin(base_url + "/", href.lstrip("/"))
