"""Pisos.com source scraper.

Search pages are server-rendered, so they are fetched with plain HTTP.

Structure: div.ad-preview (older layout: div.ad-list-item)
  - a.ad-preview__title (detail link + title)
  - .ad-preview__price
  - .ad-preview__char (one per feature: "3 habs.", "85 m²", "2 baños")
  - .ad-preview__address / .ad-preview__zone
  - img.ad-preview__img
"""

import re
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from propwatch.models.listing import OperationType
from propwatch.scrapers.base import HttpSourceScraper, RawListing, SearchTarget
from propwatch.scrapers.utils.normalizer import (
    ListingNormalizer,
    LocationInfo,
    PropertyTypeClassifier,
    absolute_url,
    parse_features,
)

# /comprar/piso-centro28013-54851036331_100500/ -> 54851036331_100500
_ID_RE = re.compile(r"/piso-[^/]*?-([a-z0-9_]+)/")
# Numeric ad id closing the last path segment, e.g. /atico-chamberi-98765432_100500/
_FALLBACK_ID_RE = re.compile(r"-(\d{6,}(?:_\d+)?)/?$")
# Postal code sits right before the ad id in the detail URL
_URL_POSTAL_CODE_RE = re.compile(r"(\d{5})-[a-z0-9]+_\d+")

_OPERATION_PATHS = {
    OperationType.VENTA: "venta",
    OperationType.ALQUILER: "alquiler",
}


class PisosComScraper(HttpSourceScraper):
    """Pisos.com search page scraper."""

    source_id = "PISOSCOM"
    base_url = "https://www.pisos.com"

    LOCATIONS = {
        "Madrid": LocationInfo("madrid", "Madrid"),
        "Barcelona": LocationInfo("barcelona", "Barcelona"),
        "Valencia": LocationInfo("valencia", "Valencia"),
        "Sevilla": LocationInfo("sevilla", "Sevilla"),
        "Zaragoza": LocationInfo("zaragoza", "Zaragoza"),
        "Málaga": LocationInfo("malaga", "Málaga"),
        "Murcia": LocationInfo("murcia", "Murcia"),
        "Palma de Mallorca": LocationInfo("palma_de_mallorca", "Illes Balears"),
        "Las Palmas de Gran Canaria": LocationInfo("las_palmas_de_gran_canaria", "Las Palmas"),
        "Bilbao": LocationInfo("bilbao", "Vizcaya"),
        "Alicante": LocationInfo("alicante", "Alicante"),
        "Córdoba": LocationInfo("cordoba", "Córdoba"),
        "Valladolid": LocationInfo("valladolid", "Valladolid"),
        "Vigo": LocationInfo("vigo", "Pontevedra"),
        "Gijón": LocationInfo("gijon", "Asturias"),
        "Vitoria-Gasteiz": LocationInfo("vitoria_gasteiz", "Álava"),
        "A Coruña": LocationInfo("a_coruna", "A Coruña"),
        "Granada": LocationInfo("granada", "Granada"),
        "Elche": LocationInfo("elche", "Alicante"),
        "Oviedo": LocationInfo("oviedo", "Asturias"),
        "Santa Cruz de Tenerife": LocationInfo("santa_cruz_de_tenerife", "Santa Cruz de Tenerife"),
        "Pamplona": LocationInfo("pamplona", "Navarra"),
        "Almería": LocationInfo("almeria", "Almería"),
        "San Sebastián": LocationInfo("san_sebastian", "Guipúzcoa"),
        "Santander": LocationInfo("santander", "Cantabria"),
        "Burgos": LocationInfo("burgos", "Burgos"),
        "Salamanca": LocationInfo("salamanca", "Salamanca"),
        "Toledo": LocationInfo("toledo", "Toledo"),
        "Móstoles": LocationInfo("mostoles", "Madrid"),
        "Alcalá de Henares": LocationInfo("alcala_de_henares", "Madrid"),
    }

    def build_search_url(self, slug: str, operation_type: OperationType) -> str:
        return f"{self.base_url}/{_OPERATION_PATHS[operation_type]}/pisos-{slug}/"

    def select_items(self, document: BeautifulSoup) -> List[Tag]:
        return document.select(".ad-preview, .ad-list-item")

    def parse_item(self, item: Tag, target: SearchTarget) -> RawListing:
        link = item.select_one("a.ad-preview__title, a.ad-list-item__title") or item.select_one(
            "a[href*='/piso-']"
        )
        href = self._require(link.get("href") if link else None, "missing detail link")
        external_id = self._require(self._extract_id(href), f"no id in {href}")

        title = link.get_text(" ", strip=True) or None
        price_el = item.select_one(".ad-preview__price, .ad-list-item__price")
        features = parse_features(
            el.get_text(" ", strip=True) for el in item.select(".ad-preview__char, .ad-list-item__char")
        )

        address = _text(item.select_one(".ad-preview__address, .ad-list-item__address"))
        zone = _text(item.select_one(".ad-preview__zone, .ad-list-item__zone"))
        url_postal = _URL_POSTAL_CODE_RE.search(href)
        postal_code = url_postal.group(1) if url_postal else ListingNormalizer.extract_postal_code(address)

        image = item.select_one("img.ad-preview__img, img.ad-list-item__img")
        image_url = image.get("src") if image else None
        if not image_url:
            fallback = item.select_one("img")
            image_url = fallback.get("data-src") if fallback else None

        return RawListing(
            external_id=external_id,
            source=self.source_id,
            title=title,
            price=ListingNormalizer.parse_price(price_el.get_text() if price_el else None),
            operation_type=target.operation_type,
            property_type=PropertyTypeClassifier.classify(title),
            rooms=features.rooms,
            bathrooms=features.bathrooms,
            area_m2=features.area_m2,
            address=address,
            city=target.city,
            province=target.province,
            postal_code=postal_code,
            zone=zone,
            image_urls=(image_url,) if image_url else (),
            url=absolute_url(self.base_url, href),
        )

    @staticmethod
    def _extract_id(href: str) -> Optional[str]:
        path = href.split("?", 1)[0].split("#", 1)[0]
        match = _ID_RE.search(path) or _FALLBACK_ID_RE.search(path)
        return match.group(1) if match else None


def _text(element: Optional[Tag]) -> Optional[str]:
    if element is None:
        return None
    return element.get_text(" ", strip=True) or None
