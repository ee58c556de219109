"""Idealista source scraper.

Idealista sits behind a commercial anti-bot service that blocks most
automated browsers, so this source is registered but left out of the
default source list. Enable it by adding "IDEALISTA" to the config.

Structure: article.item (fallbacks: .item-info-container, [data-element-id])
  - a.item-link (detail link /inmueble/{id}/ + title)
  - .item-price
  - .item-detail (one per feature)
  - .item-detail-char .item-link (address) + span (zone)
  - img.item-gallery
"""

import re
from typing import List

from bs4 import BeautifulSoup, Tag

from propwatch.models.listing import OperationType
from propwatch.scrapers.base import BrowserSourceScraper, RawListing, SearchTarget
from propwatch.scrapers.utils.normalizer import (
    ListingNormalizer,
    LocationInfo,
    PropertyTypeClassifier,
    absolute_url,
    parse_features,
)

_ID_RE = re.compile(r"/inmueble/(\d+)/")

# Tried in order until one matches anything
_ITEM_SELECTORS = ["article.item", ".item-info-container", "[data-element-id]"]

_OPERATION_PATHS = {
    OperationType.VENTA: "venta-viviendas",
    OperationType.ALQUILER: "alquiler-viviendas",
}


class IdealistaScraper(BrowserSourceScraper):
    """Idealista search page scraper."""

    source_id = "IDEALISTA"
    base_url = "https://www.idealista.com"
    wait_selector = "article.item, .item-info-container, .listing-items"

    LOCATIONS = {
        # Province capitals
        "Madrid": LocationInfo("madrid-madrid", "Madrid"),
        "Barcelona": LocationInfo("barcelona-barcelona", "Barcelona"),
        "Valencia": LocationInfo("valencia-valencia", "Valencia"),
        "Sevilla": LocationInfo("sevilla-sevilla", "Sevilla"),
        "Zaragoza": LocationInfo("zaragoza-zaragoza", "Zaragoza"),
        "Málaga": LocationInfo("malaga-malaga", "Málaga"),
        "Murcia": LocationInfo("murcia-murcia", "Murcia"),
        "Palma de Mallorca": LocationInfo("palma-de-mallorca-balears-illes", "Illes Balears"),
        "Las Palmas de Gran Canaria": LocationInfo("las-palmas-de-gran-canaria-las-palmas", "Las Palmas"),
        "Bilbao": LocationInfo("bilbao-vizcaya", "Vizcaya"),
        "Alicante": LocationInfo("alicante-alacant-alicante", "Alicante"),
        "Córdoba": LocationInfo("cordoba-cordoba", "Córdoba"),
        "Valladolid": LocationInfo("valladolid-valladolid", "Valladolid"),
        "Granada": LocationInfo("granada-granada", "Granada"),
        "A Coruña": LocationInfo("a-coruna-a-coruna", "A Coruña"),
        "Pamplona": LocationInfo("pamplona-iruna-navarra", "Navarra"),
        "San Sebastián": LocationInfo("donostia-san-sebastian-guipuzcoa", "Guipúzcoa"),
        "Santander": LocationInfo("santander-cantabria", "Cantabria"),
        "Toledo": LocationInfo("toledo-toledo", "Toledo"),
        # Municipalities
        "Vigo": LocationInfo("vigo-pontevedra", "Pontevedra"),
        "Gijón": LocationInfo("gijon-asturias", "Asturias"),
        "Elche": LocationInfo("elche-elx-alicante", "Alicante"),
        "Ocaña": LocationInfo("ocana-toledo", "Toledo"),
        "Talavera de la Reina": LocationInfo("talavera-de-la-reina-toledo", "Toledo"),
        "Illescas": LocationInfo("illescas-toledo", "Toledo"),
        "Alcalá de Henares": LocationInfo("alcala-de-henares-madrid", "Madrid"),
        "Móstoles": LocationInfo("mostoles-madrid", "Madrid"),
        "Getafe": LocationInfo("getafe-madrid", "Madrid"),
        "Marbella": LocationInfo("marbella-malaga", "Málaga"),
        "Hospitalet de Llobregat": LocationInfo("hospitalet-de-llobregat-l-barcelona", "Barcelona"),
    }

    def build_search_url(self, slug: str, operation_type: OperationType) -> str:
        return f"{self.base_url}/{_OPERATION_PATHS[operation_type]}/{slug}/"

    def select_items(self, document: BeautifulSoup) -> List[Tag]:
        for selector in _ITEM_SELECTORS:
            items = document.select(selector)
            if items:
                return items
        return []

    def parse_item(self, item: Tag, target: SearchTarget) -> RawListing:
        link = item.select_one("a.item-link")
        href = self._require(link.get("href") if link else None, "missing detail link")
        match = _ID_RE.search(href)
        external_id = self._require(match.group(1) if match else None, f"no id in {href}")

        title = link.get_text(" ", strip=True) or None
        price_el = item.select_one(".item-price")
        features = parse_features(el.get_text(" ", strip=True) for el in item.select(".item-detail"))

        address_el = item.select_one(".item-detail-char .item-link")
        address = address_el.get_text(" ", strip=True) if address_el else None
        zone_el = item.select_one(".item-detail-char .item-link + span")
        zone = zone_el.get_text(" ", strip=True) if zone_el else None

        image = item.select_one("img.item-gallery")
        image_url = image.get("src") if image else None

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
            address=address or None,
            city=target.city,
            province=target.province,
            postal_code=ListingNormalizer.extract_postal_code(address, title),
            zone=zone or None,
            image_urls=(image_url,) if image_url else (),
            url=absolute_url(self.base_url, href),
        )
