"""Fotocasa source scraper.

Results are rendered client-side, so pages go through the shared browser.
Cards are <article> elements holding a link to /vivienda/; class names are
utility classes that change often, so price and features also fall back
to regexes over the card text.
"""

import re
from typing import List, Optional

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

_DETAIL_LINK = "a[href*='/vivienda/']"
_ID_RE = re.compile(r"/(\d+)(?:/|\.htm|$)")
_PRICE_RE = re.compile(r"([\d.]+)\s*€")
# Link text shorter than this is a button label, not a title
_MIN_TITLE_LENGTH = 10

_OPERATION_PATHS = {
    OperationType.VENTA: "comprar",
    OperationType.ALQUILER: "alquiler",
}


class FotocasaScraper(BrowserSourceScraper):
    """Fotocasa search page scraper."""

    source_id = "FOTOCASA"
    base_url = "https://www.fotocasa.es"
    wait_selector = f"article, [data-testid='re-SearchResult'], {_DETAIL_LINK}"

    LOCATIONS = {
        "Madrid": LocationInfo("madrid-capital", "Madrid"),
        "Barcelona": LocationInfo("barcelona-capital", "Barcelona"),
        "Valencia": LocationInfo("valencia-capital", "Valencia"),
        "Sevilla": LocationInfo("sevilla-capital", "Sevilla"),
        "Zaragoza": LocationInfo("zaragoza-capital", "Zaragoza"),
        "Málaga": LocationInfo("malaga-capital", "Málaga"),
        "Murcia": LocationInfo("murcia-capital", "Murcia"),
        "Palma de Mallorca": LocationInfo("palma-de-mallorca", "Illes Balears"),
        "Las Palmas de Gran Canaria": LocationInfo("las-palmas-de-gran-canaria", "Las Palmas"),
        "Bilbao": LocationInfo("bilbao", "Vizcaya"),
        "Alicante": LocationInfo("alicante", "Alicante"),
        "Córdoba": LocationInfo("cordoba-capital", "Córdoba"),
        "Valladolid": LocationInfo("valladolid-capital", "Valladolid"),
        "Vigo": LocationInfo("vigo", "Pontevedra"),
        "Gijón": LocationInfo("gijon", "Asturias"),
        "Vitoria-Gasteiz": LocationInfo("vitoria-gasteiz", "Álava"),
        "A Coruña": LocationInfo("a-coruna", "A Coruña"),
        "Granada": LocationInfo("granada-capital", "Granada"),
        "Elche": LocationInfo("elche-elx", "Alicante"),
        "Oviedo": LocationInfo("oviedo", "Asturias"),
        "Santa Cruz de Tenerife": LocationInfo("santa-cruz-de-tenerife", "Santa Cruz de Tenerife"),
        "Pamplona": LocationInfo("pamplona-iruna", "Navarra"),
        "Almería": LocationInfo("almeria-capital", "Almería"),
        "San Sebastián": LocationInfo("san-sebastian", "Guipúzcoa"),
        "Santander": LocationInfo("santander", "Cantabria"),
        "Burgos": LocationInfo("burgos-capital", "Burgos"),
        "Salamanca": LocationInfo("salamanca-capital", "Salamanca"),
        "Toledo": LocationInfo("toledo-capital", "Toledo"),
        "Guadalajara": LocationInfo("guadalajara-capital", "Guadalajara"),
        "Ciudad Real": LocationInfo("ciudad-real-capital", "Ciudad Real"),
    }

    def build_search_url(self, slug: str, operation_type: OperationType) -> str:
        return f"{self.base_url}/es/{_OPERATION_PATHS[operation_type]}/viviendas/{slug}/todas-las-zonas/l"

    def select_items(self, document: BeautifulSoup) -> List[Tag]:
        return [article for article in document.select("article") if article.select_one(_DETAIL_LINK)]

    def parse_item(self, item: Tag, target: SearchTarget) -> RawListing:
        link = item.select_one(_DETAIL_LINK)
        href = self._require(link.get("href") if link else None, "missing detail link")
        match = _ID_RE.search(href)
        external_id = self._require(match.group(1) if match else None, f"no id in {href}")

        item_text = item.get_text(" ", strip=True)

        headline = item.select_one(".text-subhead, .text-headline-2")
        title = headline.get_text(" ", strip=True) if headline else None
        if not title:
            link_text = link.get_text(" ", strip=True)
            title = link_text if len(link_text) > _MIN_TITLE_LENGTH else None

        price_match = _PRICE_RE.search(item_text)
        features = parse_features(
            (li.get_text(" ", strip=True) for li in item.select("li")),
            fallback_text=item_text,
        )

        address_el = item.select_one(".text-body-2")
        address = address_el.get_text(" ", strip=True) if address_el else None

        return RawListing(
            external_id=external_id,
            source=self.source_id,
            title=title,
            price=ListingNormalizer.parse_price(price_match.group(0) if price_match else None),
            operation_type=target.operation_type,
            property_type=PropertyTypeClassifier.classify(title),
            rooms=features.rooms,
            bathrooms=features.bathrooms,
            area_m2=features.area_m2,
            address=address or None,
            city=target.city,
            province=target.province,
            postal_code=ListingNormalizer.extract_postal_code(address),
            image_urls=self._image_urls(item),
            url=absolute_url(self.base_url, href),
        )

    @staticmethod
    def _image_urls(item: Tag) -> tuple:
        image = item.select_one("img[src*='http']") or item.select_one("img")
        src: Optional[str] = image.get("src") if image else None
        if src and src.startswith("http"):
            return (src,)
        return ()
