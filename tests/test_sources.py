"""Tests for the source scrapers, the scraper factory and the HTTP retry policy."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from bs4 import BeautifulSoup

from propwatch.models.listing import OperationType, PropertyType
from propwatch.scrapers.base import BaseSourceScraper, HttpSourceScraper, SearchTarget
from propwatch.scrapers.factory import ScraperFactory
from propwatch.scrapers.register_sources import register_all_scrapers
from propwatch.scrapers.sources import FotocasaScraper, IdealistaScraper, PisosComScraper
from propwatch.scrapers.utils.retry import is_transient_http_error

PISOS_HTML = """
<html><body>
<div class="ad-preview">
  <a class="ad-preview__title" href="/comprar/piso-centro28013-54851036331_100500/">Piso en Calle Mayor</a>
  <span class="ad-preview__price">325.000 €</span>
  <p class="ad-preview__char">3 habs.</p>
  <p class="ad-preview__char">2 baños</p>
  <p class="ad-preview__char">95 m²</p>
  <p class="ad-preview__address">Calle Mayor, 10</p>
  <p class="ad-preview__zone">Sol</p>
  <img class="ad-preview__img" src="https://fotos.imghs.net/1.jpg">
</div>
<div class="ad-preview">
  <span class="ad-preview__price">100.000 €</span>
</div>
<div class="ad-preview">
  <a class="ad-preview__title" href="/comprar/atico-chamberi-98765432_100500/">Ático en Chamberí</a>
  <span class="ad-preview__price">A consultar</span>
  <p class="ad-preview__address">Calle de Fuencarral, 28010 Madrid</p>
  <img data-src="https://fotos.imghs.net/2.jpg">
</div>
</body></html>
"""

FOTOCASA_HTML = """
<html><body>
<article>
  <a href="/es/comprar/vivienda/madrid-capital/calefaccion-ascensor/183456789/d">
    <span class="text-subhead">Piso en venta en Chamberí</span>
  </a>
  <span>889.000 €</span>
  <ul><li>3 habs.</li><li>2 baños</li><li>120 m²</li></ul>
  <p class="text-body-2">Calle de Fuencarral, 28010 Madrid</p>
  <img src="https://static.fotocasa.es/images/1.jpg">
</article>
<article><p>Publicidad</p></article>
<article>
  <a href="/es/comprar/vivienda/madrid-capital/terraza/183000111/d">Ver detalle del inmueble</a>
  <div>Ático 450.000 € 2 hab 1 baño 70 m²</div>
  <img src="/placeholder.svg">
</article>
</body></html>
"""

IDEALISTA_HTML = """
<html><body>
<div class="item-info-container">
  <a class="item-link" href="/inmueble/104567890/">Piso en calle de Alcalá, Goya, Madrid</a>
  <div class="item-price">450.000€</div>
  <span class="item-detail">3 hab.</span>
  <span class="item-detail">110 m²</span>
  <div class="item-detail-char"><a class="item-link" href="#">Calle de Alcalá 120, 28009</a><span>Goya</span></div>
  <img class="item-gallery" src="https://img3.idealista.com/1.jpg">
</div>
<div class="item-info-container">
  <a class="item-link" href="/obra-nueva/12345/">Promoción de obra nueva</a>
</div>
</body></html>
"""


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


@pytest.fixture
def limiter():
    rate_limiter = MagicMock()
    rate_limiter.acquire = AsyncMock()
    return rate_limiter


@pytest.fixture
def madrid_sale():
    return SearchTarget(
        url="https://example.es/venta/madrid/",
        city="Madrid",
        province="Madrid",
        operation_type=OperationType.VENTA,
    )


class TestSearchTargets:
    def test_builds_one_url_per_city_and_operation(self, limiter):
        scraper = PisosComScraper(rate_limiter=limiter)

        targets = scraper.search_targets(["Madrid", "Bilbao"], ["VENTA", "ALQUILER"])

        assert [t.url for t in targets] == [
            "https://www.pisos.com/venta/pisos-madrid/",
            "https://www.pisos.com/alquiler/pisos-madrid/",
            "https://www.pisos.com/venta/pisos-bilbao/",
            "https://www.pisos.com/alquiler/pisos-bilbao/",
        ]
        assert targets[2].province == "Vizcaya"

    def test_skips_unknown_cities_and_operations(self, limiter):
        scraper = FotocasaScraper(rate_limiter=limiter, browser=MagicMock())

        targets = scraper.search_targets(["Madrid", "Atlantis"], ["VENTA", "TRASPASO"])

        assert len(targets) == 1
        assert targets[0].url == "https://www.fotocasa.es/es/comprar/viviendas/madrid-capital/todas-las-zonas/l"

    def test_idealista_urls(self, limiter):
        scraper = IdealistaScraper(rate_limiter=limiter, browser=MagicMock())

        targets = scraper.search_targets(["Ocaña"], ["alquiler"])

        assert targets[0].url == "https://www.idealista.com/alquiler-viviendas/ocana-toledo/"
        assert targets[0].province == "Toledo"


class TestPisosComScraper:
    def test_parses_listing_cards(self, limiter, madrid_sale):
        scraper = PisosComScraper(rate_limiter=limiter)
        document = _soup(PISOS_HTML)

        listings = scraper.parse_items(scraper.select_items(document), madrid_sale)

        assert len(listings) == 2
        first = listings[0]
        assert first.external_id == "54851036331_100500"
        assert first.source == "PISOSCOM"
        assert first.title == "Piso en Calle Mayor"
        assert first.price == Decimal("325000")
        assert first.property_type == PropertyType.PISO
        assert first.operation_type == OperationType.VENTA
        assert (first.rooms, first.bathrooms, first.area_m2) == (3, 2, Decimal("95"))
        assert first.postal_code == "28013"
        assert first.zone == "Sol"
        assert first.city == "Madrid"
        assert first.image_urls == ("https://fotos.imghs.net/1.jpg",)
        assert first.url == "https://www.pisos.com/comprar/piso-centro28013-54851036331_100500/"

    def test_card_without_link_is_skipped(self, limiter, madrid_sale):
        scraper = PisosComScraper(rate_limiter=limiter)

        listings = scraper.parse_items(scraper.select_items(_soup(PISOS_HTML)), madrid_sale)

        assert [listing.external_id for listing in listings] == ["54851036331_100500", "98765432_100500"]

    def test_missing_price_and_lazy_image(self, limiter, madrid_sale):
        scraper = PisosComScraper(rate_limiter=limiter)

        listing = scraper.parse_items(scraper.select_items(_soup(PISOS_HTML)), madrid_sale)[1]

        assert listing.title == "Ático en Chamberí"
        assert listing.property_type == PropertyType.ATICO
        assert listing.price is None
        assert listing.postal_code == "28010"
        assert listing.image_urls == ("https://fotos.imghs.net/2.jpg",)

    @pytest.mark.parametrize(
        "href,expected",
        [
            ("/comprar/piso-centro28013-54851036331_100500/", "54851036331_100500"),
            ("/comprar/atico-chamberi-98765432_100500/?ref=home", "98765432_100500"),
            ("/comprar/estudio-lavapies-1234567", "1234567"),
            ("/comprar/piso-centro28013/", None),
            ("/comprar/madrid-28013/", None),
        ],
    )
    def test_extract_id_ignores_postal_codes(self, href, expected):
        assert PisosComScraper._extract_id(href) == expected

    async def test_scrape_over_http(self, limiter):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/venta/pisos-madrid/":
                return httpx.Response(200, text=PISOS_HTML)
            return httpx.Response(404, text="not found")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            scraper = PisosComScraper(rate_limiter=limiter, http_client=client)
            listings = await scraper.scrape(["Madrid"], ["VENTA", "ALQUILER"])

        assert len(listings) == 2
        assert limiter.acquire.await_count == 2

    async def test_not_found_page_yields_nothing(self, limiter):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="not found")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            scraper = PisosComScraper(rate_limiter=limiter, http_client=client)
            listings = await scraper.scrape(["Madrid"], ["VENTA"])

        assert listings == []

    async def test_each_retry_waits_for_the_rate_limiter(self, limiter, monkeypatch):
        monkeypatch.setattr(HttpSourceScraper._get.retry, "sleep", AsyncMock())
        responses = iter([httpx.Response(503, text="busy"), httpx.Response(200, text=PISOS_HTML)])

        def handler(request: httpx.Request) -> httpx.Response:
            return next(responses)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            scraper = PisosComScraper(rate_limiter=limiter, http_client=client)
            listings = await scraper.scrape(["Madrid"], ["VENTA"])

        assert len(listings) == 2
        assert limiter.acquire.await_count == 2


class TestFotocasaScraper:
    def test_selects_only_articles_with_detail_links(self, limiter):
        scraper = FotocasaScraper(rate_limiter=limiter, browser=MagicMock())

        assert len(scraper.select_items(_soup(FOTOCASA_HTML))) == 2

    def test_parses_listing_cards(self, limiter, madrid_sale):
        scraper = FotocasaScraper(rate_limiter=limiter, browser=MagicMock())

        first, second = scraper.parse_items(scraper.select_items(_soup(FOTOCASA_HTML)), madrid_sale)

        assert first.external_id == "183456789"
        assert first.title == "Piso en venta en Chamberí"
        assert first.price == Decimal("889000")
        assert (first.rooms, first.bathrooms, first.area_m2) == (3, 2, Decimal("120"))
        assert first.postal_code == "28010"
        assert first.image_urls == ("https://static.fotocasa.es/images/1.jpg",)
        assert first.url.startswith("https://www.fotocasa.es/es/comprar/vivienda/")

        assert second.external_id == "183000111"
        assert second.title == "Ver detalle del inmueble"
        assert second.price == Decimal("450000")
        assert (second.rooms, second.bathrooms, second.area_m2) == (2, 1, Decimal("70"))
        assert second.image_urls == ()

    async def test_scrape_goes_through_rate_limiter_and_browser(self, limiter):
        browser = MagicMock()
        browser.fetch_page_with_retry = AsyncMock(return_value=_soup(FOTOCASA_HTML))
        scraper = FotocasaScraper(rate_limiter=limiter, browser=browser)

        listings = await scraper.scrape(["Madrid"], ["VENTA"])

        assert len(listings) == 2
        limiter.acquire.assert_awaited_once()
        url, wait_for = browser.fetch_page_with_retry.await_args.args
        assert url.endswith("/madrid-capital/todas-las-zonas/l")
        assert wait_for == FotocasaScraper.wait_selector

    async def test_unavailable_page_is_skipped(self, limiter):
        browser = MagicMock()
        browser.fetch_page_with_retry = AsyncMock(side_effect=[None, _soup(FOTOCASA_HTML)])
        scraper = FotocasaScraper(rate_limiter=limiter, browser=browser)

        listings = await scraper.scrape(["Madrid"], ["VENTA", "ALQUILER"])

        assert len(listings) == 2
        assert all(listing.operation_type == OperationType.ALQUILER for listing in listings)

    async def test_page_error_does_not_stop_other_pages(self, limiter):
        browser = MagicMock()
        browser.fetch_page_with_retry = AsyncMock(side_effect=[RuntimeError("boom"), _soup(FOTOCASA_HTML)])
        scraper = FotocasaScraper(rate_limiter=limiter, browser=browser)

        listings = await scraper.scrape(["Madrid", "Barcelona"], ["VENTA"])

        assert len(listings) == 2
        assert all(listing.city == "Barcelona" for listing in listings)


class TestIdealistaScraper:
    def test_falls_back_to_info_containers(self, limiter, madrid_sale):
        scraper = IdealistaScraper(rate_limiter=limiter, browser=MagicMock())

        listings = scraper.parse_items(scraper.select_items(_soup(IDEALISTA_HTML)), madrid_sale)

        assert len(listings) == 1
        listing = listings[0]
        assert listing.external_id == "104567890"
        assert listing.price == Decimal("450000")
        assert listing.rooms == 3
        assert listing.area_m2 == Decimal("110")
        assert listing.address == "Calle de Alcalá 120, 28009"
        assert listing.zone == "Goya"
        assert listing.postal_code == "28009"
        assert listing.url == "https://www.idealista.com/inmueble/104567890/"

    def test_empty_page(self, limiter):
        scraper = IdealistaScraper(rate_limiter=limiter, browser=MagicMock())

        assert scraper.select_items(_soup("<html><body><p>Sin resultados</p></body></html>")) == []


class TestScraperFactory:
    def test_register_all(self):
        factory = ScraperFactory(rate_limiter=MagicMock(), browser=MagicMock())

        register_all_scrapers(factory)

        assert factory.get_registered_sources() == ["PISOSCOM", "FOTOCASA", "IDEALISTA"]

    def test_create_injects_shared_dependencies(self):
        rate_limiter, browser = MagicMock(), MagicMock()
        factory = ScraperFactory(rate_limiter=rate_limiter, browser=browser)
        register_all_scrapers(factory)

        fotocasa = factory.create_scraper("fotocasa")
        pisos = factory.create_scraper("PISOSCOM")

        assert isinstance(fotocasa, FotocasaScraper)
        assert fotocasa.rate_limiter is rate_limiter
        assert fotocasa.browser is browser
        assert pisos.rate_limiter is rate_limiter

    def test_unknown_source(self):
        factory = ScraperFactory(rate_limiter=MagicMock(), browser=MagicMock())

        assert factory.create_scraper("HABITACLIA") is None
        assert not factory.has_scraper("HABITACLIA")

    def test_rejects_non_scraper_class(self):
        factory = ScraperFactory()

        with pytest.raises(ValueError):
            factory.register_scraper("BOGUS", dict)

    def test_sources_are_scrapers(self):
        for scraper_class in (PisosComScraper, FotocasaScraper, IdealistaScraper):
            assert issubclass(scraper_class, BaseSourceScraper)


class TestHttpRetryPolicy:
    @pytest.mark.parametrize("status,expected", [(404, False), (403, False), (429, True), (503, True)])
    def test_status_errors(self, status, expected):
        request = httpx.Request("GET", "https://www.pisos.com/venta/pisos-madrid/")
        response = httpx.Response(status, request=request)
        error = httpx.HTTPStatusError("error", request=request, response=response)

        assert is_transient_http_error(error) is expected

    def test_connection_errors_are_transient(self):
        assert is_transient_http_error(httpx.ConnectError("refused"))
        assert not is_transient_http_error(ValueError("bad"))
