"""Tests for listing text normalization helpers."""

from decimal import Decimal

import pytest

from propwatch.models.listing import PropertyType
from propwatch.scrapers.utils.normalizer import (
    ListingNormalizer,
    PropertyTypeClassifier,
    absolute_url,
    parse_features,
)


class TestListingNormalizer:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("1.250.000 €", Decimal("1250000")),
            ("325.000€", Decimal("325000")),
            ("950 €/mes", Decimal("950")),
            ("1.200,50 €", Decimal("1200.50")),
            ("450\xa0000 €", Decimal("450000")),
        ],
    )
    def test_parse_price(self, raw, expected):
        assert ListingNormalizer.parse_price(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", "A consultar"])
    def test_parse_price_without_number(self, raw):
        assert ListingNormalizer.parse_price(raw) is None

    def test_parse_area(self):
        assert ListingNormalizer.parse_area("85 m²") == Decimal("85")
        assert ListingNormalizer.parse_area("1.200 m2") == Decimal("1200")
        assert ListingNormalizer.parse_area("85,5m²") == Decimal("85.5")
        assert ListingNormalizer.parse_area("sin datos") is None

    def test_parse_int(self):
        assert ListingNormalizer.parse_int("3 habs.") == 3
        assert ListingNormalizer.parse_int("Planta 2ª exterior") == 2
        assert ListingNormalizer.parse_int("bajo") is None
        assert ListingNormalizer.parse_int(None) is None

    def test_extract_postal_code_first_match_wins(self):
        assert ListingNormalizer.extract_postal_code(None, "Calle Alcalá 10, 28009 Madrid") == "28009"
        assert ListingNormalizer.extract_postal_code("46001 Valencia", "28009 Madrid") == "46001"

    def test_extract_postal_code_ignores_longer_numbers(self):
        assert ListingNormalizer.extract_postal_code("Ref. 1234567", "Tel 915551234") is None


class TestParseFeatures:
    def test_snippets_classified_by_keyword(self):
        features = parse_features(["3 habs.", "2 baños", "95 m²", "Planta 4ª"])

        assert features.rooms == 3
        assert features.bathrooms == 2
        assert features.area_m2 == Decimal("95")

    def test_first_snippet_of_each_kind_wins(self):
        features = parse_features(["2 hab.", "4 habitaciones", "70 m2", "110 m²"])

        assert features.rooms == 2
        assert features.area_m2 == Decimal("70")

    def test_fallback_text_fills_missing_fields(self):
        features = parse_features(["3 habs."], fallback_text="Ático 2 hab 1 baño 70 m² terraza")

        assert features.rooms == 3
        assert features.bathrooms == 1
        assert features.area_m2 == Decimal("70")

    def test_nothing_found(self):
        assert parse_features([]) == (None, None, None)


class TestPropertyTypeClassifier:
    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Piso en venta en calle de Alcalá", PropertyType.PISO),
            ("Apartamento luminoso en Ruzafa", PropertyType.APARTAMENTO),
            ("Chalet adosado con jardín", PropertyType.CHALET),
            ("Casa de pueblo reformada", PropertyType.CASA),
            ("Ático con terraza en Chamberí", PropertyType.ATICO),
            ("Duplex en Triana", PropertyType.DUPLEX),
            ("Estudio reformado", PropertyType.ESTUDIO),
            ("Loft industrial en Poblenou", PropertyType.LOFT),
            ("Plaza de garaje", PropertyType.OTRO),
        ],
    )
    def test_classify(self, title, expected):
        assert PropertyTypeClassifier.classify(title) == expected

    def test_keyword_order_decides_ties(self):
        assert PropertyTypeClassifier.classify("Ático dúplex") == PropertyType.ATICO

    def test_missing_title(self):
        assert PropertyTypeClassifier.classify(None) == PropertyType.OTRO


def test_absolute_url():
    assert absolute_url("https://www.pisos.com", "/comprar/piso-1/") == "https://www.pisos.com/comprar/piso-1/"
    assert absolute_url("https://www.pisos.com", "https://cdn.pisos.com/x") == "https://cdn.pisos.com/x"
