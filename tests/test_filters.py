"""Tests for the post-fetch filter chain."""

from decimal import Decimal

import pytest

from propwatch.models.listing import PropertyType
from propwatch.scrapers.filters import ListingFilters, build_chain, passes_filters


def _passes(listing, **bounds) -> bool:
    return passes_filters(listing, build_chain(ListingFilters(**bounds)))


class TestListingFilters:
    def test_no_bounds_accept_everything(self, make_raw):
        assert build_chain(ListingFilters()) == []
        assert _passes(make_raw(price=None, rooms=None, area_m2=None))

    def test_max_price_is_inclusive(self, make_raw):
        assert _passes(make_raw(price="300000"), max_price=Decimal("300000"))
        assert not _passes(make_raw(price="300000.01"), max_price=Decimal("300000"))

    def test_min_price_is_inclusive(self, make_raw):
        assert _passes(make_raw(price="150000"), min_price=Decimal("150000"))
        assert not _passes(make_raw(price="149999.99"), min_price=Decimal("150000"))

    def test_rooms_and_area_bounds(self, make_raw):
        listing = make_raw(rooms=2, area_m2=Decimal("60"))

        assert _passes(listing, min_rooms=2, max_rooms=2, min_area=Decimal("60"), max_area=Decimal("60"))
        assert not _passes(listing, min_rooms=3)
        assert not _passes(listing, max_area=Decimal("59.99"))

    @pytest.mark.parametrize(
        "field,bounds",
        [
            ("price", {"max_price": Decimal("500000")}),
            ("rooms", {"min_rooms": 1}),
            ("area_m2", {"max_area": Decimal("200")}),
        ],
    )
    def test_missing_value_fails_when_bound_is_set(self, make_raw, field, bounds):
        listing = make_raw(**{field: None})

        assert not _passes(listing, **bounds)

    def test_property_types(self, make_raw):
        chalet = make_raw(property_type=PropertyType.CHALET)

        assert _passes(chalet, property_types=("CHALET", "CASA"))
        assert not _passes(chalet, property_types=("PISO",))
        assert not _passes(make_raw(property_type=None), property_types=("PISO",))

    def test_from_config_uppercases_property_types(self, make_config):
        config = make_config(property_types=["piso", "Atico"], max_price=Decimal("400000"))

        filters = ListingFilters.from_config(config)

        assert filters.property_types == ("PISO", "ATICO")
        assert filters.max_price == Decimal("400000")

    def test_chain_stops_at_first_failure(self, make_raw):
        def explode(listing):
            raise AssertionError("should not be evaluated")

        assert not passes_filters(make_raw(), [lambda listing: False, explode])

    def test_chain_order(self):
        chain = build_chain(
            ListingFilters(
                min_price=Decimal("1"),
                max_rooms=4,
                max_area=Decimal("100"),
                property_types=("PISO",),
            )
        )

        assert [predicate.__name__ for predicate in chain] == [
            "min_price",
            "max_rooms",
            "max_area_m2",
            "property_type",
        ]
