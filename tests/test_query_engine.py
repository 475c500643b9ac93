"""Filtering, ordering and paging of repository.search()."""

import pytest

from catalog_api.models import QueryFilters
from catalog_api.repository import listings as repo


@pytest.fixture()
def catalog(seed, make_listing):
    items = [
        make_listing(address="12 Marina Walk", price=900_000, beds=1, baths=1),
        make_listing(address="7 Palm Jumeirah Crescent", price=5_500_000, beds=5, baths=4),
        make_listing(address="3 MARINA Gate", price=2_000_000, beds=2, baths=2),
        make_listing(address="45 Downtown Blvd", price=2_000_000, beds=3, baths=2),
        make_listing(address="9 Al Barsha 1", price=1_200_000, beds=2, baths=1, status="for_rent"),
        make_listing(address="100% Tower, JLT", price=1_500_000, beds=2, baths=2),
    ]
    seed(*items)
    return items


def _search(engine, **kwargs):
    with engine.connect() as conn:
        return repo.search(conn, QueryFilters(**kwargs))


def test_no_filters_returns_everything_newest_first(engine, catalog):
    rows, total = _search(engine)
    assert total == len(catalog)
    stamps = [r["updated_at"] for r in rows]
    assert stamps == sorted(stamps, reverse=True)


def test_text_query_is_case_insensitive_substring(engine, catalog):
    rows, total = _search(engine, q="marina")
    assert total == 2
    assert {r["address"] for r in rows} == {"12 Marina Walk", "3 MARINA Gate"}


def test_text_query_treats_like_wildcards_literally(engine, catalog):
    rows, total = _search(engine, q="100%")
    assert total == 1
    assert rows[0]["address"] == "100% Tower, JLT"

    _, total = _search(engine, q="_")
    assert total == 0


def test_price_and_room_filters_are_anded(engine, catalog):
    rows, total = _search(engine, min_price=1_000_000, max_price=2_000_000, beds_min=2, baths_min=2)
    assert total == 3
    for r in rows:
        assert 1_000_000 <= r["price"] <= 2_000_000
        assert r["beds"] >= 2
        assert r["baths"] >= 2


def test_bounds_are_inclusive(engine, catalog):
    _, total = _search(engine, min_price=2_000_000, max_price=2_000_000)
    assert total == 2


def test_sort_by_price_ascending_breaks_ties_by_id(engine, catalog):
    rows, _ = _search(engine, sort_by="price", sort_order="asc")
    keys = [(r["price"], r["id"]) for r in rows]
    assert keys == sorted(keys)


def test_sort_by_price_descending(engine, catalog):
    rows, _ = _search(engine, sort_by="price", sort_order="desc")
    prices = [r["price"] for r in rows]
    assert prices == sorted(prices, reverse=True)
    tied = [r["id"] for r in rows if r["price"] == 2_000_000]
    assert tied == sorted(tied)


def test_total_counts_matches_before_paging(engine, catalog):
    rows, total = _search(engine, limit=2, page=2)
    assert total == len(catalog)
    assert len(rows) == 2


def test_page_past_the_end_is_empty(engine, catalog):
    rows, total = _search(engine, limit=5, page=3)
    assert rows == []
    assert total == len(catalog)


@pytest.mark.parametrize("sort_by", ["price", "updated_at"])
@pytest.mark.parametrize("sort_order", ["asc", "desc"])
@pytest.mark.parametrize("limit", [1, 4, 7, 50])
def test_pages_partition_all_matches(engine, seed, make_listing, sort_by, sort_order, limit):
    # many equal prices so only the id tie-break keeps pages stable
    seed(*[make_listing(price=1_000_000 + (i % 4) * 100_000) for i in range(23)])

    seen = []
    page = 1
    while True:
        rows, total = _search(engine, sort_by=sort_by, sort_order=sort_order, limit=limit, page=page)
        if not rows:
            break
        assert len(rows) <= limit
        seen.extend(r["id"] for r in rows)
        page += 1

    assert total == 23
    assert len(seen) == len(set(seen)) == 23


def test_filters_reject_bad_input():
    with pytest.raises(ValueError):
        QueryFilters(page=0)
    with pytest.raises(ValueError):
        QueryFilters(limit=51)
    with pytest.raises(ValueError):
        QueryFilters(min_price=10, max_price=5)
    with pytest.raises(ValueError):
        QueryFilters(sort_by="beds")


def test_offset():
    assert QueryFilters(page=1, limit=20).offset == 0
    assert QueryFilters(page=3, limit=20).offset == 40


def test_get_by_id(engine, catalog):
    with engine.connect() as conn:
        row = repo.get_by_id(conn, catalog[1].id)
        missing = repo.get_by_id(conn, "nope")
    assert row["address"] == "7 Palm Jumeirah Crescent"
    assert missing == {}
