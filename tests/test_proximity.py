import pytest

from catalog_api.geo import distance_km
from catalog_api.repository import listings as repo

CENTER = (25.20, 55.27)


def _nearby(engine, lat, lng, radius_km, limit):
    with engine.connect() as conn:
        return repo.nearby(conn, lat, lng, radius_km, limit)


@pytest.fixture()
def spread(seed, make_listing):
    # walk north from the center in ~1.1 km steps
    items = [make_listing(lat=CENTER[0] + i * 0.01, lng=CENTER[1]) for i in range(12)]
    # same spot as lst-001, inserted later with a smaller id to test tie order
    items.append(make_listing(id="lst-000", lat=CENTER[0], lng=CENTER[1]))
    seed(*items)
    return items


def test_results_within_radius_and_sorted(engine, spread):
    rows = _nearby(engine, *CENTER, radius_km=5, limit=20)
    distances = [distance_km(*CENTER, r["lat"], r["lng"]) for r in rows]

    assert rows
    assert all(d <= 5 for d in distances)
    assert distances == sorted(distances)
    # 0..4 steps (0 to ~4.45 km) plus the duplicate at the center
    assert len(rows) == 6


def test_limit_truncates_to_closest(engine, spread):
    rows = _nearby(engine, *CENTER, radius_km=50, limit=3)
    assert [r["id"] for r in rows] == ["lst-000", "lst-001", "lst-002"]


def test_equal_distances_ordered_by_id(engine, spread):
    rows = _nearby(engine, *CENTER, radius_km=0.5, limit=5)
    assert [r["id"] for r in rows] == ["lst-000", "lst-001"]


@pytest.mark.parametrize("radius_km,limit", [(0, 5), (-1, 5), (5, 0), (5, -3)])
def test_non_positive_radius_or_limit_is_empty(engine, spread, radius_km, limit):
    assert _nearby(engine, *CENTER, radius_km=radius_km, limit=limit) == []


def test_nothing_in_range(engine, spread):
    assert _nearby(engine, 48.8566, 2.3522, radius_km=100, limit=5) == []


def test_empty_catalog(engine):
    assert _nearby(engine, *CENTER, radius_km=5, limit=5) == []
