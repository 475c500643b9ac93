import pytest

from catalog_api.geo import distance_km

DUBAI = (25.2048, 55.2708)
ABU_DHABI = (24.4539, 54.3773)

POINTS = [
    DUBAI,
    ABU_DHABI,
    (0.0, 0.0),
    (90.0, 0.0),
    (-90.0, 180.0),
    (51.5074, -0.1278),
    (-33.8688, 151.2093),
    (0.0, 179.9999),
    (0.0, -179.9999),
]


@pytest.mark.parametrize("a", POINTS)
def test_distance_to_self_is_zero(a):
    assert distance_km(*a, *a) == pytest.approx(0.0, abs=1e-9)


@pytest.mark.parametrize("a", POINTS)
@pytest.mark.parametrize("b", POINTS)
def test_distance_is_symmetric(a, b):
    assert distance_km(*a, *b) == pytest.approx(distance_km(*b, *a), abs=1e-9)


def test_dubai_to_abu_dhabi():
    assert distance_km(*DUBAI, *ABU_DHABI) == pytest.approx(122.9, abs=1.0)


def test_one_degree_of_latitude():
    assert distance_km(0.0, 10.0, 1.0, 10.0) == pytest.approx(111.19, abs=0.01)


def test_antipodes_are_half_circumference():
    assert distance_km(0.0, 0.0, 0.0, 180.0) == pytest.approx(20015.09, abs=0.01)


def test_monotone_in_separation():
    steps = [distance_km(0.0, 0.0, 0.0, lon) for lon in (0.001, 0.1, 1, 10, 90, 179)]
    assert steps == sorted(steps)
    assert len(set(steps)) == len(steps)


def test_antimeridian_neighbours_are_close():
    assert distance_km(0.0, 179.9999, 0.0, -179.9999) < 0.1
