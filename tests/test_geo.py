import pytest

from cash_exchange.exceptions import ValidationError
from cash_exchange.services.geo import GeoPoint, bounding_box, haversine_m

from .conftest import FAR, P1, P2


def test_haversine_zero_for_same_point():
    assert haversine_m(P1, P1) == 0


def test_haversine_short_distance():
    # ~44m north and ~43m east at this latitude.
    assert 55 < haversine_m(P1, P2) < 65


def test_haversine_is_symmetric():
    assert haversine_m(P1, FAR) == pytest.approx(haversine_m(FAR, P1))


def test_haversine_one_degree_of_latitude():
    d = haversine_m(GeoPoint(0, 0), GeoPoint(1, 0))
    assert d == pytest.approx(111_195, rel=1e-3)


def test_bounding_box_contains_radius():
    min_lat, max_lat, min_lon, max_lon = bounding_box(P1, 1000)
    assert min_lat < P1.latitude < max_lat
    assert min_lon < P1.longitude < max_lon
    edge = GeoPoint(max_lat, P1.longitude)
    assert haversine_m(P1, edge) == pytest.approx(1000, rel=1e-6)


def test_bounding_box_drops_longitude_near_pole():
    _, max_lat, min_lon, max_lon = bounding_box(GeoPoint(89.999, 10), 5000)
    assert max_lat == 90.0
    assert min_lon is None and max_lon is None


def test_bounding_box_drops_longitude_across_antimeridian():
    _, _, min_lon, max_lon = bounding_box(GeoPoint(0, 179.99), 5000)
    assert min_lon is None and max_lon is None


@pytest.mark.parametrize("lat,lng", [(91, 0), (-91, 0), (0, 181), (0, -180.5), (None, 1)])
def test_geopoint_rejects_out_of_range(lat, lng):
    with pytest.raises(ValidationError):
        GeoPoint.of(lat, lng)
