import pytest
from hypothesis import given, strategies as st

from guardnomad.location_tracker import LocationTracker, haversine_km
from guardnomad.models import Location

lat_st = st.floats(min_value=-90, max_value=90, allow_nan=False)
lng_st = st.floats(min_value=-180, max_value=180, allow_nan=False)


class TestBucketKey:
    def test_nearby_points_share_a_bucket(self):
        a = Location(lat=48.8566, lng=2.3522)
        b = Location(lat=48.8571, lng=2.3519)
        assert a.bucket_key() == b.bucket_key() == "geo:48.86,2.35"

    def test_negative_zero_folds(self):
        assert Location(lat=-0.001, lng=0.001).bucket_key() == "geo:0.00,0.00"

    def test_place_key_without_coordinates(self):
        assert Location(city=" Paris ", country="FRANCE").bucket_key() == "place:paris,france"
        assert Location(country="Japan").bucket_key() == "place:japan"
        assert Location().bucket_key() is None

    @given(lat=lat_st, lng=lng_st)
    def test_bucket_is_within_half_a_cell(self, lat, lng):
        key = Location(lat=lat, lng=lng).bucket_key()
        assert key.startswith("geo:")
        k_lat, k_lng = (float(v) for v in key[4:].split(","))
        assert abs(k_lat - lat) <= 0.005 + 1e-9
        assert abs(k_lng - lng) <= 0.005 + 1e-9


class TestHaversine:
    def test_known_distances(self):
        assert haversine_km(0, 0, 0, 0.09) == pytest.approx(10.0, abs=0.05)
        assert haversine_km(0, 0, 0, 0.01) == pytest.approx(1.112, abs=0.01)
        # one degree of longitude at the equator with R = 6371
        assert haversine_km(0, 0, 0, 1) == pytest.approx(111.195, abs=0.001)

    @given(lat1=lat_st, lng1=lng_st, lat2=lat_st, lng2=lng_st)
    def test_symmetric_and_bounded(self, lat1, lng1, lat2, lng2):
        d = haversine_km(lat1, lng1, lat2, lng2)
        assert d >= 0
        assert d <= 20015.1  # half the circumference
        assert d == pytest.approx(haversine_km(lat2, lng2, lat1, lng1), abs=1e-6)


class TestLocationTracker:
    def test_no_prior_record_counts_as_moved(self, clock):
        tracker = LocationTracker(clock=clock)
        assert tracker.has_moved_significantly("u1", Location(lat=0, lng=0))

    def test_movement_threshold(self, clock):
        tracker = LocationTracker(clock=clock)
        tracker.update_location("u1", Location(lat=0, lng=0))
        assert tracker.has_moved_significantly("u1", Location(lat=0, lng=0.09), threshold_km=5)
        assert not tracker.has_moved_significantly("u1", Location(lat=0, lng=0.01), threshold_km=5)

    def test_location_expires_after_ttl(self, clock):
        tracker = LocationTracker(ttl_sec=300, clock=clock)
        loc = Location(lat=1, lng=1, country="X")
        tracker.update_location("u1", loc)
        clock.advance(300)
        assert tracker.get_location("u1") == loc
        clock.advance(1)
        assert tracker.get_location("u1") is None
        assert len(tracker) == 0
        # an expired record means the next update is a new location
        assert tracker.has_moved_significantly("u1", loc)

    def test_update_overwrites_and_clear_removes(self, clock):
        tracker = LocationTracker(clock=clock)
        tracker.update_location("u1", Location(country="France"))
        tracker.update_location("u1", Location(country="Spain"))
        assert tracker.get_location("u1").country == "Spain"
        tracker.clear_location("u1")
        assert tracker.get_location("u1") is None

    def test_place_only_locations_compare_by_key(self, clock):
        tracker = LocationTracker(clock=clock)
        tracker.update_location("u1", Location(city="Paris", country="France"))
        assert not tracker.has_moved_significantly("u1", Location(city="paris", country="france"))
        assert tracker.has_moved_significantly("u1", Location(city="Lyon", country="France"))
