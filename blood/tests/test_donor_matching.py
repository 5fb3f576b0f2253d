from types import SimpleNamespace

from django.test import SimpleTestCase

from blood.services.donor_matching import (
    InvalidCoordinates,
    haversine_km,
    match_donors,
    parse_coordinates,
    rank_donors,
)

BENGALURU = (12.971599, 77.594566)


def _donor(name, latitude=None, longitude=None, blood_type="O+"):
    return SimpleNamespace(name=name, latitude=latitude, longitude=longitude, blood_type=blood_type)


class HaversineTests(SimpleTestCase):
    def test_identical_points_are_zero_apart(self):
        self.assertEqual(haversine_km(*BENGALURU, *BENGALURU), 0.0)

    def test_distance_is_symmetric(self):
        chennai = (13.082680, 80.270718)
        self.assertAlmostEqual(haversine_km(*BENGALURU, *chennai), haversine_km(*chennai, *BENGALURU))

    def test_antipodal_points_span_half_the_globe(self):
        distance = haversine_km(0, 0, 0, 180)
        self.assertAlmostEqual(distance, 20015.0, delta=20015.0 * 0.01)

    def test_known_city_pair(self):
        # Bengaluru to Chennai is roughly 290 km as the crow flies.
        self.assertAlmostEqual(haversine_km(*BENGALURU, 13.082680, 80.270718), 290, delta=10)


class ParseCoordinatesTests(SimpleTestCase):
    def test_blank_pair_is_none(self):
        self.assertIsNone(parse_coordinates(None, ""))

    def test_zero_is_a_real_coordinate(self):
        self.assertEqual(parse_coordinates(0, 0), (0.0, 0.0))

    def test_half_pair_rejected(self):
        with self.assertRaises(InvalidCoordinates):
            parse_coordinates("12.9", None)

    def test_rejects_out_of_range_and_garbage(self):
        for latitude, longitude in [(91, 0), (0, -181), ("north", 10), (float("nan"), 1), (True, 1)]:
            with self.subTest(latitude=latitude, longitude=longitude):
                with self.assertRaises(InvalidCoordinates):
                    parse_coordinates(latitude, longitude)

    def test_accepts_numeric_strings(self):
        self.assertEqual(parse_coordinates("12.5", "-77.25"), (12.5, -77.25))


class RankDonorsTests(SimpleTestCase):
    def test_without_origin_keeps_everyone_in_order(self):
        donors = [_donor("far", 40, 40), _donor("unpinned"), _donor("near", *BENGALURU)]
        ranked = rank_donors(donors)
        self.assertEqual([entry.donor.name for entry in ranked], ["far", "unpinned", "near"])
        self.assertTrue(all(entry.distance_km is None for entry in ranked))

    def test_sorted_nearest_first_with_unpinned_last(self):
        donors = [
            _donor("unpinned"),
            _donor("ten", BENGALURU[0] + 0.09, BENGALURU[1]),
            _donor("here", *BENGALURU),
        ]
        ranked = rank_donors(donors, origin=BENGALURU, radius_km=50)
        self.assertEqual([entry.donor.name for entry in ranked], ["here", "ten", "unpinned"])
        self.assertIsNone(ranked[-1].distance_km)

    def test_radius_boundary_is_inclusive(self):
        edge = _donor("edge", BENGALURU[0] + 0.5, BENGALURU[1])
        exact = haversine_km(*BENGALURU, edge.latitude, edge.longitude)

        self.assertEqual(len(rank_donors([edge], origin=BENGALURU, radius_km=exact)), 1)
        self.assertEqual(rank_donors([edge], origin=BENGALURU, radius_km=exact - 0.001), [])

    def test_donors_without_coordinates_survive_any_radius(self):
        ranked = rank_donors([_donor("unpinned")], origin=BENGALURU, radius_km=0)
        self.assertEqual(len(ranked), 1)

    def test_radius_none_disables_filter(self):
        far = _donor("delhi", 28.613939, 77.209023)
        self.assertEqual(rank_donors([far], origin=BENGALURU, radius_km=50), [])
        self.assertEqual(len(rank_donors([far], origin=BENGALURU, radius_km=None)), 1)


class MatchDonorsTests(SimpleTestCase):
    def test_filters_incompatible_types_before_ranking(self):
        donors = [
            _donor("o-neg", *BENGALURU, blood_type="O-"),
            _donor("a-pos", *BENGALURU, blood_type="A+"),
            _donor("b-neg", *BENGALURU, blood_type="B-"),
        ]
        ranked = match_donors(donors, "B+", origin=BENGALURU)
        self.assertEqual({entry.donor.name for entry in ranked}, {"o-neg", "b-neg"})
