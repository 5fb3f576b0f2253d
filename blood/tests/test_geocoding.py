from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from django.test import SimpleTestCase

from blood.services import geocoding


def _location(latitude, longitude):
	return SimpleNamespace(latitude=latitude, longitude=longitude, raw={"type": "city"})


class GeocodeCacheTests(SimpleTestCase):
	def setUp(self):
		geocoding.clear_cache()
		self.addCleanup(geocoding.clear_cache)
		self.lookup = MagicMock()
		patcher = patch.object(geocoding, "_geocode_callable", return_value=self.lookup)
		patcher.start()
		self.addCleanup(patcher.stop)

	def test_fixtures_never_reach_the_provider(self):
		result = geocoding.geocode_address("Bengaluru")
		self.assertEqual(result.provider, "fixture")
		self.lookup.assert_not_called()

	def test_repeat_lookup_is_served_from_cache(self):
		self.lookup.return_value = _location(51.5072, -0.1276)

		first = geocoding.geocode_address("London", country_bias="gb")
		second = geocoding.geocode_address("  london ", country_bias="GB")

		self.assertEqual(first, second)
		self.assertEqual(first.latitude, Decimal("51.507200"))
		self.assertEqual(self.lookup.call_count, 1)

	def test_country_hint_is_part_of_the_cache_key(self):
		self.lookup.side_effect = [_location(42.9849, -81.2453), _location(51.5072, -0.1276)]

		canada = geocoding.geocode_address("London", country_bias="ca")
		england = geocoding.geocode_address("London", country_bias="gb")

		self.assertEqual(self.lookup.call_count, 2)
		self.assertNotEqual(canada.latitude, england.latitude)
		self.assertEqual(geocoding.geocode_address("London", country_bias="ca", allow_remote=False), canada)

	def test_cache_is_bounded(self):
		self.lookup.return_value = _location(10.0, 20.0)

		with patch.object(geocoding, "_GEOCODE_CACHE_SIZE", 2):
			for town in ("Alpha", "Bravo", "Charlie"):
				geocoding.geocode_address(town)

		self.assertEqual(len(geocoding._GEOCODE_CACHE), 2)
		self.assertIsNone(geocoding.geocode_address("Alpha", allow_remote=False))
		self.assertIsNotNone(geocoding.geocode_address("Charlie", allow_remote=False))

	def test_offline_miss_returns_none(self):
		self.assertIsNone(geocoding.geocode_address("Nowhere", allow_remote=False))
		self.lookup.assert_not_called()
