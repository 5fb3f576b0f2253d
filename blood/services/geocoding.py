from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from functools import lru_cache
from typing import Dict, Optional, Tuple

from django.conf import settings
from geopy.exc import GeopyError
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import Nominatim

LOGGER = logging.getLogger(__name__)

_DECIMAL_PLACES = Decimal("0.000001")


@dataclass(frozen=True)
class GeocodeResult:
	"""Container describing an address lookup outcome."""

	latitude: Decimal
	longitude: Decimal
	provider: str = "static"
	accuracy: Optional[str] = None
	raw: Optional[Dict] = None


def _quantize(value: float | Decimal) -> Decimal:
	return Decimal(str(value)).quantize(_DECIMAL_PLACES, rounding=ROUND_HALF_UP)


def _fixture_table() -> Dict[str, Tuple[float, float]]:
	fixtures = getattr(settings, "GEOCODER_STATIC_FIXTURES", {}) or {}
	return {key.strip().lower(): value for key, value in fixtures.items() if isinstance(value, (tuple, list)) and len(value) == 2}


# Successful remote lookups keyed by (address, country hint); oldest entries are evicted first.
_GEOCODE_CACHE: Dict[Tuple[str, str], GeocodeResult] = {}
_GEOCODE_CACHE_SIZE = 512


@lru_cache(maxsize=1)
def _geocode_callable():
	user_agent = getattr(settings, "GEOCODER_USER_AGENT", "bloodlink-geocoder")
	timeout = getattr(settings, "GEOCODER_TIMEOUT", 10)
	min_delay = getattr(settings, "GEOCODER_MIN_DELAY_SECONDS", 1.0)

	geolocator = Nominatim(user_agent=user_agent, timeout=timeout)
	return RateLimiter(geolocator.geocode, min_delay_seconds=min_delay, swallow_exceptions=False)


def clear_cache() -> None:
	_GEOCODE_CACHE.clear()


def _remember(cache_key: Tuple[str, str], result: GeocodeResult) -> None:
	while len(_GEOCODE_CACHE) >= _GEOCODE_CACHE_SIZE:
		del _GEOCODE_CACHE[next(iter(_GEOCODE_CACHE))]
	_GEOCODE_CACHE[cache_key] = result


def geocode_address(address: str, *, country_bias: Optional[str] = None, allow_remote: bool = True) -> Optional[GeocodeResult]:
	"""Resolve a postal address (or bare city name) into coordinates.

	Parameters
	----------
	address:
		The textual address to geocode.
	country_bias:
		Optional ISO country code hint forwarded to the provider.
	allow_remote:
		When False, only static fixtures and cached lookups are used (ideal for tests).
	"""

	if not address:
		return None

	normalized = address.strip()
	key = normalized.lower()
	if not key:
		return None

	# Fixture settings are read per call so override_settings applies in tests.
	fixture = _fixture_table().get(key)
	if fixture:
		return GeocodeResult(
			latitude=_quantize(fixture[0]),
			longitude=_quantize(fixture[1]),
			provider="fixture",
			accuracy="exact",
		)

	cache_key = (key, (country_bias or "").strip().lower())
	if cache_key in _GEOCODE_CACHE:
		return _GEOCODE_CACHE[cache_key]

	if not allow_remote:
		return None

	try:
		geocode_fn = _geocode_callable()
		location = geocode_fn(query=normalized, addressdetails=True, country_codes=country_bias)
	except GeopyError as exc:  # pragma: no cover - depends on network
		LOGGER.warning("Remote geocoding failed for '%s': %s", normalized, exc)
		return None

	if not location:
		LOGGER.info("No geocoding result for '%s'", normalized)
		return None

	raw = location.raw if isinstance(location.raw, dict) else None
	result = GeocodeResult(
		latitude=_quantize(location.latitude),
		longitude=_quantize(location.longitude),
		provider="nominatim",
		accuracy=str(raw.get("type")) if raw else None,
		raw=raw,
	)
	_remember(cache_key, result)
	return result


__all__ = ["GeocodeResult", "clear_cache", "geocode_address"]
