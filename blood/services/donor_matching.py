from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from math import atan2, cos, radians, sin, sqrt
from typing import Any, Iterable, List, Optional, Tuple

from blood.services.compatibility import compatible_donor_types

EARTH_RADIUS_KM = 6371.0
DEFAULT_RADIUS_KM = 50.0

Coordinates = Tuple[float, float]


class InvalidCoordinates(ValueError):
	"""Raised when a latitude/longitude pair cannot be used for distance maths."""


@dataclass(frozen=True)
class RankedDonor:
	donor: Any
	distance_km: Optional[float]


def haversine_km(lat1: float | Decimal, lon1: float | Decimal, lat2: float | Decimal, lon2: float | Decimal) -> float:
	phi1, phi2 = radians(float(lat1)), radians(float(lat2))
	dphi = radians(float(lat2) - float(lat1))
	dlambda = radians(float(lon2) - float(lon1))
	a = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlambda / 2) ** 2
	# Rounding can push ``a`` a hair past 1 for antipodal points.
	a = min(1.0, max(0.0, a))
	c = 2 * atan2(sqrt(a), sqrt(1 - a))
	return float(EARTH_RADIUS_KM * c)


def _coerce(value: Any, *, name: str, bound: float) -> float:
	if isinstance(value, bool):
		raise InvalidCoordinates(f"{name} must be a number")
	try:
		number = float(value)
	except (TypeError, ValueError):
		raise InvalidCoordinates(f"{name} must be a number") from None
	if not math.isfinite(number):
		raise InvalidCoordinates(f"{name} must be finite")
	if not -bound <= number <= bound:
		raise InvalidCoordinates(f"{name} must be between {-bound:g} and {bound:g}")
	return number


def parse_coordinates(latitude: Any, longitude: Any) -> Optional[Coordinates]:
	"""Validate a latitude/longitude pair.

	Returns ``None`` when both halves are blank; a half-filled pair or any
	non-numeric / out-of-range value raises :class:`InvalidCoordinates`.
	"""

	lat_blank = latitude is None or latitude == ""
	lon_blank = longitude is None or longitude == ""
	if lat_blank and lon_blank:
		return None
	if lat_blank or lon_blank:
		raise InvalidCoordinates("Please provide both latitude and longitude or leave both blank.")
	return (
		_coerce(latitude, name="latitude", bound=90.0),
		_coerce(longitude, name="longitude", bound=180.0),
	)


def donor_coordinates(donor: Any) -> Optional[Coordinates]:
	latitude = getattr(donor, "latitude", None)
	longitude = getattr(donor, "longitude", None)
	if latitude is None or longitude is None:
		return None
	try:
		return parse_coordinates(latitude, longitude)
	except InvalidCoordinates:
		return None


def rank_donors(
	candidates: Iterable[Any],
	origin: Optional[Coordinates] = None,
	radius_km: Optional[float] = DEFAULT_RADIUS_KM,
) -> List[RankedDonor]:
	"""Attach distances, drop donors outside ``radius_km`` and sort nearest first.

	Donors without coordinates are always kept and sort after every donor
	with a known distance. ``radius_km=None`` keeps everyone.
	"""

	if origin is None:
		return [RankedDonor(donor=donor, distance_km=None) for donor in candidates]

	ranked: List[RankedDonor] = []
	for donor in candidates:
		coords = donor_coordinates(donor)
		if coords is None:
			ranked.append(RankedDonor(donor=donor, distance_km=None))
			continue
		distance = haversine_km(origin[0], origin[1], coords[0], coords[1])
		if radius_km is not None and distance > radius_km:
			continue
		ranked.append(RankedDonor(donor=donor, distance_km=distance))

	ranked.sort(key=lambda item: (item.distance_km is None, item.distance_km or 0.0))
	return ranked


def match_donors(
	candidates: Iterable[Any],
	blood_type: str,
	origin: Optional[Coordinates] = None,
	radius_km: Optional[float] = DEFAULT_RADIUS_KM,
) -> List[RankedDonor]:
	"""Keep donors whose blood type can supply ``blood_type``, then rank them."""

	allowed = set(compatible_donor_types(blood_type))
	compatible = [donor for donor in candidates if getattr(donor, "blood_type", None) in allowed]
	return rank_donors(compatible, origin=origin, radius_km=radius_km)


__all__ = [
	"DEFAULT_RADIUS_KM",
	"EARTH_RADIUS_KM",
	"InvalidCoordinates",
	"RankedDonor",
	"donor_coordinates",
	"haversine_km",
	"match_donors",
	"parse_coordinates",
	"rank_donors",
]
