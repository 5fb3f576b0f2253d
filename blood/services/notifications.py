"""In-app notification fan-out for emergency requests and direct donor contact."""

from __future__ import annotations

import logging
from typing import List, Optional

from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone

from blood.models import BloodRequest, DonorMatch, Notification
from blood.services.compatibility import compatible_donor_types
from blood.services.donor_matching import rank_donors
from donor.models import Donor

logger = logging.getLogger(__name__)


def _notify_limit() -> int:
	return max(int(getattr(settings, "EMERGENCY_NOTIFY_LIMIT", 20)), 1)


def select_donors_for_request(blood_request: BloodRequest, *, limit: Optional[int] = None) -> List[Donor]:
	"""Available donors who can supply the request, nearest first when it is pinned."""

	limit = limit or _notify_limit()
	candidates = Donor.objects.filter(
		is_donor=True,
		is_available=True,
		blood_type__in=compatible_donor_types(blood_request.blood_type),
	).order_by("id")

	origin = blood_request.coordinates
	if origin is None:
		return list(candidates[:limit])

	ranked = rank_donors(candidates, origin=origin, radius_km=None)
	return [entry.donor for entry in ranked[:limit]]


def emergency_message(blood_request: BloodRequest) -> str:
	return (
		f"Urgent need for {blood_request.blood_type} blood in {blood_request.city or 'your area'}. "
		f"{blood_request.units_needed} unit(s) required."
	)


def notify_compatible_donors(blood_request: BloodRequest, *, limit: Optional[int] = None) -> int:
	donors = select_donors_for_request(blood_request, limit=limit)
	if not donors:
		logger.warning(
			"No available donors compatible with emergency request %s (%s)",
			blood_request.id,
			blood_request.blood_type,
		)
		return 0

	message = emergency_message(blood_request)
	Notification.objects.bulk_create([
		Notification(
			donor=donor,
			title="Emergency Blood Request",
			message=message,
			type="emergency",
			data={"request_id": blood_request.id},
		)
		for donor in donors
	])
	logger.info("Notified %s donors about emergency request %s", len(donors), blood_request.id)
	return len(donors)


def contact_donor(
	donor: Donor,
	*,
	message: Optional[str] = None,
	blood_request: Optional[BloodRequest] = None,
	requester_name: Optional[str] = None,
) -> Notification:
	"""Notify one donor and record them as matched against ``blood_request``.

	The match upsert is best-effort: if it fails the notification still stands.
	"""

	notification = Notification.objects.create(
		donor=donor,
		title="New Blood Donation Request",
		message=message or f"You have a new blood donation request from {requester_name or 'a patient in need'}.",
		type="donation_request",
		data={
			"request_id": blood_request.id if blood_request else None,
			"requester_name": requester_name,
		},
	)

	if blood_request is not None:
		try:
			DonorMatch.objects.update_or_create(
				request=blood_request,
				donor=donor,
				defaults={"status": "notified", "notified_at": timezone.now()},
			)
		except DatabaseError:
			logger.exception(
				"Failed to update donor match for request %s / donor %s",
				blood_request.id,
				donor.id,
			)

	return notification
