"""AWS SNS powered alert helpers for emergency blood requests."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional, Sequence, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings
from django.db.models import Case, IntegerField, Q, Value, When
from django.utils import timezone

from blood.services.compatibility import compatible_donor_types
from blood.utils.phone import normalize_phone_number
from donor.models import Donor


logger = logging.getLogger(__name__)


@dataclass
class AlertResult:
	"""Lightweight summary of an alert dispatch attempt."""

	enabled: bool
	attempted: int
	delivered: int
	recipients: List[str]
	skipped: List[str]
	reason: Optional[str] = None


def notify_compatible_donors_sms(blood_request, *, sns_client=None) -> AlertResult:
	"""Text donors whose blood type can supply an emergency request."""

	if not blood_request.is_emergency:
		return AlertResult(True, 0, 0, [], [], reason="not-emergency")

	if not settings.AWS_SNS_ENABLED:
		logger.info("AWS SNS alerts disabled; skipping emergency request %s", blood_request.id)
		return AlertResult(False, 0, 0, [], [], reason="sns-disabled")

	if sns_client is None:
		sns_client = _get_sns_client()

	donors = _select_donors_for_alert(blood_request)
	if not donors:
		logger.warning("No donors eligible for emergency request %s (%s)", blood_request.id, blood_request.blood_type)
		return AlertResult(True, 0, 0, [], [], reason="no-donors")

	message = _build_message(blood_request)
	attributes = _message_attributes()

	sent_to: List[str] = []
	skipped: List[str] = []
	now = timezone.now()

	for donor, phone in donors:
		try:
			sns_client.publish(PhoneNumber=phone, Message=message, MessageAttributes=attributes)
		except (BotoCoreError, ClientError) as exc:  # pragma: no cover - network errors not deterministic
			skipped.append(phone)
			logger.error(
				"Failed to publish emergency alert for request %s to donor %s (phone: %s): %s",
				blood_request.id,
				donor.id,
				phone,
				exc,
			)
			continue

		sent_to.append(phone)
		Donor.objects.filter(pk=donor.pk).update(last_notified_at=now)

	return AlertResult(True, len(donors), len(sent_to), sent_to, skipped)


def send_requester_confirmation(blood_request, *, sns_client=None) -> dict:
	"""Confirm back to the requester that their request was logged."""

	phone = normalize_phone_number(blood_request.contact_phone)
	if not phone:
		return {'status': 'skipped', 'reason': 'no-contact'}

	if not settings.AWS_SNS_ENABLED:
		logger.info("AWS SNS alerts disabled; skipping requester confirmation for %s", blood_request.id)
		return {'status': 'skipped', 'reason': 'sns-disabled'}

	if sns_client is None:
		sns_client = _get_sns_client()

	try:
		response = sns_client.publish(
			PhoneNumber=phone,
			Message=_build_requester_confirmation_message(blood_request),
			MessageAttributes=_message_attributes(),
		)
	except (BotoCoreError, ClientError) as exc:  # pragma: no cover - network/credentials issues
		logger.error("Error sending requester confirmation for %s: %s", blood_request.id, exc)
		return {'status': 'error', 'reason': str(exc)}

	return {'status': 'success', 'to': phone, 'message_id': response.get('MessageId')}


def _get_sns_client():
	return boto3.client('sns', region_name=settings.AWS_SNS_REGION)


def _select_donors_for_alert(blood_request) -> Sequence[Tuple[Donor, str]]:
	base_queryset = (
		Donor.objects.filter(
			blood_type__in=compatible_donor_types(blood_request.blood_type),
			is_donor=True,
			is_available=True,
		)
		.exclude(Q(phone__isnull=True) | Q(phone__exact=""))
	)

	total_candidates = base_queryset.count()
	logger.info("Found %s available donors compatible with %s", total_candidates, blood_request.blood_type)

	gap_seconds = max(settings.AWS_SNS_MIN_NOTIFICATION_GAP_SECONDS, 0)
	if gap_seconds:
		cutoff = timezone.now() - timedelta(seconds=gap_seconds)
		base_queryset = base_queryset.filter(Q(last_notified_at__lt=cutoff) | Q(last_notified_at__isnull=True))

	filtered_candidates = base_queryset.count()
	if total_candidates > filtered_candidates:
		logger.info("Skipped %s donors due to %ss cooldown", total_candidates - filtered_candidates, gap_seconds)

	city = (blood_request.city or "").strip()
	ordered_queryset = base_queryset.annotate(
		city_match=Case(
			When(city__iexact=city, then=Value(0)),
			default=Value(1),
			output_field=IntegerField(),
		)
	).order_by('city_match', 'last_notified_at', 'id')

	max_recipients = max(settings.AWS_SNS_MAX_RECIPIENTS, 1)
	donors: List[Tuple[Donor, str]] = []
	seen_numbers = set()

	skipped_invalid = 0
	for donor in ordered_queryset[: max_recipients * 2]:  # light over-fetch to offset formatting skips
		formatted = normalize_phone_number(donor.phone)
		if not formatted:
			skipped_invalid += 1
			continue
		if formatted in seen_numbers:
			continue
		donors.append((donor, formatted))
		seen_numbers.add(formatted)
		if len(donors) >= max_recipients:
			break

	if skipped_invalid > 0:
		logger.warning("Skipped %s donors due to invalid phone numbers", skipped_invalid)

	return donors


def _build_message(blood_request) -> str:
	area = blood_request.city or "your area"
	base = (
		f"EMERGENCY: {blood_request.blood_type} blood needed for {blood_request.patient_name} "
		f"({blood_request.units_needed} unit(s)) in {area}."
	)
	details = " Open BloodLink to respond."
	if blood_request.contact_phone:
		details = f" Contact {blood_request.contact_phone} if you can donate." + details
	return f"{base}{details}"[:1200]


def _build_requester_confirmation_message(blood_request) -> str:
	kind = "emergency " if blood_request.is_emergency else ""
	follow_up = (
		"Compatible donors have been notified."
		if blood_request.is_emergency
		else "We will contact you when a donor is found."
	)
	return (
		f"BloodLink #{blood_request.id}: We received your {kind}{blood_request.blood_type} "
		f"request for {blood_request.units_needed} unit(s). {follow_up}"
	)


def _message_attributes():
	attributes = {
		'AWS.SNS.SMS.SMSType': {'DataType': 'String', 'StringValue': settings.AWS_SNS_SMS_TYPE},
	}
	if settings.AWS_SNS_SENDER_ID:
		attributes['AWS.SNS.SMS.SenderID'] = {
			'DataType': 'String',
			'StringValue': settings.AWS_SNS_SENDER_ID[:11],
		}
	return attributes
