from __future__ import annotations

import logging

from django.conf import settings
from django.db.models.signals import pre_save
from django.dispatch import receiver

from blood.services.geocoding import geocode_address
from .models import Donor

LOGGER = logging.getLogger(__name__)


@receiver(pre_save, sender=Donor)
def populate_coordinates_from_address(sender, instance: Donor, **kwargs):
	"""Fill latitude/longitude from the address (or city) when the pin is blank."""

	# Manual pins are never overridden
	if instance.latitude is not None and instance.longitude is not None:
		return

	# Partial saves that do not write the pin would discard the lookup
	update_fields = kwargs.get("update_fields")
	if update_fields is not None and not {"latitude", "longitude"} & set(update_fields):
		return

	query = (instance.address or "").strip() or (instance.city or "").strip()
	if not query:
		return

	allow_remote = getattr(settings, "GEOCODER_ALLOW_REMOTE", True)
	result = geocode_address(query, country_bias=getattr(settings, "GEOCODER_COUNTRY_BIAS", None), allow_remote=allow_remote)
	if not result and instance.address and instance.city:
		result = geocode_address(instance.city, allow_remote=False)
	if not result:
		LOGGER.debug("Unable to geocode donor location '%s'", query)
		return

	instance.latitude = result.latitude
	instance.longitude = result.longitude
	LOGGER.debug("Assigned coordinates (%s, %s) to donor %s", result.latitude, result.longitude, instance)
