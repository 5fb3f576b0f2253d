"""ABO/Rh transfusion compatibility lookups."""

from __future__ import annotations

from typing import Dict, Optional, Tuple

BLOOD_TYPES: Tuple[str, ...] = ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-")

BLOOD_TYPE_CHOICES = [(blood_type, blood_type) for blood_type in BLOOD_TYPES]

# Recipient type -> donor types that may supply it.
COMPATIBLE_DONOR_TYPES: Dict[str, Tuple[str, ...]] = {
	"A+": ("A+", "A-", "O+", "O-"),
	"A-": ("A-", "O-"),
	"B+": ("B+", "B-", "O+", "O-"),
	"B-": ("B-", "O-"),
	"AB+": ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"),
	"AB-": ("A-", "B-", "AB-", "O-"),
	"O+": ("O+", "O-"),
	"O-": ("O-",),
}


def normalize_blood_type(blood_type: Optional[str]) -> str:
	return (blood_type or "").strip().upper()


def compatible_donor_types(blood_type: Optional[str]) -> Tuple[str, ...]:
	"""Return the donor types that can supply ``blood_type``.

	Unknown values are treated as compatible only with themselves. Blank or
	missing input yields no donor types, so it never matches anyone.
	"""

	normalized = normalize_blood_type(blood_type)
	if not normalized:
		return ()
	return COMPATIBLE_DONOR_TYPES.get(normalized, (normalized,))


def compatible_recipient_types(donor_type: Optional[str]) -> Tuple[str, ...]:
	normalized = normalize_blood_type(donor_type)
	return tuple(
		recipient for recipient in BLOOD_TYPES
		if normalized in COMPATIBLE_DONOR_TYPES[recipient]
	)


def can_donate_to(donor_type: Optional[str], recipient_type: Optional[str]) -> bool:
	donor = normalize_blood_type(donor_type)
	return bool(donor) and donor in compatible_donor_types(recipient_type)


def blood_type_category(blood_type: Optional[str]) -> str:
	return "positive" if "+" in normalize_blood_type(blood_type) else "negative"


__all__ = [
	"BLOOD_TYPES",
	"BLOOD_TYPE_CHOICES",
	"COMPATIBLE_DONOR_TYPES",
	"blood_type_category",
	"can_donate_to",
	"compatible_donor_types",
	"compatible_recipient_types",
	"normalize_blood_type",
]
