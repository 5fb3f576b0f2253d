"""Rule table for the self-reported donation eligibility questionnaire.

Every rule is an independent threshold or flag check. There is no scoring:
any rule that trips disqualifies the donor and contributes one reason.
A metric that was not supplied is skipped rather than treated as failing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

MIN_AGE = 18
MAX_AGE = 65
MIN_WEIGHT_KG = 50
MIN_HEMOGLOBIN_G_DL = 12.5
SYSTOLIC_RANGE = (90, 180)
DIASTOLIC_RANGE = (60, 100)
PULSE_RANGE_BPM = (50, 100)
MAX_TEMPERATURE_C = 37.5

# (field, reason) pairs; a truthy flag disqualifies.
RISK_FLAGS: Tuple[Tuple[str, str], ...] = (
	("has_recent_illness", "Recent illness - please wait until fully recovered"),
	("has_recent_surgery", "Recent surgery - wait period required"),
	("has_tattoo_recently", "Recent tattoo - 6 month wait period required"),
	("is_pregnant", "Cannot donate during pregnancy"),
	("is_breastfeeding", "Cannot donate while breastfeeding"),
	("on_medication", "Some medications may affect eligibility - consult with staff"),
)

ALL_CRITERIA_MET = "All criteria met"


@dataclass(frozen=True)
class EligibilityResult:
	eligible: bool
	reasons: Tuple[str, ...]

	@property
	def summary(self) -> str:
		return "; ".join(self.reasons) or ALL_CRITERIA_MET


def _number(metrics: Mapping[str, Any], key: str) -> Optional[float]:
	value = metrics.get(key)
	if value is None or value == "":
		return None
	return float(value)


def _outside(value: Optional[float], bounds: Tuple[float, float]) -> bool:
	return value is not None and not bounds[0] <= value <= bounds[1]


def evaluate_eligibility(metrics: Mapping[str, Any]) -> EligibilityResult:
	reasons = []

	age = _number(metrics, "age")
	if age is not None and age < MIN_AGE:
		reasons.append(f"Must be at least {MIN_AGE} years old")
	if age is not None and age > MAX_AGE:
		reasons.append(f"Age above {MAX_AGE} requires medical clearance")

	weight = _number(metrics, "weight_kg")
	if weight is not None and weight < MIN_WEIGHT_KG:
		reasons.append(f"Weight must be at least {MIN_WEIGHT_KG} kg")

	hemoglobin = _number(metrics, "hemoglobin")
	if hemoglobin is not None and hemoglobin < MIN_HEMOGLOBIN_G_DL:
		reasons.append(f"Hemoglobin level too low (minimum {MIN_HEMOGLOBIN_G_DL} g/dL)")

	if _outside(_number(metrics, "blood_pressure_systolic"), SYSTOLIC_RANGE):
		reasons.append("Blood pressure out of acceptable range")
	if _outside(_number(metrics, "blood_pressure_diastolic"), DIASTOLIC_RANGE):
		reasons.append("Diastolic blood pressure out of range")
	if _outside(_number(metrics, "pulse_rate"), PULSE_RANGE_BPM):
		reasons.append(f"Pulse rate out of acceptable range ({PULSE_RANGE_BPM[0]}-{PULSE_RANGE_BPM[1]} bpm)")

	temperature = _number(metrics, "temperature")
	if temperature is not None and temperature > MAX_TEMPERATURE_C:
		reasons.append("Body temperature too high")

	for field, reason in RISK_FLAGS:
		if metrics.get(field):
			reasons.append(reason)

	return EligibilityResult(eligible=not reasons, reasons=tuple(reasons))


__all__ = [
	"ALL_CRITERIA_MET",
	"DIASTOLIC_RANGE",
	"EligibilityResult",
	"MAX_AGE",
	"MAX_TEMPERATURE_C",
	"MIN_AGE",
	"MIN_HEMOGLOBIN_G_DL",
	"MIN_WEIGHT_KG",
	"PULSE_RANGE_BPM",
	"RISK_FLAGS",
	"SYSTOLIC_RANGE",
	"evaluate_eligibility",
]
