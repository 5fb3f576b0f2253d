from __future__ import annotations

from typing import Dict, Iterable, List

from django.conf import settings


def severity_level(units: int) -> str:
	critical = int(getattr(settings, "INVENTORY_CRITICAL_UNITS", 5))
	low = int(getattr(settings, "INVENTORY_LOW_UNITS", 15))
	if units <= critical:
		return "critical"
	if units <= low:
		return "low"
	return "normal"


def summarize_inventory(rows: Iterable) -> Dict[str, Dict[str, int]]:
	"""Total units and contributing hospital count per blood type."""

	summary: Dict[str, Dict[str, int]] = {}
	for row in rows:
		bucket = summary.setdefault(row.blood_type, {"total": 0, "hospitals": 0})
		bucket["total"] += row.units_available
		bucket["hospitals"] += 1
	return summary


def units_by_type(rows: Iterable) -> Dict[str, int]:
	totals: Dict[str, int] = {}
	for row in rows:
		totals[row.blood_type] = totals.get(row.blood_type, 0) + row.units_available
	return totals


def shortage_alerts(rows: Iterable) -> List[dict]:
	alerts = [
		{
			"id": row.id,
			"blood_type": row.blood_type,
			"units": row.units_available,
			"location": row.hospital.name if row.hospital_id else "",
			"severity": severity_level(row.units_available),
		}
		for row in rows
	]
	alerts.sort(key=lambda alert: alert["units"])
	return alerts
