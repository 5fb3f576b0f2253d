from decimal import Decimal
from unittest.mock import patch

from django.db import DatabaseError
from django.test import TestCase, override_settings

from blood.models import BloodRequest, DonorMatch, Notification
from blood.services import notifications
from donor.models import Donor


@override_settings(GEOCODER_ALLOW_REMOTE=False)
class EmergencyFanOutTests(TestCase):
    def _donor(self, name, blood_type, latitude=None, longitude=None, **extra):
        return Donor.objects.create(
            full_name=name,
            blood_type=blood_type,
            latitude=latitude,
            longitude=longitude,
            **extra,
        )

    def _request(self, blood_type="B+", **extra):
        defaults = {"patient_name": "Ravi", "units_needed": 3, "is_emergency": True, "urgency": "critical"}
        defaults.update(extra)
        return BloodRequest.objects.create(blood_type=blood_type, **defaults)

    def test_only_available_compatible_donors_are_notified(self):
        compatible = self._donor("O neg", "O-")
        self._donor("A pos", "A+")
        self._donor("Resting", "B+", is_available=False)
        self._donor("Retired", "B-", is_donor=False)

        blood_request = self._request(city="Chennai")
        count = notifications.notify_compatible_donors(blood_request)

        self.assertEqual(count, 1)
        notification = Notification.objects.get()
        self.assertEqual(notification.donor, compatible)
        self.assertEqual(notification.type, "emergency")
        self.assertEqual(notification.title, "Emergency Blood Request")
        self.assertEqual(notification.message, "Urgent need for B+ blood in Chennai. 3 unit(s) required.")
        self.assertEqual(notification.data, {"request_id": blood_request.id})

    def test_message_falls_back_to_your_area(self):
        self._donor("O pos", "O+")
        notifications.notify_compatible_donors(self._request(blood_type="O+", units_needed=1))
        self.assertIn("in your area.", Notification.objects.get().message)

    def test_no_compatible_donors_returns_zero(self):
        self._donor("A pos", "A+")
        self.assertEqual(notifications.notify_compatible_donors(self._request(blood_type="O-")), 0)
        self.assertFalse(Notification.objects.exists())

    def test_limit_prefers_nearest_donors_when_request_is_pinned(self):
        far = self._donor("Far", "O+", Decimal("28.613939"), Decimal("77.209023"))
        near = self._donor("Near", "O+", Decimal("12.971599"), Decimal("77.594566"))
        self._donor("Unpinned", "O+")

        blood_request = self._request(blood_type="O+", latitude=Decimal("12.970000"), longitude=Decimal("77.590000"))
        selected = notifications.select_donors_for_request(blood_request, limit=2)

        self.assertEqual(selected, [near, far])

    @override_settings(EMERGENCY_NOTIFY_LIMIT=2)
    def test_default_limit_comes_from_settings(self):
        for index in range(4):
            self._donor(f"Donor {index}", "AB+")
        self.assertEqual(notifications.notify_compatible_donors(self._request(blood_type="AB+")), 2)


@override_settings(GEOCODER_ALLOW_REMOTE=False)
class ContactDonorTests(TestCase):
    def setUp(self):
        self.donor = Donor.objects.create(full_name="Asha", blood_type="A+")
        self.blood_request = BloodRequest.objects.create(patient_name="Kiran", blood_type="A+")

    def test_default_message_names_requester(self):
        notification = notifications.contact_donor(self.donor, requester_name="Meera")
        self.assertEqual(notification.type, "donation_request")
        self.assertEqual(notification.message, "You have a new blood donation request from Meera.")
        self.assertFalse(DonorMatch.objects.exists())

    def test_anonymous_requester_wording(self):
        notification = notifications.contact_donor(self.donor)
        self.assertEqual(notification.message, "You have a new blood donation request from a patient in need.")

    def test_match_is_upserted(self):
        notifications.contact_donor(self.donor, blood_request=self.blood_request)
        notifications.contact_donor(self.donor, blood_request=self.blood_request, message="Still needed")

        match = DonorMatch.objects.get()
        self.assertEqual(match.status, "notified")
        self.assertIsNotNone(match.notified_at)
        self.assertEqual(Notification.objects.count(), 2)

    def test_match_failure_does_not_undo_notification(self):
        with patch.object(DonorMatch.objects, "update_or_create", side_effect=DatabaseError("boom")):
            with self.assertLogs("blood.services.notifications", level="ERROR"):
                notification = notifications.contact_donor(self.donor, blood_request=self.blood_request)

        self.assertTrue(Notification.objects.filter(pk=notification.pk).exists())
