import json
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth.models import User
from django.test import Client, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from blood import models
from donor.models import Donation, Donor


def _post_json(client, url, payload, method="post"):
    return getattr(client, method)(url, data=json.dumps(payload), content_type="application/json")


@override_settings(GEOCODER_ALLOW_REMOTE=False, AWS_SNS_ENABLED=False)
class ApiTestCase(TestCase):
    def setUp(self):
        self.client = Client()
        self.staff = User.objects.create_user("staff", password="pass1234", is_staff=True)
        self.member = User.objects.create_user("member", password="pass1234", email="member@example.com")
        self.hospital = models.Hospital.objects.create(
            name="City Hospital", city="Bengaluru", is_verified=True, has_blood_bank=True,
        )

    def _donor(self, name, blood_type="O+", latitude=None, longitude=None, **extra):
        return Donor.objects.create(
            full_name=name,
            blood_type=blood_type,
            latitude=latitude,
            longitude=longitude,
            **extra,
        )


class DonorMatchViewTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.near = self._donor("Near", "O-", Decimal("12.971599"), Decimal("77.594566"), city="Bengaluru")
        self.far = self._donor("Far", "O+", Decimal("28.613939"), Decimal("77.209023"), city="New Delhi")
        self.unpinned = self._donor("Unpinned", "A+")
        self._donor("Incompatible", "B+", Decimal("12.971599"), Decimal("77.594566"))

    def test_blood_type_is_required(self):
        response = _post_json(self.client, reverse("donor-match"), {})
        self.assertEqual(response.status_code, 400)

    def test_match_without_location_returns_all_compatible(self):
        response = _post_json(self.client, reverse("donor-match"), {"blood_type": "a+"})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["compatible_types"], ["A+", "A-", "O+", "O-"])
        self.assertEqual(body["total"], 3)
        self.assertTrue(all(match["distance_km"] is None for match in body["matches"]))
        self.assertNotIn("phone", body["matches"][0])

    def test_match_with_location_filters_by_radius(self):
        response = _post_json(self.client, reverse("donor-match"), {
            "blood_type": "A+",
            "latitude": 12.97,
            "longitude": 77.59,
            "radius_km": 25,
        })

        body = response.json()
        names = [match["full_name"] for match in body["matches"]]
        self.assertEqual(names, ["Near", "Unpinned"])
        self.assertLess(body["matches"][0]["distance_km"], 1)
        self.assertIsNone(body["matches"][1]["distance_km"])

    def test_half_coordinates_rejected(self):
        response = _post_json(self.client, reverse("donor-match"), {"blood_type": "A+", "latitude": 12.97})
        self.assertEqual(response.status_code, 400)

    def test_out_of_range_coordinates_rejected(self):
        response = _post_json(self.client, reverse("donor-match"), {
            "blood_type": "A+", "latitude": 123, "longitude": 77.59,
        })
        self.assertEqual(response.status_code, 400)

    def test_malformed_json_rejected(self):
        response = self.client.post(reverse("donor-match"), data="{not json", content_type="application/json")
        self.assertEqual(response.status_code, 400)


class ContactDonorViewTests(ApiTestCase):
    def test_requires_login(self):
        donor = self._donor("Asha")
        response = _post_json(self.client, reverse("donor-contact"), {"donor_id": donor.id})
        self.assertEqual(response.status_code, 401)

    def test_donor_id_required(self):
        self.client.force_login(self.member)
        response = _post_json(self.client, reverse("donor-contact"), {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Donor ID is required")

    def test_contact_creates_notification_and_match(self):
        donor = self._donor("Asha")
        blood_request = models.BloodRequest.objects.create(patient_name="Kiran", blood_type="O+")
        self.client.force_login(self.member)

        response = _post_json(self.client, reverse("donor-contact"), {
            "donor_id": donor.id,
            "request_id": blood_request.id,
            "requester_name": "Kiran's family",
        })

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["success"])
        self.assertTrue(models.DonorMatch.objects.filter(request=blood_request, donor=donor, status="notified").exists())
        self.assertEqual(donor.notifications.get().type, "donation_request")

    def test_unknown_donor_is_404(self):
        self.client.force_login(self.member)
        response = _post_json(self.client, reverse("donor-contact"), {"donor_id": 9999})
        self.assertEqual(response.status_code, 404)


class BloodRequestViewTests(ApiTestCase):
    def test_create_and_filter_requests(self):
        response = _post_json(self.client, reverse("blood-requests"), {
            "patient_name": "Kiran",
            "blood_type": "B-",
            "units_needed": 2,
            "hospital": self.hospital.id,
        })
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["request"]["status"], "pending")
        models.BloodRequest.objects.create(patient_name="Old", blood_type="A+", status="fulfilled")

        listing = self.client.get(reverse("blood-requests"), {"status": "pending"}).json()["requests"]
        self.assertEqual([item["patient_name"] for item in listing], ["Kiran"])
        self.assertEqual(listing[0]["hospitals"], {"name": "City Hospital"})

    def test_requester_confirmation_queued_only_with_contact_phone(self):
        with patch("blood.views.tasks.send_requester_confirmation_sms.delay") as delay:
            _post_json(self.client, reverse("blood-requests"), {"patient_name": "Anon", "blood_type": "A+"})
            delay.assert_not_called()

            response = _post_json(self.client, reverse("blood-requests"), {
                "patient_name": "Kiran", "blood_type": "A+", "contact_phone": "9876543210",
            })
        delay.assert_called_once_with(response.json()["request"]["id"])

    def test_invalid_request_rejected(self):
        response = _post_json(self.client, reverse("blood-requests"), {"patient_name": "Kiran", "blood_type": "Q"})
        self.assertEqual(response.status_code, 400)

    def test_status_change_requires_staff(self):
        blood_request = models.BloodRequest.objects.create(patient_name="Kiran", blood_type="A+")
        url = reverse("blood-request-status", args=[blood_request.id])

        self.assertEqual(_post_json(self.client, url, {"status": "fulfilled"}).status_code, 401)
        self.client.force_login(self.member)
        self.assertEqual(_post_json(self.client, url, {"status": "fulfilled"}).status_code, 403)

        self.client.force_login(self.staff)
        response = _post_json(self.client, url, {"status": "fulfilled"})
        self.assertEqual(response.status_code, 200)
        blood_request.refresh_from_db()
        self.assertEqual(blood_request.status, "fulfilled")

    def test_backend_failure_is_reported_as_500(self):
        with patch("blood.views.models.BloodRequest.objects.select_related", side_effect=RuntimeError("db down")):
            with self.assertLogs("blood.utils.api", level="ERROR"):
                response = self.client.get(reverse("blood-requests"))
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "Failed to fetch blood requests"})


class EmergencyRequestViewTests(ApiTestCase):
    def test_emergency_request_notifies_compatible_donors(self):
        self._donor("O neg", "O-")
        self._donor("A neg", "A-")
        self._donor("B pos", "B+")

        response = _post_json(self.client, reverse("blood-request-emergency"), {
            "patient_name": "Kiran",
            "blood_type": "A-",
            "units_needed": 2,
            "city": "Bengaluru",
            "urgency": "low",
        })

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["notified_donors"], 2)
        self.assertTrue(body["request"]["is_emergency"])
        self.assertEqual(body["request"]["urgency"], "critical")
        self.assertEqual(body["request"]["status"], "pending")
        self.assertEqual(models.Notification.objects.filter(type="emergency").count(), 2)

    def test_notification_failure_keeps_request(self):
        with patch("blood.views.notifications.notify_compatible_donors", side_effect=RuntimeError("boom")):
            with self.assertLogs("blood.views", level="ERROR"):
                response = _post_json(self.client, reverse("blood-request-emergency"), {
                    "patient_name": "Kiran", "blood_type": "O+",
                })

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["notified_donors"], 0)
        self.assertTrue(models.BloodRequest.objects.filter(is_emergency=True).exists())

    def test_sms_task_is_queued(self):
        with patch("blood.views.tasks.send_emergency_sms.delay") as delay:
            response = _post_json(self.client, reverse("blood-request-emergency"), {
                "patient_name": "Kiran", "blood_type": "O+",
            })
        delay.assert_called_once_with(response.json()["request"]["id"])


class InventoryViewTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        other = models.Hospital.objects.create(name="Annex", city="Chennai", is_verified=True)
        self.row = models.BloodInventory.objects.create(hospital=self.hospital, blood_type="O-", units_available=3)
        models.BloodInventory.objects.create(hospital=other, blood_type="O-", units_available=12)
        models.BloodInventory.objects.create(hospital=self.hospital, blood_type="A+", units_available=40)

    def test_list_includes_summary(self):
        body = self.client.get(reverse("inventory")).json()
        self.assertEqual(len(body["inventory"]), 3)
        self.assertEqual(body["summary"]["O-"], {"total": 15, "hospitals": 2})
        self.assertEqual(body["inventory"][0]["blood_type"], "A+")

    def test_filter_by_hospital(self):
        body = self.client.get(reverse("inventory"), {"hospital_id": self.hospital.id, "blood_type": "O-"}).json()
        self.assertEqual(len(body["inventory"]), 1)
        self.assertEqual(body["inventory"][0]["severity"], "critical")

    def test_update_requires_staff(self):
        payload = {"id": self.row.id, "units_available": 20, "units_reserved": 2}
        self.client.force_login(self.member)
        self.assertEqual(_post_json(self.client, reverse("inventory"), payload, method="put").status_code, 403)

        self.client.force_login(self.staff)
        response = _post_json(self.client, reverse("inventory"), payload, method="put")
        self.assertEqual(response.status_code, 200)
        self.row.refresh_from_db()
        self.assertEqual((self.row.units_available, self.row.units_reserved), (20, 2))

    def test_alerts_sorted_by_units_with_severity(self):
        body = self.client.get(reverse("inventory-alerts")).json()
        self.assertEqual([alert["units"] for alert in body["alerts"]], [3, 12])
        self.assertEqual([alert["severity"] for alert in body["alerts"]], ["critical", "low"])
        self.assertEqual((body["critical"], body["low"]), (1, 1))
        self.assertEqual(body["alerts"][0]["location"], "City Hospital")


class HospitalAndEventViewTests(ApiTestCase):
    def test_only_verified_hospitals_listed(self):
        models.Hospital.objects.create(name="Unverified", city="Bengaluru")
        models.Hospital.objects.create(name="Apollo", city="Chennai", is_verified=True)

        names = [h["name"] for h in self.client.get(reverse("hospitals")).json()["hospitals"]]
        self.assertEqual(names, ["Apollo", "City Hospital"])

        filtered = self.client.get(reverse("hospitals"), {"city": "benga", "has_blood_bank": "true"}).json()
        self.assertEqual([h["name"] for h in filtered["hospitals"]], ["City Hospital"])

    def test_events_listing_and_staff_creation(self):
        payload = {"title": "Spring Drive", "event_type": "camp", "city": "Bengaluru", "start_date": "2030-03-01"}
        self.client.force_login(self.member)
        self.assertEqual(_post_json(self.client, reverse("events"), payload).status_code, 403)

        self.client.force_login(self.staff)
        response = _post_json(self.client, reverse("events"), payload)
        self.assertEqual(response.status_code, 201)
        models.Event.objects.create(title="Old", start_date=timezone.localdate(), is_active=False)

        events = self.client.get(reverse("events"), {"event_type": "camp"}).json()["events"]
        self.assertEqual([event["title"] for event in events], ["Spring Drive"])

    def test_event_dates_validated(self):
        self.client.force_login(self.staff)
        response = _post_json(self.client, reverse("events"), {
            "title": "Backwards", "start_date": "2030-03-05", "end_date": "2030-03-01",
        })
        self.assertEqual(response.status_code, 400)


class QueueViewTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.donor = self._donor("Queued", user=self.member)

    def test_booking_assigns_sequential_numbers(self):
        self.client.force_login(self.member)
        first = _post_json(self.client, reverse("queue"), {"hospital": self.hospital.id})
        second = _post_json(self.client, reverse("queue"), {"hospital": self.hospital.id})

        self.assertEqual(first.status_code, 201)
        self.assertEqual(first.json()["queue_number"], 1)
        self.assertEqual(second.json()["queue_number"], 2)

    def test_numbers_restart_per_day_and_hospital(self):
        tomorrow = timezone.localdate() + timedelta(days=1)
        models.QueueEntry.objects.create(donor=self.donor, hospital=self.hospital, queue_number=7)
        self.assertEqual(models.QueueEntry.next_queue_number(self.hospital, tomorrow), 1)
        self.assertEqual(models.QueueEntry.next_queue_number(self.hospital, timezone.localdate()), 8)

    def test_booking_requires_login(self):
        response = _post_json(self.client, reverse("queue"), {"hospital": self.hospital.id})
        self.assertEqual(response.status_code, 401)

    def test_status_updates_stamp_times_and_stats(self):
        entry = models.QueueEntry.objects.create(donor=self.donor, hospital=self.hospital, queue_number=1)
        self.client.force_login(self.staff)

        response = _post_json(self.client, reverse("queue"), {"id": entry.id, "status": "in_progress"}, method="put")
        self.assertEqual(response.status_code, 200)
        entry.refresh_from_db()
        self.assertIsNotNone(entry.check_in_time)
        self.assertIsNone(entry.completed_time)

        _post_json(self.client, reverse("queue"), {"id": entry.id, "status": "completed"}, method="put")
        entry.refresh_from_db()
        self.assertIsNotNone(entry.completed_time)

        body = self.client.get(reverse("queue"), {"hospital_id": self.hospital.id}).json()
        self.assertEqual(body["stats"], {"total": 1, "waiting": 0, "in_progress": 0, "completed": 1})
        self.assertEqual(body["queue"][0]["users"]["full_name"], "Queued")

    def test_invalid_date_filter(self):
        self.assertEqual(self.client.get(reverse("queue"), {"date": "yesterday"}).status_code, 400)


class DashboardViewTests(ApiTestCase):
    def test_totals(self):
        donor = self._donor("Giver")
        self._donor("Retired", is_donor=False)
        Donation.objects.create(donor=donor, hospital=self.hospital, units_donated=2)
        Donation.objects.create(donor=donor, units_donated=1)
        models.BloodInventory.objects.create(hospital=self.hospital, blood_type="O+", units_available=9)
        models.BloodRequest.objects.create(patient_name="P1", blood_type="O+", is_emergency=True)
        models.BloodRequest.objects.create(patient_name="P2", blood_type="O+", status="fulfilled")

        body = self.client.get(reverse("dashboard")).json()

        self.assertEqual(body["stats"], {
            "totalDonors": 1,
            "totalDonations": 2,
            "totalUnits": 3,
            "livesSaved": 9,
            "totalHospitals": 1,
            "activeEvents": 0,
            "pendingRequests": 1,
            "emergencyRequests": 1,
        })
        self.assertEqual(body["inventory"], {"O+": 9})
        self.assertEqual(len(body["recentDonations"]), 2)


class NotificationsViewTests(ApiTestCase):
    def test_own_notifications_only(self):
        mine = self._donor("Mine", user=self.member)
        other = self._donor("Other")
        models.Notification.objects.create(donor=mine, title="Hello", message="m")
        models.Notification.objects.create(donor=other, title="Not yours", message="m")

        self.assertEqual(self.client.get(reverse("notifications")).status_code, 401)
        self.client.force_login(self.member)
        body = self.client.get(reverse("notifications")).json()
        self.assertEqual([n["title"] for n in body["notifications"]], ["Hello"])
        self.assertEqual(body["unread"], 1)
