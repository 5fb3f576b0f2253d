from decimal import Decimal
from io import StringIO

from django.contrib.auth.models import Group
from django.core.management import call_command
from django.test import TestCase, override_settings

from blood.models import BloodInventory, Hospital
from donor.models import Donor


@override_settings(GEOCODER_ALLOW_REMOTE=False)
class GeocodeDonorsCommandTests(TestCase):
	def _unpinned(self, **fields):
		donor = Donor.objects.create(full_name="Legacy", blood_type="O+", **fields)
		# Simulate rows saved before geocoding existed.
		Donor.objects.filter(pk=donor.pk).update(latitude=None, longitude=None)
		return donor

	def test_backfills_from_address_then_city(self):
		by_address = self._unpinned(address="Test Address")
		by_city = self._unpinned(address="Unknown Lane 9", city="Mumbai")
		lost = self._unpinned(address="Unknown Lane 10")

		out, err = StringIO(), StringIO()
		call_command("geocode_donors", "--offline", stdout=out, stderr=err)

		by_address.refresh_from_db()
		by_city.refresh_from_db()
		lost.refresh_from_db()
		self.assertEqual(by_address.latitude, Decimal("12.971599"))
		self.assertEqual(by_city.latitude, Decimal("19.076090"))
		self.assertIsNone(lost.latitude)
		self.assertIn("Geocoded 2 of 3 donors.", out.getvalue())
		self.assertIn(f"#{lost.id}", err.getvalue())

	def test_dry_run_does_not_save(self):
		donor = self._unpinned(address="Test Address")
		out = StringIO()
		call_command("geocode_donors", "--offline", "--dry-run", stdout=out)

		donor.refresh_from_db()
		self.assertIsNone(donor.latitude)
		self.assertIn("DRY-RUN", out.getvalue())

	def test_nothing_to_do(self):
		Donor.objects.create(
			full_name="Pinned", blood_type="O+", latitude=Decimal("1.0"), longitude=Decimal("2.0"),
		)
		out = StringIO()
		call_command("geocode_donors", stdout=out)
		self.assertIn("No donors require geocoding.", out.getvalue())


@override_settings(GEOCODER_ALLOW_REMOTE=False)
class SeedDemoDataCommandTests(TestCase):
	def test_seed_creates_linked_records(self):
		out = StringIO()
		call_command("seed_demo_data", "--donors", "12", "--hospitals", "3", "--seed", "7", stdout=out)

		self.assertEqual(Donor.objects.count(), 12)
		self.assertEqual(Hospital.objects.count(), 3)
		self.assertEqual(Group.objects.get(name="DONOR").user_set.count(), 12)
		for hospital in Hospital.objects.filter(has_blood_bank=True):
			self.assertEqual(BloodInventory.objects.filter(hospital=hospital).count(), 8)
		self.assertIn("Seed complete", out.getvalue())

	def test_purge_replaces_previous_run(self):
		call_command("seed_demo_data", "--donors", "5", "--hospitals", "2", "--seed", "1", stdout=StringIO())
		call_command("seed_demo_data", "--donors", "4", "--hospitals", "2", "--seed", "2", "--purge", stdout=StringIO())

		self.assertEqual(Donor.objects.count(), 4)
		self.assertEqual(Hospital.objects.count(), 2)
