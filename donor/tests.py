import json
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth.models import User
from django.test import Client, TestCase, override_settings
from django.urls import reverse

from blood.models import Hospital
from donor.forms import DonorForm, DonorProfileForm
from donor import models as dmodels


def _post_json(client, url, payload):
	return client.post(url, data=json.dumps(payload), content_type='application/json')


class DonorFormGeoTests(TestCase):
	def setUp(self):
		self.base_data = {
			'full_name': 'Asha Rao',
			'blood_type': 'A+',
			'address': '221B Baker Street',
			'phone': '1234567890',
		}

	def test_coordinates_optional_when_both_blank(self):
		form = DonorForm(data=self.base_data)
		self.assertTrue(form.is_valid(), form.errors)
		self.assertIsNone(form.cleaned_data['coordinates'])

	def test_rejects_partial_coordinate_submission(self):
		partial = {**self.base_data, 'latitude': '12.9716'}
		form = DonorForm(data=partial)
		self.assertFalse(form.is_valid())
		self.assertIn('Please provide both latitude and longitude or leave both blank.', form.errors['__all__'])

	def test_accepts_valid_coordinate_pair(self):
		data = {
			**self.base_data,
			'latitude': '12.971598',
			'longitude': '77.594566',
		}
		form = DonorForm(data=data)
		self.assertTrue(form.is_valid(), form.errors)

	def test_gender_defaults_to_unspecified(self):
		form = DonorForm(data=self.base_data)
		self.assertTrue(form.is_valid(), form.errors)
		self.assertEqual(form.cleaned_data['gender'], 'U')

	def test_unknown_blood_type_rejected(self):
		form = DonorForm(data={**self.base_data, 'blood_type': 'C+'})
		self.assertFalse(form.is_valid())
		self.assertIn('blood_type', form.errors)


@override_settings(GEOCODER_ALLOW_REMOTE=False)
class DonorGeocodingSignalTests(TestCase):
	def test_address_is_geocoded_on_save(self):
		donor = dmodels.Donor.objects.create(full_name='Signal Donor', blood_type='O+', address='Test Address')
		self.assertEqual(str(donor.latitude), '12.971599')
		self.assertEqual(str(donor.longitude), '77.594566')

	def test_city_is_used_when_address_is_blank(self):
		donor = dmodels.Donor.objects.create(full_name='City Donor', blood_type='O+', city='Chennai')
		self.assertEqual(donor.latitude, Decimal('13.082680'))

	def test_manual_pin_is_kept(self):
		donor = dmodels.Donor.objects.create(
			full_name='Pinned',
			blood_type='O+',
			address='Test Address',
			latitude=Decimal('1.000000'),
			longitude=Decimal('2.000000'),
		)
		self.assertEqual(donor.latitude, Decimal('1.000000'))

	def test_unknown_address_leaves_coordinates_blank(self):
		donor = dmodels.Donor.objects.create(full_name='Nowhere', blood_type='O+', address='No Such Place 42')
		self.assertFalse(donor.has_coordinates)

	def test_availability_toggle_skips_lookup(self):
		donor = dmodels.Donor.objects.create(full_name='Unpinned', blood_type='O+', address='No Such Place 42', city='Nowhere')

		with patch('donor.signals.geocode_address') as lookup:
			donor.mark_availability(False)

		lookup.assert_not_called()
		donor.refresh_from_db()
		self.assertFalse(donor.is_available)

	def test_partial_save_of_pin_still_geocodes(self):
		donor = dmodels.Donor.objects.create(full_name='Legacy', blood_type='O+', address='No Such Place 42')
		donor.address = 'Test Address'
		donor.save(update_fields=['address', 'latitude', 'longitude'])

		donor.refresh_from_db()
		self.assertEqual(donor.latitude, Decimal('12.971599'))


class DonorModelTests(TestCase):
	def test_record_donation_starts_recovery(self):
		donor = dmodels.Donor.objects.create(full_name='Giver', blood_type='B+')
		donor.record_donation(date(2030, 1, 10))

		self.assertEqual(donor.total_donations, 1)
		self.assertFalse(donor.is_available)
		self.assertEqual(donor.last_donation_date, date(2030, 1, 10))
		self.assertEqual(donor.next_eligible_donation_date, date(2030, 1, 10) + timedelta(days=56))

	def test_never_donated_has_no_next_date(self):
		donor = dmodels.Donor(full_name='New', blood_type='B+')
		self.assertIsNone(donor.next_eligible_donation_date)

	def test_certificate_numbers_are_unique(self):
		donor = dmodels.Donor.objects.create(full_name='Giver', blood_type='B+')
		first = dmodels.Certificate.objects.create(donor=donor, blood_type='B+')
		second = dmodels.Certificate.objects.create(donor=donor, blood_type='B+')
		self.assertTrue(first.certificate_number.startswith('BL-'))
		self.assertNotEqual(first.certificate_number, second.certificate_number)


@override_settings(GEOCODER_ALLOW_REMOTE=False)
class DonorApiTestCase(TestCase):
	def setUp(self):
		self.client = Client()
		self.user = User.objects.create_user('asha', email='asha@example.com', password='pass1234')
		self.staff = User.objects.create_user('staff', password='pass1234', is_staff=True)


class SessionViewTests(DonorApiTestCase):
	def test_login_exposes_csrf_token(self):
		response = self.client.get(reverse('login'))
		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.json()['csrf_token'])
		self.assertFalse(response.json()['authenticated'])

	def test_login_and_logout(self):
		response = _post_json(self.client, reverse('login'), {'username': 'asha', 'password': 'pass1234'})
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.json()['user']['username'], 'asha')
		self.assertEqual(self.client.get(reverse('profile')).status_code, 200)

		self.client.post(reverse('logout'))
		self.assertEqual(self.client.get(reverse('profile')).status_code, 401)

	def test_bad_credentials(self):
		response = _post_json(self.client, reverse('login'), {'username': 'asha', 'password': 'nope'})
		self.assertEqual(response.status_code, 401)


class ProfileViewTests(DonorApiTestCase):
	def test_anonymous_profile_is_unauthorized(self):
		response = self.client.get(reverse('profile'))
		self.assertEqual(response.status_code, 401)
		self.assertEqual(response.json(), {'error': 'Unauthorized', 'authenticated': False})

	def test_signed_in_without_profile(self):
		self.client.force_login(self.user)
		body = self.client.get(reverse('profile')).json()
		self.assertTrue(body['authenticated'])
		self.assertIsNone(body['profile'])

	def test_first_save_creates_donor_profile(self):
		self.client.force_login(self.user)
		response = _post_json(self.client, reverse('profile'), {
			'full_name': 'Asha Rao',
			'blood_type': 'AB-',
			'city': 'Bengaluru',
			'phone': '9876543210',
		})

		self.assertEqual(response.status_code, 200)
		profile = response.json()['profile']
		self.assertEqual(profile['email'], 'asha@example.com')
		self.assertEqual(profile['total_donations'], 0)
		self.assertTrue(profile['is_available'])
		self.assertEqual(profile['gender'], 'U')
		self.assertTrue(self.user.groups.filter(name='DONOR').exists())

	def test_profile_requires_name_and_blood_type(self):
		self.client.force_login(self.user)
		response = _post_json(self.client, reverse('profile'), {'city': 'Bengaluru'})
		self.assertEqual(response.status_code, 400)
		self.assertIn('full_name', response.json()['details'])
		self.assertIn('blood_type', response.json()['details'])

	def test_partial_update_keeps_other_columns(self):
		donor = dmodels.Donor.objects.create(
			user=self.user, full_name='Asha Rao', blood_type='B+', city='Chennai', is_available=False,
			total_donations=4,
		)
		self.client.force_login(self.user)

		response = _post_json(self.client, reverse('profile'), {'phone': '9000000000', 'total_donations': 99})

		self.assertEqual(response.status_code, 200)
		donor.refresh_from_db()
		self.assertEqual(donor.phone, '9000000000')
		self.assertEqual(donor.blood_type, 'B+')
		self.assertEqual(donor.city, 'Chennai')
		self.assertFalse(donor.is_available)
		self.assertEqual(donor.total_donations, 4)

	def test_profile_form_ignores_unlisted_columns(self):
		self.assertNotIn('total_donations', DonorProfileForm.base_fields)
		self.assertNotIn('is_donor', DonorProfileForm.base_fields)


class DonorRegistryViewTests(DonorApiTestCase):
	def test_list_filters(self):
		dmodels.Donor.objects.create(full_name='Veteran', blood_type='O+', city='Bengaluru', total_donations=5)
		dmodels.Donor.objects.create(full_name='Resting', blood_type='O+', city='Bengaluru', is_available=False)
		dmodels.Donor.objects.create(full_name='Elsewhere', blood_type='A+', city='Mumbai')
		dmodels.Donor.objects.create(full_name='Retired', blood_type='O+', is_donor=False)

		donors = self.client.get(reverse('donors'), {'blood_type': 'O+', 'city': 'benga'}).json()['donors']
		self.assertEqual([donor['full_name'] for donor in donors], ['Veteran', 'Resting'])

		available = self.client.get(reverse('donors'), {'available': 'true'}).json()['donors']
		self.assertEqual({donor['full_name'] for donor in available}, {'Veteran', 'Elsewhere'})
		self.assertNotIn('phone', available[0])

	def test_register_requires_login(self):
		response = _post_json(self.client, reverse('donors'), {'full_name': 'Asha', 'blood_type': 'A+'})
		self.assertEqual(response.status_code, 401)

	def test_register_geocodes_and_joins_group(self):
		self.client.force_login(self.user)
		response = _post_json(self.client, reverse('donors'), {
			'full_name': 'Asha Rao', 'blood_type': 'A+', 'city': 'Bengaluru',
		})

		self.assertEqual(response.status_code, 201)
		donor = response.json()['donor']
		self.assertEqual(donor['latitude'], 12.971599)
		self.assertTrue(self.user.groups.filter(name='DONOR').exists())

		again = _post_json(self.client, reverse('donors'), {'full_name': 'Asha Rao', 'blood_type': 'A+'})
		self.assertEqual(again.status_code, 409)

	def test_availability_toggle(self):
		self.client.force_login(self.user)
		self.assertEqual(_post_json(self.client, reverse('donor-availability'), {'is_available': False}).status_code, 404)

		donor = dmodels.Donor.objects.create(user=self.user, full_name='Asha', blood_type='A+')
		self.assertEqual(_post_json(self.client, reverse('donor-availability'), {'is_available': 'no'}).status_code, 400)

		response = _post_json(self.client, reverse('donor-availability'), {'is_available': False})
		self.assertEqual(response.status_code, 200)
		donor.refresh_from_db()
		self.assertFalse(donor.is_available)
		self.assertIsNotNone(donor.availability_updated_at)


class DonationAndCertificateViewTests(DonorApiTestCase):
	def setUp(self):
		super().setUp()
		self.hospital = Hospital.objects.create(name='City Hospital', city='Bengaluru', is_verified=True)
		self.donor = dmodels.Donor.objects.create(user=self.user, full_name='Asha', blood_type='A-')
		self.other = dmodels.Donor.objects.create(full_name='Ravi', blood_type='O+')

	def test_recording_requires_staff(self):
		self.client.force_login(self.user)
		response = _post_json(self.client, reverse('donations'), {'donor': self.donor.id})
		self.assertEqual(response.status_code, 403)

	def test_completed_donation_updates_donor(self):
		self.client.force_login(self.staff)
		response = _post_json(self.client, reverse('donations'), {
			'donor': self.donor.id, 'hospital': self.hospital.id, 'units_donated': 2,
		})

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.json()['donation']['status'], 'completed')
		self.donor.refresh_from_db()
		self.assertEqual(self.donor.total_donations, 1)
		self.assertFalse(self.donor.is_available)
		self.assertIsNotNone(self.donor.last_donation_date)

	def test_scheduled_donation_leaves_counter(self):
		self.client.force_login(self.staff)
		_post_json(self.client, reverse('donations'), {'donor': self.donor.id, 'status': 'scheduled'})
		self.donor.refresh_from_db()
		self.assertEqual(self.donor.total_donations, 0)
		self.assertTrue(self.donor.is_available)

		listing = self.client.get(reverse('donations'), {'donor_id': self.donor.id, 'status': 'scheduled'}).json()
		self.assertEqual(len(listing['donations']), 1)

	def test_certificate_copies_donation_details(self):
		donation = dmodels.Donation.objects.create(donor=self.donor, hospital=self.hospital, units_donated=2)
		self.client.force_login(self.staff)

		response = _post_json(self.client, reverse('certificates'), {'donor': self.donor.id, 'donation': donation.id})

		self.assertEqual(response.status_code, 201)
		certificate = response.json()['certificate']
		self.assertTrue(certificate['certificate_number'].startswith('BL-'))
		self.assertEqual(certificate['blood_type'], 'A-')
		self.assertEqual(certificate['units_donated'], 2)
		self.assertEqual(certificate['hospital_name'], 'City Hospital')

	def test_certificate_rejects_foreign_donation(self):
		donation = dmodels.Donation.objects.create(donor=self.other)
		self.client.force_login(self.staff)
		response = _post_json(self.client, reverse('certificates'), {'donor': self.donor.id, 'donation': donation.id})
		self.assertEqual(response.status_code, 400)

	def test_donors_only_see_their_own_certificates(self):
		dmodels.Certificate.objects.create(donor=self.donor, blood_type='A-')
		dmodels.Certificate.objects.create(donor=self.other, blood_type='O+')

		self.assertEqual(self.client.get(reverse('certificates')).status_code, 401)

		self.client.force_login(self.user)
		mine = self.client.get(reverse('certificates'), {'donor_id': self.other.id}).json()['certificates']
		self.assertEqual([item['donor_id'] for item in mine], [self.donor.id])

		self.client.force_login(self.staff)
		filtered = self.client.get(reverse('certificates'), {'donor_id': self.other.id}).json()['certificates']
		self.assertEqual([item['donor_id'] for item in filtered], [self.other.id])


class HealthCheckViewTests(DonorApiTestCase):
	HEALTHY = {
		'age': 30,
		'weight_kg': 70,
		'hemoglobin': 14,
		'blood_pressure_systolic': 120,
		'blood_pressure_diastolic': 80,
		'pulse_rate': 72,
		'temperature': 36.8,
	}

	def test_anonymous_check_is_not_persisted(self):
		response = _post_json(self.client, reverse('health-check'), self.HEALTHY)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.json(), {'eligible': True, 'reasons': []})
		self.assertFalse(dmodels.HealthCheck.objects.exists())

	def test_check_is_saved_for_donor(self):
		donor = dmodels.Donor.objects.create(user=self.user, full_name='Asha', blood_type='A+')
		self.client.force_login(self.user)

		response = _post_json(self.client, reverse('health-check'), {**self.HEALTHY, 'hemoglobin': 10, 'is_pregnant': True})

		body = response.json()
		self.assertFalse(body['eligible'])
		self.assertEqual(len(body['reasons']), 2)
		self.assertIn('Hemoglobin level too low (minimum 12.5 g/dL)', body['reasons'])
		check = dmodels.HealthCheck.objects.get()
		self.assertEqual(check.donor, donor)
		self.assertFalse(check.is_eligible)
		self.assertEqual(check.eligibility_reason, '; '.join(body['reasons']))
		self.assertEqual(body['health_check']['id'], check.id)

	def test_invalid_metric_is_rejected(self):
		response = _post_json(self.client, reverse('health-check'), {'age': 'thirty'})
		self.assertEqual(response.status_code, 400)

	def test_two_decimal_readings_are_evaluated_and_rounded_on_save(self):
		donor = dmodels.Donor.objects.create(user=self.user, full_name='Asha', blood_type='A+')
		self.client.force_login(self.user)

		response = _post_json(self.client, reverse('health-check'), {
			'age': 30, 'weight_kg': 70, 'hemoglobin': 12.45, 'temperature': 37.55,
		})

		self.assertEqual(response.status_code, 200)
		body = response.json()
		self.assertFalse(body['eligible'])
		self.assertEqual(body['reasons'], [
			'Hemoglobin level too low (minimum 12.5 g/dL)',
			'Body temperature too high',
		])
		check = dmodels.HealthCheck.objects.get(donor=donor)
		self.assertEqual(check.hemoglobin, Decimal('12.5'))
		self.assertEqual(check.temperature, Decimal('37.6'))
