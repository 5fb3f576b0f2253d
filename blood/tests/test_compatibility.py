from django.test import SimpleTestCase

from blood.services.compatibility import (
	BLOOD_TYPES,
	blood_type_category,
	can_donate_to,
	compatible_donor_types,
	compatible_recipient_types,
)

STANDARD_CHART = {
	"A+": {"A+", "A-", "O+", "O-"},
	"A-": {"A-", "O-"},
	"B+": {"B+", "B-", "O+", "O-"},
	"B-": {"B-", "O-"},
	"AB+": {"A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"},
	"AB-": {"A-", "B-", "AB-", "O-"},
	"O+": {"O+", "O-"},
	"O-": {"O-"},
}


class CompatibilityTableTests(SimpleTestCase):
	def test_every_recipient_matches_standard_chart(self):
		for recipient, donors in STANDARD_CHART.items():
			with self.subTest(recipient=recipient):
				self.assertSetEqual(set(compatible_donor_types(recipient)), donors)

	def test_universal_donor_and_recipient(self):
		self.assertEqual(set(compatible_recipient_types("O-")), set(BLOOD_TYPES))
		self.assertEqual(set(compatible_donor_types("AB+")), set(BLOOD_TYPES))

	def test_recipient_lookup_is_inverse_of_donor_lookup(self):
		self.assertSetEqual(set(compatible_recipient_types("AB+")), {"AB+"})
		self.assertSetEqual(set(compatible_recipient_types("A-")), {"A+", "A-", "AB+", "AB-"})

	def test_input_is_trimmed_and_upper_cased(self):
		self.assertEqual(compatible_donor_types(" ab- "), ("A-", "B-", "AB-", "O-"))

	def test_unknown_type_only_matches_itself(self):
		self.assertEqual(compatible_donor_types("Bombay"), ("BOMBAY",))

	def test_blank_type_has_no_donors(self):
		self.assertEqual(compatible_donor_types(""), ())
		self.assertEqual(compatible_donor_types(None), ())

	def test_can_donate_to(self):
		self.assertTrue(can_donate_to("O-", "B+"))
		self.assertFalse(can_donate_to("A+", "O+"))
		self.assertFalse(can_donate_to("", "AB+"))

	def test_category(self):
		self.assertEqual(blood_type_category("AB+"), "positive")
		self.assertEqual(blood_type_category("o-"), "negative")
