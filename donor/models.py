import secrets
import string
import time
from datetime import timedelta

from django.conf import settings
from django.contrib.auth.models import User
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import F
from django.utils import timezone

from blood.services.compatibility import BLOOD_TYPE_CHOICES

GENDER_CHOICES = (
    ('M', 'Male'),
    ('F', 'Female'),
    ('O', 'Other'),
    ('U', 'Prefer not to say'),
)


class Donor(models.Model):
    user = models.OneToOneField(User, on_delete=models.CASCADE, null=True, blank=True, related_name='donor_profile')
    full_name = models.CharField(max_length=120)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    blood_type = models.CharField(max_length=3, choices=BLOOD_TYPE_CHOICES)
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=1, choices=GENDER_CHOICES, default='U')
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    latitude = models.DecimalField(
        max_digits=9,
        decimal_places=6,
        null=True,
        blank=True,
        validators=[MinValueValidator(-90), MaxValueValidator(90)],
        help_text="Decimal latitude between -90 and 90"
    )
    longitude = models.DecimalField(
        max_digits=9,
        decimal_places=6,
        null=True,
        blank=True,
        validators=[MinValueValidator(-180), MaxValueValidator(180)],
        help_text="Decimal longitude between -180 and 180"
    )
    is_donor = models.BooleanField(default=True)
    is_available = models.BooleanField(default=True)
    availability_updated_at = models.DateTimeField(null=True, blank=True)
    last_notified_at = models.DateTimeField(null=True, blank=True)
    total_donations = models.PositiveIntegerField(default=0)
    last_donation_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-total_donations', 'id']

    def __str__(self):
        return f"{self.full_name} ({self.blood_type})"

    @property
    def has_coordinates(self):
        return self.latitude is not None and self.longitude is not None

    def mark_availability(self, available: bool):
        self.is_available = available
        self.availability_updated_at = timezone.now()
        self.save(update_fields=["is_available", "availability_updated_at", "updated_at"])

    def record_donation(self, donation_date=None):
        """Apply a completed donation: bump the counter and start recovery."""
        donation_date = donation_date or timezone.now().date()
        now = timezone.now()
        Donor.objects.filter(pk=self.pk).update(
            total_donations=F('total_donations') + 1,
            last_donation_date=donation_date,
            is_available=False,
            availability_updated_at=now,
            updated_at=now,
        )
        self.refresh_from_db(fields=['total_donations', 'last_donation_date', 'is_available', 'availability_updated_at', 'updated_at'])

    @property
    def age_years(self):
        if not self.date_of_birth:
            return None
        today = timezone.now().date()
        years = today.year - self.date_of_birth.year
        if (today.month, today.day) < (self.date_of_birth.month, self.date_of_birth.day):
            years -= 1
        return years

    @property
    def donation_recovery_days(self) -> int:
        return int(getattr(settings, "DONATION_RECOVERY_DAYS", 56))

    @property
    def next_eligible_donation_date(self):
        if not self.last_donation_date:
            return None
        return self.last_donation_date + timedelta(days=self.donation_recovery_days)

    def to_dict(self):
        # Public columns only; contact details stay private.
        return {
            'id': self.id,
            'full_name': self.full_name,
            'blood_type': self.blood_type,
            'city': self.city,
            'state': self.state,
            'is_donor': self.is_donor,
            'is_available': self.is_available,
            'total_donations': self.total_donations,
            'last_donation_date': self.last_donation_date,
            'latitude': float(self.latitude) if self.latitude is not None else None,
            'longitude': float(self.longitude) if self.longitude is not None else None,
        }

    def to_profile_dict(self):
        payload = self.to_dict()
        payload.update({
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'date_of_birth': self.date_of_birth,
            'gender': self.gender,
            'next_eligible_donation_date': self.next_eligible_donation_date,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        })
        return payload


class Donation(models.Model):
    STATUS_CHOICES = (
        ('scheduled', 'Scheduled'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    )

    donor = models.ForeignKey(Donor, on_delete=models.CASCADE, related_name='donations')
    hospital = models.ForeignKey('blood.Hospital', null=True, blank=True, on_delete=models.SET_NULL, related_name='donations')
    donation_date = models.DateField(default=timezone.localdate)
    units_donated = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1)])
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='completed')
    notes = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-donation_date', '-id']

    def __str__(self):
        return f"{self.donor.full_name} - {self.units_donated} unit(s) - {self.status}"

    def to_dict(self):
        return {
            'id': self.id,
            'donor_id': self.donor_id,
            'hospital_id': self.hospital_id,
            'donation_date': self.donation_date,
            'units_donated': self.units_donated,
            'status': self.status,
            'notes': self.notes,
            'created_at': self.created_at,
            'donor': {'full_name': self.donor.full_name, 'blood_type': self.donor.blood_type},
            'hospital': {'name': self.hospital.name} if self.hospital_id else None,
        }


class Certificate(models.Model):
    donor = models.ForeignKey(Donor, on_delete=models.CASCADE, related_name='certificates')
    donation = models.ForeignKey(Donation, null=True, blank=True, on_delete=models.SET_NULL, related_name='certificates')
    certificate_number = models.CharField(max_length=40, unique=True)
    issued_date = models.DateField(default=timezone.localdate)
    blood_type = models.CharField(max_length=3, choices=BLOOD_TYPE_CHOICES)
    units_donated = models.PositiveSmallIntegerField(default=1)
    hospital_name = models.CharField(max_length=150, blank=True)

    class Meta:
        ordering = ['-issued_date', '-id']

    def __str__(self):
        return self.certificate_number

    @staticmethod
    def generate_number():
        alphabet = string.digits + string.ascii_uppercase
        suffix = ''.join(secrets.choice(alphabet) for _ in range(6))
        return f"BL-{int(time.time() * 1000)}-{suffix}"

    def save(self, *args, **kwargs):
        if not self.certificate_number:
            self.certificate_number = self.generate_number()
        super().save(*args, **kwargs)

    def to_dict(self):
        donation = self.donation
        return {
            'id': self.id,
            'donor_id': self.donor_id,
            'certificate_number': self.certificate_number,
            'issued_date': self.issued_date,
            'blood_type': self.blood_type,
            'units_donated': self.units_donated,
            'hospital_name': self.hospital_name,
            'donations': {
                'donation_date': donation.donation_date,
                'hospital_id': donation.hospital_id,
            } if donation else None,
        }


class HealthCheck(models.Model):
    donor = models.ForeignKey(Donor, null=True, blank=True, on_delete=models.CASCADE, related_name='health_checks')
    age = models.PositiveSmallIntegerField(null=True, blank=True)
    weight_kg = models.DecimalField(max_digits=5, decimal_places=1, null=True, blank=True)
    hemoglobin = models.DecimalField(max_digits=4, decimal_places=1, null=True, blank=True)
    blood_pressure_systolic = models.PositiveSmallIntegerField(null=True, blank=True)
    blood_pressure_diastolic = models.PositiveSmallIntegerField(null=True, blank=True)
    pulse_rate = models.PositiveSmallIntegerField(null=True, blank=True)
    temperature = models.DecimalField(max_digits=4, decimal_places=1, null=True, blank=True)
    has_recent_illness = models.BooleanField(default=False)
    has_recent_surgery = models.BooleanField(default=False)
    has_tattoo_recently = models.BooleanField(default=False)
    is_pregnant = models.BooleanField(default=False)
    is_breastfeeding = models.BooleanField(default=False)
    on_medication = models.BooleanField(default=False)
    medication_details = models.CharField(max_length=255, blank=True)
    is_eligible = models.BooleanField(default=False)
    eligibility_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"Health check #{self.pk} ({'eligible' if self.is_eligible else 'ineligible'})"

    def to_dict(self):
        return {
            'id': self.id,
            'donor_id': self.donor_id,
            'is_eligible': self.is_eligible,
            'eligibility_reason': self.eligibility_reason,
            'created_at': self.created_at,
        }
