from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Max
from django.utils import timezone

from blood.services.compatibility import BLOOD_TYPE_CHOICES
from blood.services.inventory import severity_level


def _coordinate_field(bound):
    return models.DecimalField(
        max_digits=9,
        decimal_places=6,
        null=True,
        blank=True,
        validators=[MinValueValidator(-bound), MaxValueValidator(bound)],
    )


def _float_or_none(value):
    return float(value) if value is not None else None


class Hospital(models.Model):
    name = models.CharField(max_length=150)
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    latitude = _coordinate_field(90)
    longitude = _coordinate_field(180)
    has_blood_bank = models.BooleanField(default=False)
    is_verified = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'address': self.address,
            'city': self.city,
            'state': self.state,
            'phone': self.phone,
            'email': self.email,
            'latitude': _float_or_none(self.latitude),
            'longitude': _float_or_none(self.longitude),
            'has_blood_bank': self.has_blood_bank,
            'is_verified': self.is_verified,
        }


class BloodInventory(models.Model):
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='inventory')
    blood_type = models.CharField(max_length=3, choices=BLOOD_TYPE_CHOICES)
    units_available = models.PositiveIntegerField(default=0)
    units_reserved = models.PositiveIntegerField(default=0)
    last_updated = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['blood_type', 'hospital__name']
        verbose_name_plural = "Blood inventory"
        constraints = [
            models.UniqueConstraint(fields=['hospital', 'blood_type'], name='unique_inventory_per_hospital_type'),
        ]

    def __str__(self):
        return f"{self.hospital.name} - {self.blood_type}: {self.units_available}"

    @property
    def severity(self):
        return severity_level(self.units_available)

    def to_dict(self):
        return {
            'id': self.id,
            'hospital_id': self.hospital_id,
            'blood_type': self.blood_type,
            'units_available': self.units_available,
            'units_reserved': self.units_reserved,
            'last_updated': self.last_updated,
            'severity': self.severity,
            'hospitals': {'name': self.hospital.name, 'city': self.hospital.city},
        }


class BloodRequest(models.Model):
    URGENCY_CHOICES = (
        ('low', 'Low'),
        ('normal', 'Normal'),
        ('high', 'High'),
        ('critical', 'Critical'),
    )
    STATUS_CHOICES = (
        ('pending', 'Pending'),
        ('fulfilled', 'Fulfilled'),
        ('cancelled', 'Cancelled'),
    )

    requester = models.ForeignKey('donor.Donor', null=True, blank=True, on_delete=models.SET_NULL, related_name='blood_requests')
    hospital = models.ForeignKey(Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='blood_requests')
    patient_name = models.CharField(max_length=120)
    blood_type = models.CharField(max_length=3, choices=BLOOD_TYPE_CHOICES)
    units_needed = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1)])
    urgency = models.CharField(max_length=10, choices=URGENCY_CHOICES, default='normal')
    is_emergency = models.BooleanField(default=False)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    city = models.CharField(max_length=100, blank=True)
    contact_phone = models.CharField(max_length=20, blank=True)
    notes = models.TextField(blank=True)
    latitude = _coordinate_field(90)
    longitude = _coordinate_field(180)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.patient_name} - {self.blood_type}"

    @property
    def coordinates(self):
        if self.latitude is None or self.longitude is None:
            return None
        return (float(self.latitude), float(self.longitude))

    def to_dict(self):
        requester = self.requester
        return {
            'id': self.id,
            'patient_name': self.patient_name,
            'blood_type': self.blood_type,
            'units_needed': self.units_needed,
            'urgency': self.urgency,
            'is_emergency': self.is_emergency,
            'status': self.status,
            'city': self.city,
            'contact_phone': self.contact_phone,
            'notes': self.notes,
            'latitude': _float_or_none(self.latitude),
            'longitude': _float_or_none(self.longitude),
            'hospital_id': self.hospital_id,
            'requester_id': self.requester_id,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'users': {'full_name': requester.full_name, 'phone': requester.phone} if requester else None,
            'hospitals': {'name': self.hospital.name} if self.hospital_id else None,
        }


class Event(models.Model):
    EVENT_TYPE_CHOICES = (
        ('blood_drive', 'Blood drive'),
        ('camp', 'Donation camp'),
        ('awareness', 'Awareness'),
    )

    hospital = models.ForeignKey(Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='events')
    title = models.CharField(max_length=150)
    description = models.TextField(blank=True)
    event_type = models.CharField(max_length=20, choices=EVENT_TYPE_CHOICES, default='blood_drive')
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    start_time = models.TimeField(null=True, blank=True)
    end_time = models.TimeField(null=True, blank=True)
    organizer = models.CharField(max_length=150, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['start_date', 'id']

    def __str__(self):
        return self.title

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'event_type': self.event_type,
            'address': self.address,
            'city': self.city,
            'start_date': self.start_date,
            'end_date': self.end_date,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'organizer': self.organizer,
            'is_active': self.is_active,
            'hospital_id': self.hospital_id,
            'hospitals': {'name': self.hospital.name} if self.hospital_id else None,
        }


class Notification(models.Model):
    TYPE_CHOICES = (
        ('emergency', 'Emergency'),
        ('donation_request', 'Donation request'),
        ('general', 'General'),
    )

    donor = models.ForeignKey('donor.Donor', on_delete=models.CASCADE, related_name='notifications')
    title = models.CharField(max_length=150)
    message = models.TextField()
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='general')
    data = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.title} -> {self.donor_id}"

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.donor_id,
            'title': self.title,
            'message': self.message,
            'type': self.type,
            'data': self.data,
            'is_read': self.is_read,
            'created_at': self.created_at,
        }


class DonorMatch(models.Model):
    STATUS_CHOICES = (
        ('notified', 'Notified'),
        ('accepted', 'Accepted'),
        ('declined', 'Declined'),
    )

    request = models.ForeignKey(BloodRequest, on_delete=models.CASCADE, related_name='donor_matches')
    donor = models.ForeignKey('donor.Donor', on_delete=models.CASCADE, related_name='matches')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='notified')
    notified_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name_plural = "Donor matches"
        constraints = [
            models.UniqueConstraint(fields=['request', 'donor'], name='unique_match_per_request_donor'),
        ]

    def __str__(self):
        return f"Request {self.request_id} / donor {self.donor_id}: {self.status}"


class QueueEntry(models.Model):
    STATUS_CHOICES = (
        ('waiting', 'Waiting'),
        ('in_progress', 'In progress'),
        ('completed', 'Completed'),
    )

    donor = models.ForeignKey('donor.Donor', on_delete=models.CASCADE, related_name='queue_entries')
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='queue_entries')
    appointment_date = models.DateField(default=timezone.localdate)
    appointment_time = models.TimeField(null=True, blank=True)
    queue_number = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='waiting')
    check_in_time = models.DateTimeField(null=True, blank=True)
    completed_time = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['appointment_date', 'queue_number']
        verbose_name_plural = "Queue entries"

    def __str__(self):
        return f"#{self.queue_number} {self.hospital.name} {self.appointment_date}"

    @classmethod
    def next_queue_number(cls, hospital, appointment_date):
        current = (
            cls.objects.filter(hospital=hospital, appointment_date=appointment_date)
            .aggregate(highest=Max('queue_number'))
            .get('highest')
        )
        return (current or 0) + 1

    def set_status(self, status):
        # Last write wins; the queue does not guard transitions.
        self.status = status
        update_fields = ['status']
        if status == 'in_progress':
            self.check_in_time = timezone.now()
            update_fields.append('check_in_time')
        elif status == 'completed':
            self.completed_time = timezone.now()
            update_fields.append('completed_time')
        self.save(update_fields=update_fields)

    def to_dict(self):
        donor = self.donor
        return {
            'id': self.id,
            'queue_number': self.queue_number,
            'appointment_date': self.appointment_date,
            'appointment_time': self.appointment_time,
            'status': self.status,
            'check_in_time': self.check_in_time,
            'completed_time': self.completed_time,
            'donor_id': self.donor_id,
            'hospital_id': self.hospital_id,
            'users': {'full_name': donor.full_name, 'blood_type': donor.blood_type, 'phone': donor.phone},
            'hospitals': {'name': self.hospital.name},
        }
