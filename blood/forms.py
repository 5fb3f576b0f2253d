from django import forms
from django.conf import settings
from django.utils import timezone

from . import models
from .services.compatibility import BLOOD_TYPE_CHOICES, normalize_blood_type
from .services.donor_matching import DEFAULT_RADIUS_KM, InvalidCoordinates, parse_coordinates


class CoordinatePairMixin:
    """Form mixin: accept both latitude and longitude or neither."""

    def clean(self):
        cleaned_data = super().clean()
        if 'latitude' in self.errors or 'longitude' in self.errors:
            return cleaned_data
        try:
            coords = parse_coordinates(cleaned_data.get('latitude'), cleaned_data.get('longitude'))
        except InvalidCoordinates as exc:
            raise forms.ValidationError(str(exc))
        cleaned_data['coordinates'] = coords
        return cleaned_data


class BloodTypeField(forms.CharField):
    # Unrecognised types pass through; they only ever match themselves.

    def to_python(self, value):
        return normalize_blood_type(super().to_python(value))


class DonorMatchForm(CoordinatePairMixin, forms.Form):
    blood_type = BloodTypeField(max_length=3)
    latitude = forms.FloatField(required=False, min_value=-90, max_value=90)
    longitude = forms.FloatField(required=False, min_value=-180, max_value=180)
    radius_km = forms.FloatField(required=False, min_value=0)

    def clean_radius_km(self):
        radius = self.cleaned_data.get('radius_km')
        if radius is None:
            radius = float(getattr(settings, 'DONOR_MATCH_DEFAULT_RADIUS_KM', DEFAULT_RADIUS_KM))
        return radius


class ContactDonorForm(forms.Form):
    donor_id = forms.IntegerField()
    message = forms.CharField(required=False, max_length=1000)
    request_id = forms.IntegerField(required=False)
    requester_name = forms.CharField(required=False, max_length=120)


class BloodRequestForm(CoordinatePairMixin, forms.ModelForm):
    blood_type = forms.ChoiceField(choices=BLOOD_TYPE_CHOICES)
    units_needed = forms.IntegerField(required=False, min_value=1)
    urgency = forms.ChoiceField(required=False, choices=models.BloodRequest.URGENCY_CHOICES)

    class Meta:
        model = models.BloodRequest
        fields = [
            'patient_name', 'blood_type', 'units_needed', 'urgency', 'hospital',
            'city', 'contact_phone', 'notes', 'latitude', 'longitude',
        ]

    def clean_units_needed(self):
        return self.cleaned_data.get('units_needed') or 1

    def clean_urgency(self):
        return self.cleaned_data.get('urgency') or 'normal'


class EmergencyRequestForm(BloodRequestForm):

    class Meta(BloodRequestForm.Meta):
        fields = [
            'patient_name', 'blood_type', 'units_needed', 'hospital',
            'city', 'contact_phone', 'notes', 'latitude', 'longitude',
        ]


class RequestStatusForm(forms.Form):
    status = forms.ChoiceField(choices=models.BloodRequest.STATUS_CHOICES)


class InventoryUpdateForm(forms.Form):
    id = forms.IntegerField()
    units_available = forms.IntegerField(min_value=0)
    units_reserved = forms.IntegerField(min_value=0, required=False)


class EventForm(forms.ModelForm):
    event_type = forms.ChoiceField(required=False, choices=models.Event.EVENT_TYPE_CHOICES)

    class Meta:
        model = models.Event
        fields = [
            'title', 'description', 'event_type', 'hospital', 'address', 'city',
            'start_date', 'end_date', 'start_time', 'end_time', 'organizer',
        ]

    def clean_event_type(self):
        return self.cleaned_data.get('event_type') or 'blood_drive'

    def clean(self):
        cleaned_data = super().clean()
        start, end = cleaned_data.get('start_date'), cleaned_data.get('end_date')
        if start and end and end < start:
            self.add_error('end_date', "End date cannot be before the start date.")
        return cleaned_data


class QueueEntryForm(forms.ModelForm):
    appointment_date = forms.DateField(required=False)

    class Meta:
        model = models.QueueEntry
        fields = ['hospital', 'appointment_date', 'appointment_time']

    def clean_appointment_date(self):
        return self.cleaned_data.get('appointment_date') or timezone.localdate()


class QueueStatusForm(forms.Form):
    id = forms.IntegerField()
    status = forms.ChoiceField(choices=models.QueueEntry.STATUS_CHOICES)
