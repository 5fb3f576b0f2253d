from decimal import ROUND_HALF_UP, Decimal

from django import forms

from blood.forms import CoordinatePairMixin
from blood.services.compatibility import BLOOD_TYPE_CHOICES
from .models import Certificate, Donation, Donor, GENDER_CHOICES, HealthCheck


class DonorForm(CoordinatePairMixin, forms.ModelForm):
    blood_type = forms.ChoiceField(choices=BLOOD_TYPE_CHOICES)
    gender = forms.ChoiceField(choices=GENDER_CHOICES, required=False)

    class Meta:
        model = Donor
        fields = [
            'full_name', 'phone', 'blood_type', 'date_of_birth', 'gender',
            'address', 'city', 'state', 'latitude', 'longitude',
        ]

    def clean_gender(self):
        return self.cleaned_data.get('gender') or 'U'


class DonorProfileForm(forms.ModelForm):
    """Self-service profile edits; only these columns may be written."""

    blood_type = forms.ChoiceField(choices=BLOOD_TYPE_CHOICES, required=False)
    gender = forms.ChoiceField(choices=GENDER_CHOICES, required=False)
    full_name = forms.CharField(max_length=120, required=False)
    is_available = forms.NullBooleanField(required=False)

    class Meta:
        model = Donor
        fields = [
            'full_name', 'phone', 'blood_type', 'city', 'state',
            'address', 'date_of_birth', 'gender', 'is_available',
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Partial updates: keys absent from the payload keep their stored value.
        if self.instance.pk and self.is_bound:
            for name in self.fields:
                if name not in self.data:
                    self.fields[name].disabled = True

    def clean(self):
        cleaned_data = super().clean()
        for name in ('full_name', 'blood_type'):
            if name not in self.errors and not cleaned_data.get(name):
                self.add_error(name, "This field is required.")
        if not cleaned_data.get('gender'):
            cleaned_data['gender'] = self.instance.gender or 'U'
        if cleaned_data.get('is_available') is None:
            cleaned_data['is_available'] = self.instance.is_available if self.instance.pk else True
        return cleaned_data


class DonationForm(forms.ModelForm):
    status = forms.ChoiceField(choices=Donation.STATUS_CHOICES, required=False)
    units_donated = forms.IntegerField(min_value=1, required=False)
    donation_date = forms.DateField(required=False)

    class Meta:
        model = Donation
        fields = ['donor', 'hospital', 'donation_date', 'units_donated', 'status', 'notes']

    def clean(self):
        cleaned_data = super().clean()
        cleaned_data['status'] = cleaned_data.get('status') or 'completed'
        cleaned_data['units_donated'] = cleaned_data.get('units_donated') or 1
        if not cleaned_data.get('donation_date'):
            cleaned_data.pop('donation_date', None)
        return cleaned_data


class CertificateForm(forms.ModelForm):

    class Meta:
        model = Certificate
        fields = ['donor', 'donation', 'hospital_name']

    def clean(self):
        cleaned_data = super().clean()
        donor, donation = cleaned_data.get('donor'), cleaned_data.get('donation')
        if donor and donation and donation.donor_id != donor.id:
            self.add_error('donation', "Donation belongs to a different donor.")
        return cleaned_data


class HealthCheckForm(forms.ModelForm):
    """Readings are checked at full precision; the stored row keeps one decimal."""

    weight_kg = forms.FloatField(required=False, min_value=0, max_value=9999.9)
    hemoglobin = forms.FloatField(required=False, min_value=0, max_value=999.9)
    temperature = forms.FloatField(required=False, min_value=0, max_value=999.9)

    MEASURED_FIELDS = ('weight_kg', 'hemoglobin', 'temperature')

    class Meta:
        model = HealthCheck
        fields = [
            'age', 'blood_pressure_systolic', 'blood_pressure_diastolic', 'pulse_rate',
            'has_recent_illness', 'has_recent_surgery', 'has_tattoo_recently',
            'is_pregnant', 'is_breastfeeding', 'on_medication', 'medication_details',
        ]

    def save(self, commit=True):
        health_check = super().save(commit=False)
        for name in self.MEASURED_FIELDS:
            value = self.cleaned_data.get(name)
            if value is not None:
                value = Decimal(str(value)).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP)
            setattr(health_check, name, value)
        if commit:
            health_check.save()
        return health_check
