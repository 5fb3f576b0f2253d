from django.contrib import admin
from .models import Certificate, Donation, Donor, HealthCheck

@admin.register(Donor)
class DonorAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'blood_type', 'city', 'phone', 'is_available', 'total_donations']
    list_filter = ['blood_type', 'is_available', 'is_donor']
    search_fields = ['full_name', 'email', 'phone', 'city']

@admin.register(Donation)
class DonationAdmin(admin.ModelAdmin):
    list_display = ['donor', 'hospital', 'units_donated', 'status', 'donation_date']
    list_filter = ['status', 'donation_date']
    search_fields = ['donor__full_name']

@admin.register(Certificate)
class CertificateAdmin(admin.ModelAdmin):
    list_display = ['certificate_number', 'donor', 'blood_type', 'units_donated', 'issued_date']
    search_fields = ['certificate_number', 'donor__full_name']

@admin.register(HealthCheck)
class HealthCheckAdmin(admin.ModelAdmin):
    list_display = ['id', 'donor', 'is_eligible', 'created_at']
    list_filter = ['is_eligible']
