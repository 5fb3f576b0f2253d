from django.contrib import admin
from .models import BloodInventory, BloodRequest, DonorMatch, Event, Hospital, Notification, QueueEntry

@admin.register(Hospital)
class HospitalAdmin(admin.ModelAdmin):
    list_display = ['name', 'city', 'has_blood_bank', 'is_verified']
    list_filter = ['has_blood_bank', 'is_verified', 'city']
    search_fields = ['name', 'city', 'address']

@admin.register(BloodInventory)
class BloodInventoryAdmin(admin.ModelAdmin):
    list_display = ['hospital', 'blood_type', 'units_available', 'units_reserved', 'severity', 'last_updated']
    list_filter = ['blood_type', 'hospital']

@admin.register(BloodRequest)
class BloodRequestAdmin(admin.ModelAdmin):
    list_display = ['patient_name', 'blood_type', 'units_needed', 'urgency', 'is_emergency', 'status', 'created_at']
    list_filter = ['blood_type', 'status', 'urgency', 'is_emergency']
    search_fields = ['patient_name', 'city', 'notes']

@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ['title', 'event_type', 'city', 'start_date', 'is_active']
    list_filter = ['event_type', 'is_active']
    search_fields = ['title', 'city', 'organizer']

@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'donor', 'type', 'is_read', 'created_at']
    list_filter = ['type', 'is_read']

@admin.register(DonorMatch)
class DonorMatchAdmin(admin.ModelAdmin):
    list_display = ['request', 'donor', 'status', 'notified_at']
    list_filter = ['status']

@admin.register(QueueEntry)
class QueueEntryAdmin(admin.ModelAdmin):
    list_display = ['queue_number', 'hospital', 'donor', 'appointment_date', 'status']
    list_filter = ['status', 'appointment_date', 'hospital']
