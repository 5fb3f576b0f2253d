import logging

from django.conf import settings
from django.db.models import Sum
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from . import forms, models, tasks
from .services import notifications
from .services.compatibility import compatible_donor_types
from .services.donor_matching import rank_donors
from .services.inventory import shortage_alerts, summarize_inventory, units_by_type
from .utils.api import (
    api_login_required,
    current_donor,
    error_response,
    form_error_response,
    json_body,
    json_errors,
    query_flag,
    staff_required,
)
from donor import models as dmodels

logger = logging.getLogger(__name__)


# Donor matching

@require_POST
@json_errors("Failed to find matching donors")
def donor_match_view(request):
    form = forms.DonorMatchForm(json_body(request))
    if not form.is_valid():
        return form_error_response(form)

    blood_type = form.cleaned_data['blood_type']
    compatible = compatible_donor_types(blood_type)
    candidates = dmodels.Donor.objects.filter(is_donor=True, is_available=True, blood_type__in=compatible)
    ranked = rank_donors(
        candidates,
        origin=form.cleaned_data['coordinates'],
        radius_km=form.cleaned_data['radius_km'],
    )

    matches = []
    for entry in ranked:
        payload = entry.donor.to_dict()
        payload['distance_km'] = round(entry.distance_km, 2) if entry.distance_km is not None else None
        matches.append(payload)

    logger.debug("Matched %s donors for %s", len(matches), blood_type)
    return JsonResponse({'matches': matches, 'total': len(matches), 'compatible_types': list(compatible)})


@require_POST
@api_login_required
@json_errors("Failed to notify donor")
def contact_donor_view(request):
    form = forms.ContactDonorForm(json_body(request))
    if not form.is_valid():
        if 'donor_id' in form.errors:
            return error_response("Donor ID is required", status=400)
        return form_error_response(form)

    donor = get_object_or_404(dmodels.Donor, pk=form.cleaned_data['donor_id'])
    blood_request = None
    if form.cleaned_data.get('request_id'):
        blood_request = get_object_or_404(models.BloodRequest, pk=form.cleaned_data['request_id'])

    requester_name = form.cleaned_data.get('requester_name')
    if not requester_name:
        requester = current_donor(request)
        requester_name = requester.full_name if requester else request.user.get_full_name()

    notification = notifications.contact_donor(
        donor,
        message=form.cleaned_data.get('message') or None,
        blood_request=blood_request,
        requester_name=requester_name or None,
    )
    return JsonResponse({
        'success': True,
        'message': 'Donor notified successfully',
        'notification': notification.to_dict(),
    })


# Blood requests

@require_http_methods(["GET", "POST"])
def blood_requests_view(request):
    if request.method == 'POST':
        return _create_blood_request(request)
    return _list_blood_requests(request)


@json_errors("Failed to fetch blood requests")
def _list_blood_requests(request):
    queryset = models.BloodRequest.objects.select_related('requester', 'hospital')
    status = request.GET.get('status')
    blood_type = request.GET.get('blood_type')
    if status:
        queryset = queryset.filter(status=status)
    if blood_type:
        queryset = queryset.filter(blood_type=blood_type)
    if query_flag(request, 'emergency'):
        queryset = queryset.filter(is_emergency=True)
    return JsonResponse({'requests': [item.to_dict() for item in queryset]})


@json_errors("Failed to create blood request")
def _create_blood_request(request):
    form = forms.BloodRequestForm(json_body(request))
    if not form.is_valid():
        return form_error_response(form)

    blood_request = form.save(commit=False)
    blood_request.requester = current_donor(request)
    blood_request.status = 'pending'
    blood_request.save()
    logger.info("Blood request %s created for %s", blood_request.id, blood_request.blood_type)
    _queue_requester_confirmation(blood_request)
    return JsonResponse({'request': blood_request.to_dict()}, status=201)


@require_POST
@staff_required
@json_errors("Failed to update blood request")
def update_request_status_view(request, pk):
    blood_request = get_object_or_404(models.BloodRequest, pk=pk)
    form = forms.RequestStatusForm(json_body(request))
    if not form.is_valid():
        return form_error_response(form)

    blood_request.status = form.cleaned_data['status']
    blood_request.save(update_fields=['status', 'updated_at'])
    logger.info("Blood request %s marked %s by %s", blood_request.id, blood_request.status, request.user)
    return JsonResponse({'request': blood_request.to_dict()})


@require_POST
@json_errors("Failed to create emergency request")
def emergency_request_view(request):
    form = forms.EmergencyRequestForm(json_body(request))
    if not form.is_valid():
        return form_error_response(form)

    blood_request = form.save(commit=False)
    blood_request.requester = current_donor(request)
    blood_request.is_emergency = True
    blood_request.urgency = 'critical'
    blood_request.status = 'pending'
    blood_request.save()

    # Fan-out failures are logged; the request itself stands.
    notified = 0
    try:
        notified = notifications.notify_compatible_donors(blood_request)
    except Exception:
        logger.exception("Failed to notify donors for emergency request %s", blood_request.id)

    try:
        tasks.send_emergency_sms.delay(blood_request.id)
    except Exception as alert_error:  # pragma: no cover - broker outages only
        logger.error(
            "Failed to dispatch SNS alert for emergency request %s: %s",
            blood_request.id,
            alert_error,
        )

    _queue_requester_confirmation(blood_request)

    return JsonResponse({'request': blood_request.to_dict(), 'notified_donors': notified}, status=201)


def _queue_requester_confirmation(blood_request):
    if not blood_request.contact_phone:
        return
    try:
        tasks.send_requester_confirmation_sms.delay(blood_request.id)
    except Exception as exc:  # pragma: no cover - broker outages only
        logger.error("Failed to queue requester confirmation for %s: %s", blood_request.id, exc)


# Inventory

@require_http_methods(["GET", "PUT"])
def inventory_view(request):
    if request.method == 'PUT':
        return _update_inventory(request)
    return _list_inventory(request)


@json_errors("Failed to fetch inventory")
def _list_inventory(request):
    queryset = models.BloodInventory.objects.select_related('hospital').order_by('blood_type', 'hospital__name')
    hospital_id = request.GET.get('hospital_id')
    blood_type = request.GET.get('blood_type')
    if hospital_id:
        queryset = queryset.filter(hospital_id=hospital_id)
    if blood_type:
        queryset = queryset.filter(blood_type=blood_type)

    rows = list(queryset)
    return JsonResponse({'inventory': [row.to_dict() for row in rows], 'summary': summarize_inventory(rows)})


@staff_required
@json_errors("Failed to update inventory")
def _update_inventory(request):
    form = forms.InventoryUpdateForm(json_body(request))
    if not form.is_valid():
        return form_error_response(form)

    row = get_object_or_404(models.BloodInventory.objects.select_related('hospital'), pk=form.cleaned_data['id'])
    row.units_available = form.cleaned_data['units_available']
    if form.cleaned_data['units_reserved'] is not None:
        row.units_reserved = form.cleaned_data['units_reserved']
    row.last_updated = timezone.now()
    row.save(update_fields=['units_available', 'units_reserved', 'last_updated'])
    logger.info("Inventory %s (%s) set to %s units", row.id, row.blood_type, row.units_available)
    return JsonResponse({'inventory': row.to_dict()})


@require_GET
@json_errors("Failed to fetch inventory alerts")
def inventory_alerts_view(request):
    alerts = [
        alert for alert in shortage_alerts(models.BloodInventory.objects.select_related('hospital'))
        if alert['severity'] != 'normal'
    ]
    return JsonResponse({
        'alerts': alerts,
        'critical': sum(1 for alert in alerts if alert['severity'] == 'critical'),
        'low': sum(1 for alert in alerts if alert['severity'] == 'low'),
    })


# Hospitals and events

@require_GET
@json_errors("Failed to fetch hospitals")
def hospitals_view(request):
    queryset = models.Hospital.objects.filter(is_verified=True)
    city = request.GET.get('city')
    if city:
        queryset = queryset.filter(city__icontains=city)
    if query_flag(request, 'has_blood_bank'):
        queryset = queryset.filter(has_blood_bank=True)
    return JsonResponse({'hospitals': [hospital.to_dict() for hospital in queryset.order_by('name')]})


@require_http_methods(["GET", "POST"])
def events_view(request):
    if request.method == 'POST':
        return _create_event(request)
    return _list_events(request)


@json_errors("Failed to fetch events")
def _list_events(request):
    queryset = models.Event.objects.filter(is_active=True).select_related('hospital')
    city = request.GET.get('city')
    event_type = request.GET.get('event_type')
    if city:
        queryset = queryset.filter(city__icontains=city)
    if event_type:
        queryset = queryset.filter(event_type=event_type)
    return JsonResponse({'events': [event.to_dict() for event in queryset.order_by('start_date', 'id')]})


@staff_required
@json_errors("Failed to create event")
def _create_event(request):
    form = forms.EventForm(json_body(request))
    if not form.is_valid():
        return form_error_response(form)
    event = form.save()
    return JsonResponse({'event': event.to_dict()}, status=201)


# Donation queue

@require_http_methods(["GET", "POST", "PUT"])
def queue_view(request):
    if request.method == 'POST':
        return _book_queue_entry(request)
    if request.method == 'PUT':
        return _update_queue_entry(request)
    return _list_queue(request)


@json_errors("Failed to fetch queue")
def _list_queue(request):
    raw_date = request.GET.get('date')
    appointment_date = parse_date(raw_date) if raw_date else timezone.localdate()
    if appointment_date is None:
        return error_response("Invalid date; use YYYY-MM-DD", status=400)

    queryset = models.QueueEntry.objects.select_related('donor', 'hospital').filter(appointment_date=appointment_date)
    hospital_id = request.GET.get('hospital_id')
    if hospital_id:
        queryset = queryset.filter(hospital_id=hospital_id)

    entries = list(queryset.order_by('queue_number'))
    stats = {'total': len(entries), 'waiting': 0, 'in_progress': 0, 'completed': 0}
    for entry in entries:
        stats[entry.status] += 1
    return JsonResponse({'queue': [entry.to_dict() for entry in entries], 'stats': stats})


@api_login_required
@json_errors("Failed to create queue entry")
def _book_queue_entry(request):
    donor = current_donor(request)
    if donor is None:
        return error_response("Create a donor profile before booking", status=400)

    form = forms.QueueEntryForm(json_body(request))
    if not form.is_valid():
        return form_error_response(form)

    entry = form.save(commit=False)
    entry.donor = donor
    entry.queue_number = models.QueueEntry.next_queue_number(entry.hospital, entry.appointment_date)
    entry.save()
    logger.info("Queue #%s booked at %s for donor %s", entry.queue_number, entry.hospital_id, donor.id)
    return JsonResponse({'queue_entry': entry.to_dict(), 'queue_number': entry.queue_number}, status=201)


@staff_required
@json_errors("Failed to update queue")
def _update_queue_entry(request):
    form = forms.QueueStatusForm(json_body(request))
    if not form.is_valid():
        return form_error_response(form)

    entry = get_object_or_404(models.QueueEntry.objects.select_related('donor', 'hospital'), pk=form.cleaned_data['id'])
    entry.set_status(form.cleaned_data['status'])
    return JsonResponse({'queue_entry': entry.to_dict()})


# Notifications and dashboard

@require_GET
@api_login_required
@json_errors("Failed to fetch notifications")
def notifications_view(request):
    donor = current_donor(request)
    if donor is None:
        return JsonResponse({'notifications': [], 'unread': 0})

    queryset = donor.notifications.all()
    if query_flag(request, 'unread'):
        queryset = queryset.filter(is_read=False)
    items = [notification.to_dict() for notification in queryset]
    return JsonResponse({'notifications': items, 'unread': donor.notifications.filter(is_read=False).count()})


@require_GET
@json_errors("Failed to fetch dashboard data")
def dashboard_view(request):
    total_units = dmodels.Donation.objects.aggregate(total=Sum('units_donated')).get('total') or 0
    lives_per_unit = int(getattr(settings, 'LIVES_SAVED_PER_UNIT', 3))
    requests = models.BloodRequest.objects.all()

    stats = {
        'totalDonors': dmodels.Donor.objects.filter(is_donor=True).count(),
        'totalDonations': dmodels.Donation.objects.count(),
        'totalUnits': total_units,
        'livesSaved': total_units * lives_per_unit,
        'totalHospitals': models.Hospital.objects.filter(is_verified=True).count(),
        'activeEvents': models.Event.objects.filter(is_active=True).count(),
        'pendingRequests': requests.filter(status='pending').count(),
        'emergencyRequests': requests.filter(is_emergency=True).count(),
    }
    recent = dmodels.Donation.objects.select_related('donor', 'hospital').order_by('-donation_date', '-id')[:5]

    return JsonResponse({
        'stats': stats,
        'inventory': units_by_type(models.BloodInventory.objects.all()),
        'recentDonations': [donation.to_dict() for donation in recent],
    })
