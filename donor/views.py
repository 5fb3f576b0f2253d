import logging

from django.contrib.auth import authenticate, login, logout
from django.contrib.auth.models import Group
from django.http import JsonResponse
from django.middleware.csrf import get_token
from django.views.decorators.http import require_http_methods, require_POST

from blood.services.eligibility import evaluate_eligibility
from blood.utils.api import (
    api_login_required,
    current_donor,
    error_response,
    form_error_response,
    json_body,
    json_errors,
    query_flag,
    staff_required,
)
from .forms import CertificateForm, DonationForm, DonorForm, DonorProfileForm, HealthCheckForm
from .models import Certificate, Donation, Donor, HealthCheck

logger = logging.getLogger(__name__)


def _add_to_donor_group(user):
    my_donor_group, created = Group.objects.get_or_create(name='DONOR')
    my_donor_group.user_set.add(user)


def _user_payload(user):
    return {
        'id': user.id,
        'username': user.get_username(),
        'email': user.email,
        'name': user.get_full_name(),
        'is_staff': user.is_staff,
    }


# Session

@require_http_methods(["GET", "POST"])
@json_errors("Failed to sign in")
def login_view(request):
    if request.method == 'GET':
        return JsonResponse({'csrf_token': get_token(request), 'authenticated': request.user.is_authenticated})

    payload = json_body(request)
    username = payload.get('username')
    password = payload.get('password')
    logger.debug("Login attempt - Username: %s", username)

    user = authenticate(request, username=username, password=password)
    if user is None:
        logger.debug("Authentication failed for username: %s", username)
        return error_response("Invalid username or password", status=401)

    login(request, user)
    return JsonResponse({'authenticated': True, 'user': _user_payload(user)})


@require_POST
def logout_view(request):
    logout(request)
    return JsonResponse({'authenticated': False})


# Donor registry

@require_http_methods(["GET", "POST"])
def donors_view(request):
    if request.method == 'POST':
        return _create_donor(request)
    return _list_donors(request)


@json_errors("Failed to fetch donors")
def _list_donors(request):
    queryset = Donor.objects.filter(is_donor=True)
    blood_type = request.GET.get('blood_type')
    city = request.GET.get('city')
    if blood_type:
        queryset = queryset.filter(blood_type=blood_type)
    if city:
        queryset = queryset.filter(city__icontains=city)
    if query_flag(request, 'available'):
        queryset = queryset.filter(is_available=True)
    donors = queryset.order_by('-total_donations', 'id')
    return JsonResponse({'donors': [donor.to_dict() for donor in donors]})


@api_login_required
@json_errors("Failed to create donor")
def _create_donor(request):
    if current_donor(request) is not None:
        return error_response("A donor profile already exists for this account", status=409)

    form = DonorForm(json_body(request))
    if not form.is_valid():
        return form_error_response(form)

    donor = form.save(commit=False)
    donor.user = request.user
    donor.email = request.user.email
    donor.is_donor = True
    donor.save()
    _add_to_donor_group(request.user)
    logger.info("Donor %s registered (%s)", donor.id, donor.blood_type)
    return JsonResponse({'donor': donor.to_profile_dict()}, status=201)


@require_POST
@api_login_required
@json_errors("Failed to update availability")
def availability_view(request):
    donor = current_donor(request)
    if donor is None:
        return error_response("Donor profile not found", status=404)

    payload = json_body(request)
    available = payload.get('is_available')
    if not isinstance(available, bool):
        return error_response("is_available must be true or false", status=400)

    donor.mark_availability(available)
    return JsonResponse({'donor': donor.to_dict(), 'availability_updated_at': donor.availability_updated_at})


# Profile

@require_http_methods(["GET", "POST"])
def profile_view(request):
    if request.method == 'POST':
        return _update_profile(request)
    return _get_profile(request)


@json_errors("Failed to fetch profile")
def _get_profile(request):
    if not request.user.is_authenticated:
        return JsonResponse({'error': 'Unauthorized', 'authenticated': False}, status=401)

    donor = current_donor(request)
    return JsonResponse({
        'authenticated': True,
        'user': _user_payload(request.user),
        'profile': donor.to_profile_dict() if donor else None,
    })


@api_login_required
@json_errors("Failed to update profile")
def _update_profile(request):
    donor = current_donor(request)
    form = DonorProfileForm(json_body(request), instance=donor)
    if not form.is_valid():
        return form_error_response(form)

    profile = form.save(commit=False)
    created = profile.pk is None
    if created:
        profile.user = request.user
        profile.total_donations = 0
    profile.email = request.user.email
    profile.is_donor = True
    profile.save()
    if created:
        _add_to_donor_group(request.user)
        logger.info("Created donor profile %s for user %s", profile.id, request.user.id)
    return JsonResponse({'profile': profile.to_profile_dict()})


# Donations

@require_http_methods(["GET", "POST"])
def donations_view(request):
    if request.method == 'POST':
        return _record_donation(request)
    return _list_donations(request)


@json_errors("Failed to fetch donations")
def _list_donations(request):
    queryset = Donation.objects.select_related('donor', 'hospital')
    donor_id = request.GET.get('donor_id')
    status = request.GET.get('status')
    if donor_id:
        queryset = queryset.filter(donor_id=donor_id)
    if status:
        queryset = queryset.filter(status=status)
    donations = queryset.order_by('-donation_date', '-id')
    return JsonResponse({'donations': [donation.to_dict() for donation in donations]})


@staff_required
@json_errors("Failed to create donation")
def _record_donation(request):
    form = DonationForm(json_body(request))
    if not form.is_valid():
        return form_error_response(form)

    donation = form.save()
    if donation.status == 'completed':
        donation.donor.record_donation(donation.donation_date)
    logger.info("Recorded %s donation %s for donor %s", donation.status, donation.id, donation.donor_id)
    return JsonResponse({'donation': donation.to_dict()}, status=201)


# Certificates

@require_http_methods(["GET", "POST"])
def certificates_view(request):
    if request.method == 'POST':
        return _issue_certificate(request)
    return _list_certificates(request)


@api_login_required
@json_errors("Failed to fetch certificates")
def _list_certificates(request):
    queryset = Certificate.objects.select_related('donation')
    if request.user.is_staff:
        donor_id = request.GET.get('donor_id')
        if donor_id:
            queryset = queryset.filter(donor_id=donor_id)
    else:
        donor = current_donor(request)
        if donor is None:
            return JsonResponse({'certificates': []})
        queryset = queryset.filter(donor=donor)
    certificates = queryset.order_by('-issued_date', '-id')
    return JsonResponse({'certificates': [certificate.to_dict() for certificate in certificates]})


@staff_required
@json_errors("Failed to create certificate")
def _issue_certificate(request):
    form = CertificateForm(json_body(request))
    if not form.is_valid():
        return form_error_response(form)

    certificate = form.save(commit=False)
    donation = certificate.donation
    certificate.blood_type = certificate.donor.blood_type
    if donation is not None:
        certificate.units_donated = donation.units_donated
        if not certificate.hospital_name and donation.hospital_id:
            certificate.hospital_name = donation.hospital.name
    certificate.save()
    logger.info("Issued certificate %s to donor %s", certificate.certificate_number, certificate.donor_id)
    return JsonResponse({'certificate': certificate.to_dict()}, status=201)


# Eligibility

@require_POST
@json_errors("Failed to process health check")
def health_check_view(request):
    form = HealthCheckForm(json_body(request))
    if not form.is_valid():
        return form_error_response(form)

    result = evaluate_eligibility(form.cleaned_data)
    response = {'eligible': result.eligible, 'reasons': list(result.reasons)}

    donor = current_donor(request)
    if donor is not None:
        health_check: HealthCheck = form.save(commit=False)
        health_check.donor = donor
        health_check.is_eligible = result.eligible
        health_check.eligibility_reason = result.summary
        health_check.save()
        response['health_check'] = health_check.to_dict()

    return JsonResponse(response)

