"""Small helpers shared by the JSON views of both apps."""

import json
import logging
from functools import wraps

from django.http import Http404, JsonResponse

logger = logging.getLogger(__name__)


class BadRequest(ValueError):
    """Raised when a request body cannot be decoded."""


def json_body(request):
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise BadRequest("Request body must be valid JSON") from exc
    if not isinstance(payload, dict):
        raise BadRequest("Request body must be a JSON object")
    return payload


def error_response(message, status=400, **extra):
    return JsonResponse({'error': message, **extra}, status=status)


def form_error_response(form):
    return error_response("Invalid request", status=400, details=form.errors.get_json_data())


def query_flag(request, name):
    return request.GET.get(name, '').lower() == 'true'


def current_donor(request):
    """Donor profile attached to the session user, or None."""

    user = request.user
    if not user.is_authenticated:
        return None
    return getattr(user, 'donor_profile', None)


def api_login_required(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return error_response("Authentication required", status=401)
        return view_func(request, *args, **kwargs)
    return wrapper


def staff_required(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return error_response("Authentication required", status=401)
        if not request.user.is_staff:
            return error_response("Staff access required", status=403)
        return view_func(request, *args, **kwargs)
    return wrapper


def json_errors(message):
    """Turn uncaught failures inside a JSON view into ``{"error": message}`` 500s."""

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            try:
                return view_func(request, *args, **kwargs)
            except BadRequest as exc:
                return error_response(str(exc), status=400)
            except Http404:
                return error_response("Not found", status=404)
            except Exception:
                logger.exception("%s (%s %s)", message, request.method, request.path)
                return error_response(message, status=500)
        return wrapper
    return decorator
