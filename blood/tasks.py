import logging

from celery import shared_task

from blood import models
from blood.services import sms as sms_service


logger = logging.getLogger(__name__)


@shared_task(bind=True, autoretry_for=(Exception,), retry_backoff=True, retry_kwargs={'max_retries': 3})
def send_emergency_sms(self, blood_request_id: int) -> dict:
    blood_request = models.BloodRequest.objects.get(pk=blood_request_id)
    result = sms_service.notify_compatible_donors_sms(blood_request)
    logger.info(
        "Emergency SMS for request %s: %s/%s delivered (%s)",
        blood_request_id,
        result.delivered,
        result.attempted,
        result.reason or "ok",
    )
    return {'delivered': result.delivered, 'attempted': result.attempted, 'reason': result.reason}


@shared_task(bind=True, autoretry_for=(Exception,), retry_backoff=True, retry_kwargs={'max_retries': 3})
def send_requester_confirmation_sms(self, blood_request_id: int) -> None:
    blood_request = models.BloodRequest.objects.get(pk=blood_request_id)
    sms_service.send_requester_confirmation(blood_request)
