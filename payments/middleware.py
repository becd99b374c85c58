import logging

from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

from .exceptions import DonationError

logger = logging.getLogger(__name__)


class DonationErrorMiddleware(MiddlewareMixin):
    """Render DonationError raised by any view as the JSON error envelope."""

    def process_exception(self, request, exception):
        if not isinstance(exception, DonationError):
            return None
        if exception.status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.path, exception.message)
        return JsonResponse(exception.as_dict(), status=exception.status_code)
