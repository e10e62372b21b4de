"""
Middleware: one start line and one end line per API request.
"""
import time
import logging
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(MiddlewareMixin):
    def process_request(self, request):
        request._start_time = time.monotonic()
        logger.debug("REQ START %s %s", request.method, request.get_full_path())

    def process_response(self, request, response):
        duration = (time.monotonic() - getattr(request, "_start_time", time.monotonic())) * 1000.0
        user = getattr(request, "user", None)
        actor = user.pk if user is not None and user.is_authenticated else "-"
        if response.status_code >= 500:
            level = logging.WARNING
        elif response.status_code >= 400:
            level = logging.INFO
        else:
            level = logging.DEBUG
        logger.log(
            level, "REQ END %s %s %s %.2fms actor=%s",
            request.method, request.get_full_path(), response.status_code, duration, actor,
        )
        return response
