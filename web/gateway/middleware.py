"""Gateway middleware: request correlation ids and API body size limits.

``RequestIdMiddleware`` gives every request an identifier, reusing the
client's ``X-Request-ID`` header when present, and exposes it both as
``request.request_id`` and through the ``REQUEST_ID_CTX`` ContextVar so
log filters and outgoing HTTP clients can pick it up. The same id is
echoed on the response.
"""

import contextvars
import os
import uuid

from django.http import JsonResponse

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")
MAX_API_BYTES = int(os.getenv("API_MAX_BYTES", str(64 * 1024)))


class RequestIdMiddleware:
    HEADER = "HTTP_X_REQUEST_ID"       # incoming header as found in request.META
    RESPONSE_HEADER = "X-Request-ID"   # header added to outgoing responses

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        rid = request.META.get(self.HEADER) or str(uuid.uuid4())
        request.request_id = rid
        token = REQUEST_ID_CTX.set(rid)
        try:
            response = self.get_response(request)
        finally:
            REQUEST_ID_CTX.reset(token)
        response[self.RESPONSE_HEADER] = rid
        return response


class ApiSizeLimitMiddleware:
    """Reject API requests whose declared body exceeds ``API_MAX_BYTES``."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if request.path.startswith("/api/"):
            clen = request.META.get("CONTENT_LENGTH")
            if clen and clen.isdigit() and int(clen) > MAX_API_BYTES:
                return JsonResponse({"detail": "PAYLOAD_TOO_LARGE"}, status=413)
        return self.get_response(request)
