from __future__ import annotations

import logging
import time

logger = logging.getLogger("api.requests")


def client_ip(request) -> str:
    forwarded = (request.META.get("HTTP_X_FORWARDED_FOR") or "").split(",", 1)[0].strip()
    return forwarded or request.META.get("REMOTE_ADDR", "") or ""


class RequestLogMiddleware:
    """One log line per request: method, path, client IP, status and duration."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        started = time.monotonic()
        response = self.get_response(request)
        duration_ms = int((time.monotonic() - started) * 1000)

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s %s %s",
            request.method,
            request.path,
            response.status_code,
            extra={
                "method": request.method,
                "path": request.path,
                "ip": client_ip(request),
                "status": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response
