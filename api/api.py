from __future__ import annotations

import logging
import time

from django.conf import settings
from django.utils import timezone
from ninja import NinjaAPI
from ninja.throttling import AnonRateThrottle, AuthRateThrottle

from accounts.api import router as auth_router
from catalog.api import router as catalog_router
from chat.api import router as chat_router
from checkout.api import router as checkout_router
from loyalty.api import router as loyalty_router
from moderation.api import router as moderation_router
from newsletter.api import router as newsletter_router
from notifications.api import router as notifications_router
from payments.api import router as payments_router
from promotions.api import router as coupons_router
from recommendations.api import router as recommendations_router
from referrals.api import router as referrals_router

logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()

docs_url = "/docs" if getattr(settings, "NINJA_ENABLE_DOCS", True) else None
openapi_url = "/openapi.json" if getattr(settings,
                                         "NINJA_ENABLE_DOCS", True) else None

_rate = getattr(settings, "API_THROTTLE_RATE", "400/h")

api = NinjaAPI(
    title="El Guante store API",
    version="1",
    docs_url=docs_url,
    openapi_url=openapi_url,
    throttle=[AnonRateThrottle(_rate), AuthRateThrottle(_rate)],
)

api.add_router("/auth", auth_router)
api.add_router("/catalog", catalog_router)
api.add_router("/payments", payments_router)
api.add_router("/notifications", notifications_router)
api.add_router("/loyalty", loyalty_router)
api.add_router("/coupons", coupons_router)
api.add_router("/referrals", referrals_router)
api.add_router("/newsletter", newsletter_router)
api.add_router("/chat", chat_router)
api.add_router("/moderation", moderation_router)
api.add_router("/recommendations", recommendations_router)
api.add_router("", checkout_router)


@api.exception_handler(Exception)
def unhandled_error(request, exc):
    logger.exception(
        "Unhandled API error",
        extra={"path": request.path, "method": request.method},
    )
    if getattr(settings, "ENVIRONMENT", "") == "production":
        message = "Internal server error"
    else:
        message = str(exc) or exc.__class__.__name__
    return api.create_response(
        request,
        {"error": message, "timestamp": timezone.now().isoformat()},
        status=500,
    )


@api.get("/health")
def health(request):
    return {
        "status": "OK",
        "timestamp": timezone.now().isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "environment": getattr(settings, "ENVIRONMENT", ""),
    }
