from __future__ import annotations

import logging
import secrets
import string
import time
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

import requests
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)

# Placeholder token shipped in sample .env files; treated like "no token".
MP_SAMPLE_TEST_TOKEN = "TEST-1234567890-123456-abcdef123456789-12345678"
MAX_TITLE_LENGTH = 256


class MercadoPagoApiError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PreferenceValidationError(ValueError):
    pass


@dataclass(frozen=True)
class MercadoPagoConfig:
    base_url: str
    access_token: str
    timeout: int
    max_retries: int
    retry_delay: float

    @property
    def is_demo(self) -> bool:
        return not self.access_token or self.access_token == MP_SAMPLE_TEST_TOKEN


@dataclass(frozen=True)
class PreferenceItem:
    title: str
    unit_price: Decimal
    quantity: int


def _get_cfg() -> MercadoPagoConfig:
    return MercadoPagoConfig(
        base_url=str(getattr(settings, "MP_API_BASE_URL", "https://api.mercadopago.com")).rstrip("/"),
        access_token=str(getattr(settings, "MP_ACCESS_TOKEN", "") or "").strip(),
        timeout=int(getattr(settings, "MP_TIMEOUT_SECONDS", 20)),
        max_retries=max(1, int(getattr(settings, "MP_MAX_RETRIES", 3))),
        retry_delay=float(getattr(settings, "MP_RETRY_DELAY_SECONDS", 1.0)),
    )


def validate_items(items: list[dict] | None) -> list[PreferenceItem]:
    if not items:
        raise PreferenceValidationError("At least one item is required")

    out: list[PreferenceItem] = []
    for raw in items:
        title = str(raw.get("title") or "").strip()
        try:
            unit_price = Decimal(str(raw.get("unit_price") or 0))
            quantity = Decimal(str(raw.get("quantity") or 0))
        except InvalidOperation as e:
            raise PreferenceValidationError("Invalid item price or quantity") from e
        if not title or not unit_price or not quantity:
            raise PreferenceValidationError("Each item must have title, unit_price and quantity")
        if unit_price <= 0 or quantity <= 0 or quantity != quantity.to_integral_value():
            raise PreferenceValidationError("Price and quantity must be greater than 0")
        out.append(PreferenceItem(title=title[:MAX_TITLE_LENGTH], unit_price=unit_price, quantity=int(quantity)))
    return out


def items_total(items: list[PreferenceItem]) -> Decimal:
    return sum((i.unit_price * i.quantity for i in items), Decimal("0"))


def _demo_id() -> str:
    suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(9))
    return f"demo_{int(time.time() * 1000)}_{suffix}"


class MercadoPagoClient:
    def __init__(self, cfg: MercadoPagoConfig | None = None) -> None:
        self.cfg = cfg or _get_cfg()

    def _request(self, method: str, path: str, *, json: dict | None = None) -> dict[str, Any]:
        """Call the API, retrying network errors and 5xx with exponential backoff."""

        url = f"{self.cfg.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self.cfg.access_token}",
            "Accept": "application/json",
        }

        last_error: MercadoPagoApiError | None = None
        for attempt in range(self.cfg.max_retries):
            if attempt:
                time.sleep(self.cfg.retry_delay * (2 ** (attempt - 1)))
            try:
                r = requests.request(method, url, json=json, headers=headers, timeout=self.cfg.timeout)
            except requests.RequestException as e:
                last_error = MercadoPagoApiError(f"MercadoPago request failed: {type(e).__name__}")
                logger.warning(
                    "MercadoPago request failed, retrying",
                    extra={"path": path, "attempt": attempt + 1, "error": type(e).__name__},
                )
                continue

            if r.status_code >= 500:
                last_error = MercadoPagoApiError(
                    f"MercadoPago API error: {r.status_code} {r.text[:300]}",
                    status_code=r.status_code,
                )
                logger.warning(
                    "MercadoPago server error, retrying",
                    extra={"path": path, "attempt": attempt + 1, "status_code": r.status_code},
                )
                continue
            if r.status_code >= 400:
                raise MercadoPagoApiError(
                    f"MercadoPago API error: {r.status_code} {r.text[:300]}",
                    status_code=r.status_code,
                )

            data = r.json()
            if not isinstance(data, dict):
                raise MercadoPagoApiError("MercadoPago API: unexpected response", status_code=r.status_code)
            return data

        assert last_error is not None
        raise last_error

    def create_preference(
        self,
        *,
        items: list[dict],
        user_id: str | int,
        metadata: dict | None = None,
        external_reference: str = "",
    ) -> dict[str, Any]:
        """Create a checkout preference and return `id`, `init_point` and `sandbox_init_point`.

        Raises PreferenceValidationError before any network call when the items are
        unusable or the total exceeds MP_MAX_AMOUNT.
        """

        if not str(user_id or "").strip():
            raise PreferenceValidationError("User id is required")
        parsed = validate_items(items)
        total = items_total(parsed)
        max_amount = Decimal(int(getattr(settings, "MP_MAX_AMOUNT", 999999)))
        if total > max_amount:
            raise PreferenceValidationError(f"Total cannot exceed ${max_amount:,.0f}")

        frontend = str(getattr(settings, "FRONTEND_URL", "") or "http://localhost:5173").rstrip("/")

        if self.cfg.is_demo:
            from loyalty.services import points_for_total

            demo_id = _demo_id()
            init_point = (
                f"{frontend}/success?payment_id={demo_id}&status=approved"
                f"&points={points_for_total(total)}"
            )
            logger.info("MercadoPago demo preference", extra={"user_id": str(user_id), "total": str(total)})
            return {"id": demo_id, "init_point": init_point, "sandbox_init_point": init_point, "demo": True}

        now = timezone.now()
        ttl = timedelta(hours=int(getattr(settings, "MP_PREFERENCE_TTL_HOURS", 24)))
        currency = str(getattr(settings, "STORE_CURRENCY", "ARS") or "ARS")
        body: dict[str, Any] = {
            "items": [
                {
                    "title": i.title,
                    "unit_price": float(i.unit_price),
                    "quantity": i.quantity,
                    "currency_id": currency,
                }
                for i in parsed
            ],
            "back_urls": {
                "success": f"{frontend}/success",
                "failure": f"{frontend}/failure",
                "pending": f"{frontend}/pending",
            },
            "auto_return": "approved",
            "metadata": {"user_id": str(user_id), "timestamp": now.isoformat(), **(metadata or {})},
            "expires": True,
            "expiration_date_from": now.isoformat(),
            "expiration_date_to": (now + ttl).isoformat(),
        }
        if external_reference:
            body["external_reference"] = str(external_reference)

        data = self._request("POST", "/checkout/preferences", json=body)
        logger.info(
            "MercadoPago preference created",
            extra={"preference_id": data.get("id"), "user_id": str(user_id), "total": str(total)},
        )
        return {
            "id": str(data.get("id") or ""),
            "init_point": data.get("init_point") or "",
            "sandbox_init_point": data.get("sandbox_init_point") or "",
            "demo": False,
        }

    def get_payment(self, payment_id: str | int) -> dict[str, Any]:
        if self.cfg.is_demo:
            raise MercadoPagoApiError("MercadoPago not configured")
        return self._request("GET", f"/v1/payments/{payment_id}")
