"""
MercadoPago client: item validation, demo mode, retries.
"""

from decimal import Decimal
from unittest import mock

import requests
from django.test import SimpleTestCase, override_settings

from checkout.services import InsufficientStockError
from payments.errors import categorize_payment_error
from payments.services.mercadopago import (
    MP_SAMPLE_TEST_TOKEN,
    MercadoPagoApiError,
    MercadoPagoClient,
    PreferenceValidationError,
    validate_items,
)

ITEM = {"title": "Guante", "unit_price": "1500.00", "quantity": 2}


def _response(status_code: int, payload=None, text: str = ""):
    r = mock.Mock(status_code=status_code, text=text)
    r.json.return_value = payload
    return r


class ValidateItemsTestCase(SimpleTestCase):
    def test_requires_items(self):
        with self.assertRaisesMessage(PreferenceValidationError, "At least one item is required"):
            validate_items([])

    def test_requires_all_fields(self):
        with self.assertRaisesMessage(PreferenceValidationError, "Each item must have title, unit_price and quantity"):
            validate_items([{"title": "", "unit_price": 10, "quantity": 1}])

    def test_rejects_negative_amounts(self):
        with self.assertRaisesMessage(PreferenceValidationError, "Price and quantity must be greater than 0"):
            validate_items([{"title": "Guante", "unit_price": -5, "quantity": 1}])

    def test_truncates_long_titles(self):
        items = validate_items([{"title": "x" * 300, "unit_price": 1, "quantity": 1}])
        self.assertEqual(len(items[0].title), 256)
        self.assertEqual(items[0].unit_price, Decimal("1"))


class DemoModeTestCase(SimpleTestCase):
    def test_empty_token_is_demo(self):
        self.assertTrue(MercadoPagoClient().cfg.is_demo)

    @override_settings(MP_ACCESS_TOKEN=MP_SAMPLE_TEST_TOKEN)
    def test_sample_token_is_demo(self):
        self.assertTrue(MercadoPagoClient().cfg.is_demo)

    def test_demo_preference_points_to_success_page(self):
        with mock.patch("payments.services.mercadopago.requests.request") as req:
            pref = MercadoPagoClient().create_preference(items=[ITEM], user_id="7")

        req.assert_not_called()
        self.assertTrue(pref["demo"])
        self.assertRegex(pref["id"], r"^demo_\d+_[a-z0-9]{9}$")
        self.assertEqual(
            pref["init_point"],
            f"http://testserver/success?payment_id={pref['id']}&status=approved&points=3",
        )

    def test_user_id_required(self):
        with self.assertRaisesMessage(PreferenceValidationError, "User id is required"):
            MercadoPagoClient().create_preference(items=[ITEM], user_id="")

    def test_total_cap(self):
        with self.assertRaisesMessage(PreferenceValidationError, "Total cannot exceed $999,999"):
            MercadoPagoClient().create_preference(
                items=[{"title": "Lote", "unit_price": "500000", "quantity": 2}], user_id="7"
            )

    def test_payment_lookup_needs_configuration(self):
        with self.assertRaisesMessage(MercadoPagoApiError, "MercadoPago not configured"):
            MercadoPagoClient().get_payment("123")


@override_settings(MP_ACCESS_TOKEN="APP_USR-live-token", MP_MAX_RETRIES=3, MP_RETRY_DELAY_SECONDS=0)
class LiveClientTestCase(SimpleTestCase):
    def test_preference_body(self):
        ok = _response(201, {"id": "pref-1", "init_point": "https://mp/redirect", "sandbox_init_point": "https://sb"})
        with mock.patch("payments.services.mercadopago.requests.request", return_value=ok) as req:
            pref = MercadoPagoClient().create_preference(
                items=[ITEM], user_id=7, metadata={"order_id": 10}, external_reference="payment_10"
            )

        self.assertEqual(pref, {"id": "pref-1", "init_point": "https://mp/redirect", "sandbox_init_point": "https://sb", "demo": False})
        method, url = req.call_args.args
        self.assertEqual(method, "POST")
        self.assertEqual(url, "https://api.mercadopago.com/checkout/preferences")
        self.assertEqual(req.call_args.kwargs["headers"]["Authorization"], "Bearer APP_USR-live-token")
        body = req.call_args.kwargs["json"]
        self.assertEqual(body["items"], [{"title": "Guante", "unit_price": 1500.0, "quantity": 2, "currency_id": "ARS"}])
        self.assertEqual(body["back_urls"]["success"], "http://testserver/success")
        self.assertEqual(body["auto_return"], "approved")
        self.assertEqual(body["external_reference"], "payment_10")
        self.assertEqual(body["metadata"]["user_id"], "7")
        self.assertEqual(body["metadata"]["order_id"], 10)
        self.assertTrue(body["expires"])

    def test_retries_server_errors(self):
        responses = [_response(503, text="unavailable"), _response(200, {"id": 5, "status": "approved"})]
        with mock.patch("payments.services.mercadopago.requests.request", side_effect=responses) as req:
            payment = MercadoPagoClient().get_payment(5)

        self.assertEqual(payment["status"], "approved")
        self.assertEqual(req.call_count, 2)

    def test_retries_network_errors_then_gives_up(self):
        with mock.patch(
            "payments.services.mercadopago.requests.request", side_effect=requests.ConnectionError("boom")
        ) as req:
            with self.assertRaises(MercadoPagoApiError):
                MercadoPagoClient().get_payment(5)

        self.assertEqual(req.call_count, 3)

    def test_client_errors_are_not_retried(self):
        with mock.patch(
            "payments.services.mercadopago.requests.request", return_value=_response(404, text="not found")
        ) as req:
            with self.assertRaises(MercadoPagoApiError) as ctx:
                MercadoPagoClient().get_payment(5)

        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(req.call_count, 1)


class CategorizePaymentErrorTestCase(SimpleTestCase):
    def test_categories(self):
        cases = [
            (MercadoPagoApiError("MercadoPago API error: 500"), "payment_service", True),
            (requests.Timeout("read timed out"), "network", True),
            (ValueError("Insufficient stock for Guante (available: 1)"), "inventory", False),
            (InsufficientStockError("Insufficient stock for Guante Mercado Pago (available: 0)"), "inventory", False),
            (ValueError("Invalid phone number"), "validation", False),
            (RuntimeError("something odd"), "unknown", True),
        ]
        for exc, expected_type, retryable in cases:
            with self.subTest(exc=exc):
                info = categorize_payment_error(exc)
                self.assertEqual(info.type, expected_type)
                self.assertEqual(info.retryable, retryable)
                self.assertEqual(info.message, str(exc))
