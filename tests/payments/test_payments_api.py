"""
Payment endpoints: methods, bank details, preferences, verification, lookups.
"""

from unittest import mock

from django.test import TestCase, override_settings

from payments.models import PaymentMethod
from tests.factories import auth_headers, make_user


def _payment(status_code: int, payload=None, text: str = ""):
    r = mock.Mock(status_code=status_code, text=text)
    r.json.return_value = payload
    return r


class PaymentMethodsApiTestCase(TestCase):
    def test_defaults_when_nothing_configured(self):
        resp = self.client.get("/api/payments/methods")

        self.assertEqual(resp.status_code, 200)
        methods = {m["code"]: m for m in resp.json()}
        self.assertEqual(set(methods), {"payment_link", "card", "bank_transfer", "cash"})
        self.assertIn("Alias: elguante.mp", methods["bank_transfer"]["instructions"])
        self.assertEqual(methods["card"]["instructions"], "")

    def test_configured_rows_win(self):
        PaymentMethod.objects.create(code="cash", name="Efectivo en el local", kind=PaymentMethod.Kind.COD)
        PaymentMethod.objects.create(code="card", name="Tarjeta", kind=PaymentMethod.Kind.GATEWAY, is_active=False)

        resp = self.client.get("/api/payments/methods")

        self.assertEqual([m["name"] for m in resp.json()], ["Efectivo en el local"])

    def test_bank_transfer_details(self):
        resp = self.client.get("/api/payments/bank-transfer")

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["alias"], "elguante.mp")
        self.assertEqual(body["cbu"], "0000003100000000000000")

    @override_settings(BANK_TRANSFER_ALIAS="", BANK_TRANSFER_CBU="")
    def test_bank_transfer_not_configured(self):
        self.assertEqual(self.client.get("/api/payments/bank-transfer").status_code, 404)


class PreferenceApiTestCase(TestCase):
    def _post(self, payload: dict, **headers):
        return self.client.post("/api/payments/preferences", data=payload, content_type="application/json", **headers)

    def test_demo_preference(self):
        resp = self._post({"items": [{"title": "Guante", "unit_price": "1000", "quantity": 1}], "user_id": "u-1"})

        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["demo"])
        self.assertIn("status=approved", resp.json()["init_point"])

    def test_user_taken_from_token(self):
        user = make_user()
        resp = self._post({"items": [{"title": "Guante", "unit_price": "1000", "quantity": 1}]}, **auth_headers(user))
        self.assertEqual(resp.status_code, 200)

    def test_missing_user(self):
        resp = self._post({"items": [{"title": "Guante", "unit_price": "1000", "quantity": 1}]})
        self.assertEqual(resp.status_code, 400)

    def test_invalid_items(self):
        resp = self._post({"items": [], "user_id": "u-1"})

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "At least one item is required")

    def test_order_reference_namespace_is_reserved(self):
        resp = self._post(
            {
                "items": [{"title": "Guante", "unit_price": "1", "quantity": 1}],
                "user_id": "u-1",
                "external_reference": "payment_12",
            }
        )

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "external_reference is reserved for store orders")

    @override_settings(MP_ACCESS_TOKEN="APP_USR-live-token", MP_RETRY_DELAY_SECONDS=0)
    def test_provider_error(self):
        with mock.patch(
            "payments.services.mercadopago.requests.request", return_value=_payment(400, text="bad request")
        ):
            resp = self._post({"items": [{"title": "Guante", "unit_price": "1000", "quantity": 1}], "user_id": "u-1"})

        self.assertEqual(resp.status_code, 500)
        self.assertTrue(resp.json()["detail"].startswith("Error creating payment preference"))


class VerifyAndLookupApiTestCase(TestCase):
    def test_demo_verification(self):
        resp = self.client.get("/api/payments/verify/demo_1_abc")

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["verified"], True)
        self.assertEqual(resp.json()["status"], "approved")

    @override_settings(MP_ACCESS_TOKEN="APP_USR-live-token")
    def test_live_verification(self):
        with mock.patch(
            "payments.services.mercadopago.requests.request",
            return_value=_payment(200, {"id": 42, "status": "rejected"}),
        ):
            resp = self.client.get("/api/payments/verify/42")

        self.assertEqual(resp.json()["verified"], False)
        self.assertEqual(resp.json()["status"], "rejected")

    def test_lookup_rejects_non_numeric_id(self):
        self.assertEqual(self.client.get("/api/payments/abc").status_code, 400)

    @override_settings(MP_ACCESS_TOKEN="APP_USR-live-token")
    def test_lookup_not_found(self):
        with mock.patch(
            "payments.services.mercadopago.requests.request", return_value=_payment(404, text="not found")
        ):
            resp = self.client.get("/api/payments/42")

        self.assertEqual(resp.status_code, 404)

    @override_settings(MP_ACCESS_TOKEN="APP_USR-live-token")
    def test_lookup(self):
        payload = {"id": 42, "status": "approved", "status_detail": "accredited", "transaction_amount": 1500, "currency_id": "ARS"}
        with mock.patch("payments.services.mercadopago.requests.request", return_value=_payment(200, payload)):
            resp = self.client.get("/api/payments/42")

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["id"], "42")
        self.assertEqual(body["status_detail"], "accredited")
