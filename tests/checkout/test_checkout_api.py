"""
Cart and checkout endpoints, including payment initiation and operator actions.
"""

from decimal import Decimal
from unittest import mock

from django.test import TestCase, override_settings

from checkout import api as checkout_api
from checkout.models import Cart, CartItem, Order
from notifications.models import OutboundMessage
from tests.factories import auth_headers, make_cart, make_product, make_staff, make_user


class CartApiTestCase(TestCase):
    def setUp(self):
        self.product = make_product(price="1200.00", stock=3)

    def test_guest_cart_lives_in_session(self):
        resp = self.client.post(
            "/api/cart/items",
            data={"product_id": self.product.id, "qty": 2},
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["items_count"], 2)

        resp = self.client.get("/api/cart")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(len(body["items"]), 1)
        self.assertEqual(Decimal(body["subtotal"]), Decimal("2400.00"))

    def test_adding_beyond_stock_conflicts(self):
        resp = self.client.post(
            "/api/cart/items",
            data={"product_id": self.product.id, "qty": 4},
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 409)

    def test_unknown_product(self):
        resp = self.client.post(
            "/api/cart/items", data={"product_id": 999999, "qty": 1}, content_type="application/json"
        )
        self.assertEqual(resp.status_code, 404)

    def test_guest_cart_merges_into_user_cart_on_login(self):
        self.client.post(
            "/api/cart/items", data={"product_id": self.product.id, "qty": 1}, content_type="application/json"
        )
        user = make_user()

        resp = self.client.get("/api/cart", **auth_headers(user))

        self.assertEqual(resp.json()["items_count"], 1)
        self.assertTrue(Cart.objects.filter(user=user).exists())
        self.assertFalse(Cart.objects.filter(user=None).exists())

    def test_update_quantity_to_zero_removes_item(self):
        user = make_user()
        cart = make_cart(user=user, items=[(self.product, 1)])
        item = CartItem.objects.get(cart=cart)

        resp = self.client.patch(
            f"/api/cart/items/{item.id}", data={"qty": 0}, content_type="application/json", **auth_headers(user)
        )

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["items"], [])


class CheckoutApiTestCase(TestCase):
    def setUp(self):
        self.user = make_user()
        self.product = make_product(price="1500.00", stock=5)
        self.cart = make_cart(user=self.user, items=[(self.product, 2)])

    def _checkout(self, **payload):
        return self.client.post(
            "/api/checkout/orders",
            data=payload,
            content_type="application/json",
            **auth_headers(self.user),
        )

    def test_requires_authentication(self):
        resp = self.client.post(
            "/api/checkout/orders", data={"payment_method": "cash"}, content_type="application/json"
        )
        self.assertEqual(resp.status_code, 401)

    def test_cash_order_stays_pending_and_notifies_operator(self):
        resp = self._checkout(payment_method="cash")

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["status"], "pending")
        self.assertEqual(body["redirect_url"], "")
        # Twilio is not configured in tests, so the relay is logged as failed.
        self.assertFalse(body["operator_notified"])

        msg = OutboundMessage.objects.get(kind="order_pending")
        self.assertEqual(msg.to_number, "5491100000000")
        self.assertIn("Nueva Orden Pendiente", msg.body)
        self.assertIn("Guante de arquero x2", msg.body)
        self.assertIn(f"/admin/confirm-payment/{body['order_id']}", msg.body)
        self.assertFalse(CartItem.objects.filter(cart=self.cart).exists())

    def test_bank_transfer_returns_instructions(self):
        resp = self._checkout(payment_method="bank_transfer")

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertIn("Alias: elguante.mp", body["payment_instructions"])
        self.assertIn(f"Referencia: Orden #{body['order_id']}", body["payment_instructions"])

    def test_card_order_in_demo_mode_gets_simulated_redirect(self):
        resp = self._checkout(payment_method="card")

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["status"], "processing")
        self.assertTrue(body["redirect_url"].startswith("http://testserver/success?payment_id=demo_"))
        self.assertEqual(body["payment_id"], f"payment_{body['order_id']}")
        order = Order.objects.get(id=body["order_id"])
        self.assertTrue(order.preference_id.startswith("demo_"))
        self.assertFalse(OutboundMessage.objects.exists())

    @override_settings(MP_ACCESS_TOKEN="APP_USR-live-token")
    def test_card_order_sends_preference_to_mercadopago(self):
        response = mock.Mock(status_code=201)
        response.json.return_value = {
            "id": "pref-123",
            "init_point": "https://www.mercadopago.com.ar/checkout/v1/redirect?pref_id=pref-123",
            "sandbox_init_point": "",
        }
        with mock.patch("payments.services.mercadopago.requests.request", return_value=response) as req:
            resp = self._checkout(payment_method="payment_link")

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["redirect_url"], response.json.return_value["init_point"])
        sent = req.call_args.kwargs["json"]
        self.assertEqual(sent["external_reference"], f"payment_{body['order_id']}")
        self.assertEqual(sent["items"][0]["quantity"], 2)
        self.assertEqual(sent["metadata"]["order_id"], body["order_id"])

    @override_settings(MP_ACCESS_TOKEN="APP_USR-live-token")
    def test_failed_preference_cancels_order_and_keeps_cart(self):
        response = mock.Mock(status_code=400, text="invalid items")
        with mock.patch("payments.services.mercadopago.requests.request", return_value=response):
            resp = self._checkout(payment_method="card")

        self.assertEqual(resp.status_code, 502)
        self.assertEqual(Order.objects.get().status, Order.Status.CANCELLED)
        self.assertTrue(CartItem.objects.filter(cart=self.cart).exists())

    def test_insufficient_stock_conflicts(self):
        type(self.product).objects.filter(id=self.product.id).update(stock=1)

        resp = self._checkout(payment_method="cash")

        self.assertEqual(resp.status_code, 409)
        self.assertIn("Insufficient stock", resp.json()["detail"])

    def test_stock_error_is_a_conflict_whatever_the_product_name(self):
        product = make_product(name="Guante Mercado Pago conexión", price="100.00", stock=1)
        CartItem.objects.create(cart=self.cart, product=product, qty=3)

        resp = self._checkout(payment_method="cash")

        self.assertEqual(resp.status_code, 409)
        self.assertIn("Insufficient stock for Guante Mercado Pago conexión", resp.json()["detail"])

    def test_invalid_phone_is_bad_request(self):
        resp = self._checkout(payment_method="cash", phone_number="1234")
        self.assertEqual(resp.status_code, 400)

    def test_preview_shows_discounts(self):
        resp = self.client.post(
            "/api/checkout/preview", data={}, content_type="application/json", **auth_headers(self.user)
        )

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(Decimal(body["total"]), Decimal("3000.00"))
        self.assertEqual(body["points_earned"], 3)
        self.assertEqual(body["level_name"], "Sin nivel")

    def test_order_history_is_per_user(self):
        order_id = self._checkout(payment_method="cash").json()["order_id"]

        mine = self.client.get("/api/orders", **auth_headers(self.user))
        theirs = self.client.get(f"/api/orders/{order_id}", **auth_headers(make_user()))

        self.assertEqual([o["id"] for o in mine.json()], [order_id])
        self.assertEqual(theirs.status_code, 404)


class AdminOrderApiTestCase(TestCase):
    def setUp(self):
        self.staff = make_staff()
        self.customer = make_user()
        self.product = make_product(price="1000.00", stock=4)
        make_cart(user=self.customer, items=[(self.product, 1)])
        resp = self.client.post(
            "/api/checkout/orders",
            data={"payment_method": "bank_transfer"},
            content_type="application/json",
            **auth_headers(self.customer),
        )
        self.order_id = resp.json()["order_id"]

    def test_lists_pending_orders_for_staff_only(self):
        resp = self.client.get("/api/admin/orders", **auth_headers(self.staff))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([o["id"] for o in resp.json()["items"]], [self.order_id])

        resp = self.client.get("/api/admin/orders", **auth_headers(self.customer))
        self.assertEqual(resp.status_code, 401)

    def test_invalid_status_filter(self):
        resp = self.client.get("/api/admin/orders?status=lost", **auth_headers(self.staff))
        self.assertEqual(resp.status_code, 400)

    def test_confirm_payment(self):
        resp = self.client.post(f"/api/admin/orders/{self.order_id}/confirm", **auth_headers(self.staff))

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"order_id": self.order_id, "status": "confirmed", "changed": True})
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 3)

        again = self.client.post(f"/api/admin/orders/{self.order_id}/confirm", **auth_headers(self.staff))
        self.assertEqual(again.json()["changed"], False)

    def test_cancelled_order_cannot_be_confirmed(self):
        self.client.post(f"/api/admin/orders/{self.order_id}/cancel", **auth_headers(self.staff))

        resp = self.client.post(f"/api/admin/orders/{self.order_id}/confirm", **auth_headers(self.staff))

        self.assertEqual(resp.status_code, 409)

    def test_admin_list_serializes_only_the_requested_page(self):
        Order.objects.bulk_create(
            Order(user=self.customer, payment_method=Order.PaymentMethod.CASH, total=Decimal("10.00"))
            for _ in range(54)
        )

        with mock.patch.object(
            checkout_api, "_admin_order_out", wraps=checkout_api._admin_order_out
        ) as order_out:
            resp = self.client.get("/api/admin/orders?status=all", **auth_headers(self.staff))

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["count"], 55)
        self.assertEqual(len(body["items"]), 50)
        self.assertEqual(order_out.call_count, 50)

        last = self.client.get("/api/admin/orders?status=all&page=2", **auth_headers(self.staff)).json()
        self.assertEqual(len(last["items"]), 5)
        first_order = next(o for o in body["items"] + last["items"] if o["id"] == self.order_id)
        self.assertEqual(first_order["user_id"], self.customer.id)
        self.assertEqual(len(first_order["lines"]), 1)
