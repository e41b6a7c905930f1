"""
Price history, lowest price and price alerts.
"""

from decimal import Decimal

from django.test import TestCase

from catalog.models import PriceAlert, PriceChange
from catalog.services import (
    PriceAlertError,
    check_price_alerts,
    create_price_alert,
    is_lowest_price,
    lowest_price,
    percentage_change,
    record_price_change,
)
from notifications.models import OutboundMessage
from tests.factories import auth_headers, make_category, make_product, make_staff, make_user


class PriceHistoryTestCase(TestCase):
    def setUp(self):
        self.product = make_product(price="1000.00")

    def test_percentage_change(self):
        self.assertEqual(percentage_change(Decimal("1000"), Decimal("875")), Decimal("-12.50"))
        self.assertEqual(percentage_change(Decimal("0"), Decimal("10")), Decimal("0.00"))

    def test_price_change_is_recorded(self):
        change = record_price_change(product=self.product, new_price=Decimal("800"), reason="promo")

        self.assertEqual(change.change_type, PriceChange.ChangeType.DECREASE)
        self.assertEqual(change.old_price, Decimal("1000.00"))
        self.assertEqual(change.percentage_change, Decimal("-20.00"))
        self.assertEqual(change.reason, "promo")

    def test_unchanged_price_records_nothing(self):
        self.assertIsNone(record_price_change(product=self.product, new_price=Decimal("1000")))
        self.assertFalse(PriceChange.objects.exists())

    def test_rejects_non_positive_price(self):
        with self.assertRaises(ValueError):
            record_price_change(product=self.product, new_price=Decimal("0"))

    def test_lowest_price(self):
        record_price_change(product=self.product, new_price=Decimal("700"))
        record_price_change(product=self.product, new_price=Decimal("900"))

        self.assertEqual(lowest_price(product=self.product), Decimal("700.00"))
        self.assertFalse(is_lowest_price(product=self.product))


class PriceAlertTestCase(TestCase):
    def setUp(self):
        self.user = make_user()
        self.product = make_product(name="Botines", price="5000.00")

    def test_duplicate_alert(self):
        create_price_alert(user=self.user, product=self.product, target_price=Decimal("4000"))
        with self.assertRaisesMessage(PriceAlertError, "Price alert already exists"):
            create_price_alert(user=self.user, product=self.product, target_price=Decimal("3500"))

    def test_alert_triggers_when_price_drops_to_target(self):
        alert = create_price_alert(user=self.user, product=self.product, target_price=Decimal("4000"))

        with self.captureOnCommitCallbacks(execute=True):
            record_price_change(product=self.product, new_price=Decimal("3900"))

        alert.refresh_from_db()
        self.assertTrue(alert.notified)
        self.assertEqual(alert.triggered_price, Decimal("3900.00"))
        msg = OutboundMessage.objects.get(kind="price_alert")
        self.assertIn("Botines", msg.body)

    def test_alert_not_triggered_above_target(self):
        alert = create_price_alert(user=self.user, product=self.product, target_price=Decimal("4000"))
        self.product.price = Decimal("4500")
        self.product.save()

        self.assertEqual(check_price_alerts(product=self.product), [])
        alert.refresh_from_db()
        self.assertFalse(alert.notified)


class CatalogApiTestCase(TestCase):
    def setUp(self):
        self.gloves = make_category("Guantes")
        self.product = make_product(name="Guante Pro", price="2000.00", stock=0, category=self.gloves)
        make_product(name="Pelota", price="900.00", stock=4)
        make_product(name="Oculto", is_active=False)

    def test_list_and_filters(self):
        resp = self.client.get("/api/catalog/products")
        self.assertEqual(resp.json()["count"], 2)

        resp = self.client.get("/api/catalog/products?in_stock=true")
        self.assertEqual([p["name"] for p in resp.json()["items"]], ["Pelota"])

        resp = self.client.get(f"/api/catalog/products?category={self.gloves.slug}")
        self.assertEqual([p["name"] for p in resp.json()["items"]], ["Guante Pro"])

    def test_detail_by_slug(self):
        resp = self.client.get(f"/api/catalog/products/{self.product.slug}")

        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["is_lowest_price"])
        self.assertFalse(resp.json()["in_stock"])

    def test_staff_price_change(self):
        resp = self.client.post(
            f"/api/catalog/products/{self.product.id}/price",
            data={"new_price": "2500", "reason": "ajuste"},
            content_type="application/json",
            **auth_headers(make_staff()),
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["change_type"], "increase")

        history = self.client.get(f"/api/catalog/products/{self.product.id}/price-history").json()
        self.assertEqual(len(history["history"]), 1)

    def test_price_alert_endpoints(self):
        user = make_user()
        resp = self.client.post(
            "/api/catalog/price-alerts",
            data={"product_id": self.product.id, "target_price": "1500"},
            content_type="application/json",
            **auth_headers(user),
        )
        self.assertEqual(resp.status_code, 200)
        alert_id = resp.json()["id"]

        resp = self.client.delete(f"/api/catalog/price-alerts/{alert_id}", **auth_headers(user))
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(PriceAlert.objects.get(id=alert_id).is_active)
