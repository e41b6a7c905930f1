"""
Coupon validation, wallet and staff management.
"""

from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from promotions.models import Coupon, UserCoupon
from promotions.services import CouponError, assign_coupon_to_user, create_coupon, user_wallet, validate_coupon
from tests.factories import auth_headers, make_staff, make_user


class ValidateCouponTestCase(TestCase):
    def setUp(self):
        self.user = make_user()

    def test_percentage_with_cap(self):
        Coupon.objects.create(code="MITAD", discount_type="percentage", discount_value=50, max_discount=Decimal("400"))

        quote = validate_coupon(code="mitad", user=self.user, cart_total=Decimal("2000"))

        self.assertEqual(quote.discount, Decimal("400.00"))

    def test_fixed_never_exceeds_total(self):
        Coupon.objects.create(code="FIJO", discount_type="fixed", discount_value=500)
        self.assertEqual(validate_coupon(code="FIJO", user=self.user, cart_total=Decimal("300")).discount, Decimal("300.00"))

    def test_checks_in_order(self):
        Coupon.objects.create(code="VIEJO", discount_type="fixed", discount_value=10, expires_at=timezone.now() - timedelta(days=1))
        Coupon.objects.create(code="AGOTADO", discount_type="fixed", discount_value=10, usage_limit=1, times_redeemed=1)
        Coupon.objects.create(code="MINIMO", discount_type="fixed", discount_value=10, min_amount=Decimal("5000"))
        cases = [
            ("", "Coupon code is required"),
            ("NADA", "Coupon not found or expired"),
            ("VIEJO", "This coupon has expired"),
            ("AGOTADO", "This coupon is no longer available"),
            ("MINIMO", "This coupon requires a minimum purchase of $5000"),
        ]
        for code, message in cases:
            with self.subTest(code=code):
                with self.assertRaisesMessage(CouponError, message):
                    validate_coupon(code=code, user=self.user, cart_total=Decimal("1000"))


class CouponManagementTestCase(TestCase):
    def test_create_generates_code(self):
        coupon = create_coupon(code=None, discount_type="percentage", discount_value=Decimal("15"))
        self.assertEqual(len(coupon.code), 8)
        self.assertEqual(coupon.code, coupon.code.upper())

    def test_rejects_bad_values(self):
        with self.assertRaisesMessage(CouponError, "Percentage discount cannot exceed 100"):
            create_coupon(code="X", discount_type="percentage", discount_value=Decimal("150"))
        with self.assertRaisesMessage(CouponError, "Discount value must be positive"):
            create_coupon(code="Y", discount_type="fixed", discount_value=Decimal("0"))

    def test_wallet(self):
        user = make_user()
        coupon = create_coupon(code="REGALO", discount_type="fixed", discount_value=Decimal("200"))

        assign_coupon_to_user(coupon=coupon, user=user)

        self.assertEqual([uc.coupon.code for uc in user_wallet(user=user)], ["REGALO"])
        with self.assertRaises(CouponError):
            assign_coupon_to_user(coupon=coupon, user=user)


class CouponApiTestCase(TestCase):
    def test_apply_with_explicit_total(self):
        Coupon.objects.create(code="DIEZ", discount_type="percentage", discount_value=10)

        resp = self.client.post(
            "/api/coupons/apply",
            data={"code": "diez", "cart_total": "1500"},
            content_type="application/json",
            **auth_headers(make_user()),
        )

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Decimal(resp.json()["discount"]), Decimal("150.00"))
        self.assertEqual(Decimal(resp.json()["total_after_discount"]), Decimal("1350.00"))

    def test_apply_unknown(self):
        resp = self.client.post(
            "/api/coupons/apply", data={"code": "NOPE", "cart_total": "100"}, content_type="application/json",
            **auth_headers(make_user()),
        )
        self.assertEqual(resp.status_code, 400)

    def test_staff_creates_and_assigns(self):
        staff = make_staff()
        customer = make_user()

        resp = self.client.post(
            "/api/coupons/admin",
            data={"code": "vip", "discount_type": "fixed", "discount_value": "300"},
            content_type="application/json",
            **auth_headers(staff),
        )
        self.assertEqual(resp.status_code, 200)
        coupon_id = resp.json()["id"]

        resp = self.client.post(
            f"/api/coupons/admin/{coupon_id}/assign",
            data={"user_id": customer.id},
            content_type="application/json",
            **auth_headers(staff),
        )
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(UserCoupon.objects.filter(user=customer, coupon_id=coupon_id).exists())

        resp = self.client.get("/api/coupons/mine", **auth_headers(customer))
        self.assertEqual([c["code"] for c in resp.json()], ["VIP"])

    def test_customers_cannot_manage(self):
        resp = self.client.get("/api/coupons/admin", **auth_headers(make_user()))
        self.assertEqual(resp.status_code, 401)
