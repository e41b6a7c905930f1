"""
Registration, login and profile endpoints.
"""

from django.test import SimpleTestCase, TestCase

from accounts.models import User, is_valid_ar_mobile, normalize_phone
from referrals.models import Referral
from referrals.services import ensure_profile
from tests.factories import auth_headers, make_user


class PhoneRulesTestCase(SimpleTestCase):
    def test_normalize(self):
        self.assertEqual(normalize_phone("+54 9 11 2233-4455"), "5491122334455")
        self.assertEqual(normalize_phone(None), "")

    def test_argentine_mobile(self):
        self.assertTrue(is_valid_ar_mobile("5491122334455"))
        self.assertFalse(is_valid_ar_mobile("541122334455"))
        self.assertFalse(is_valid_ar_mobile("54911223344556"))


class AuthApiTestCase(TestCase):
    def _register(self, **payload):
        data = {"email": "Nuevo@Example.com", "password": "clave-segura-1", **payload}
        return self.client.post("/api/auth/register", data=data, content_type="application/json")

    def test_register_sets_cookies(self):
        resp = self._register(first_name="Lucía", phone_number="+54 9 11 5555 0000")

        self.assertEqual(resp.status_code, 200)
        self.assertIn("access_token", resp.cookies)
        self.assertIn("refresh_token", resp.cookies)
        user = User.objects.get(email="nuevo@example.com")
        self.assertEqual(user.phone_number, "5491155550000")

    def test_duplicate_email(self):
        self._register()
        resp = self._register()
        self.assertEqual(resp.status_code, 400)

    def test_register_with_referral_code(self):
        referrer = make_user()
        code = ensure_profile(user=referrer).code

        self._register(referral_code=code)

        self.assertTrue(Referral.objects.filter(referrer=referrer, referred__email="nuevo@example.com").exists())

    def test_bad_referral_code_does_not_block_sign_up(self):
        resp = self._register(referral_code="NOEXISTE")

        self.assertEqual(resp.status_code, 200)
        self.assertFalse(Referral.objects.exists())

    def test_login_and_me_via_cookie(self):
        make_user(email="cliente@example.com")

        resp = self.client.post(
            "/api/auth/login",
            data={"email": "cliente@example.com", "password": "secret-pass-123"},
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 200)

        me = self.client.get("/api/auth/me")
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["email"], "cliente@example.com")

    def test_wrong_password(self):
        make_user(email="cliente@example.com")
        resp = self.client.post(
            "/api/auth/login",
            data={"email": "cliente@example.com", "password": "nope"},
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 401)

    def test_update_phone(self):
        user = make_user()
        resp = self.client.patch(
            "/api/auth/me", data={"phone_number": "549 11 9999 8888"}, content_type="application/json", **auth_headers(user)
        )
        self.assertEqual(resp.json()["phone_number"], "5491199998888")

    def test_refresh_rejects_access_token(self):
        user = make_user()
        token = auth_headers(user)["HTTP_AUTHORIZATION"].split(" ", 1)[1]
        resp = self.client.post("/api/auth/refresh", data={"refresh": token}, content_type="application/json")
        self.assertEqual(resp.status_code, 401)
