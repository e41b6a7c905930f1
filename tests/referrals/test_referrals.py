"""
Referral codes, registration and rewards.
"""

import random

from django.test import TestCase

from loyalty.models import LoyaltyAccount
from referrals.models import Referral, ReferralProfile
from referrals.services import (
    ReferralError,
    complete_referral,
    ensure_profile,
    generate_referral_code,
    referral_stats,
    register_referral,
)
from tests.factories import auth_headers, make_user


class ReferralCodeTestCase(TestCase):
    def test_code_from_first_name(self):
        user = make_user(first_name="María José")
        code = generate_referral_code(user=user, rng=random.Random(1))
        self.assertRegex(code, r"^MARA\d{1,3}$")

    def test_profile_is_created_once(self):
        user = make_user()
        self.assertEqual(ensure_profile(user=user).id, ensure_profile(user=user).id)
        self.assertEqual(ReferralProfile.objects.count(), 1)


class RegisterReferralTestCase(TestCase):
    def setUp(self):
        self.referrer = make_user()
        self.code = ensure_profile(user=self.referrer).code
        self.friend = make_user()

    def test_register_and_complete(self):
        referral = register_referral(referred_user=self.friend, code=self.code.lower())
        self.assertEqual(referral.status, Referral.Status.PENDING)

        completed = complete_referral(referred_user=self.friend)

        self.assertEqual(completed.status, Referral.Status.COMPLETED)
        self.assertEqual(LoyaltyAccount.objects.get(user=self.referrer).points, 50)
        self.assertIsNone(complete_referral(referred_user=self.friend))
        stats = referral_stats(user=self.referrer)
        self.assertEqual((stats.total, stats.pending, stats.completed, stats.earnings), (1, 0, 1, 50))

    def test_rules(self):
        with self.assertRaisesMessage(ReferralError, "Invalid referral code"):
            register_referral(referred_user=self.friend, code="NOPE")
        with self.assertRaisesMessage(ReferralError, "You cannot use your own referral code"):
            register_referral(referred_user=self.referrer, code=self.code)

        register_referral(referred_user=self.friend, code=self.code)
        with self.assertRaisesMessage(ReferralError, "You have already been referred"):
            register_referral(referred_user=self.friend, code=self.code)


class ReferralApiTestCase(TestCase):
    def test_me_and_register(self):
        referrer = make_user()
        resp = self.client.get("/api/referrals/me", **auth_headers(referrer))
        self.assertEqual(resp.status_code, 200)
        code = resp.json()["code"]
        self.assertEqual(resp.json()["share_url"], f"http://testserver/?ref={code}")

        friend = make_user()
        resp = self.client.post(
            "/api/referrals/register", data={"code": code}, content_type="application/json", **auth_headers(friend)
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "pending")

        resp = self.client.get("/api/referrals/me", **auth_headers(referrer))
        self.assertEqual(resp.json()["stats"]["pending"], 1)
