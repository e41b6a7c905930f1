"""
Newsletter subscriptions.
"""

from django.test import TestCase

from newsletter.models import Subscriber
from newsletter.services import (
    NewsletterError,
    subscribe,
    subscriber_stats,
    unsubscribe,
    update_preferences,
)
from tests.factories import auth_headers, make_staff, make_user


class SubscribeTestCase(TestCase):
    def test_guest_subscription(self):
        sub = subscribe(email="  Ana@Example.com ", interests=["Guantes", "guantes", "ofertas"])

        self.assertEqual(sub.email, "ana@example.com")
        self.assertEqual(sub.interests, ["guantes", "ofertas"])
        self.assertEqual(sub.source, Subscriber.Source.GUEST)
        self.assertFalse(sub.preferences["order_updates"])

    def test_authenticated_subscription_links_user(self):
        user = make_user()

        sub = subscribe(email=user.email, user=user)

        self.assertEqual(sub.user, user)
        self.assertEqual(sub.source, Subscriber.Source.AUTHENTICATED)
        self.assertTrue(sub.preferences["order_updates"])

    def test_invalid_email(self):
        with self.assertRaisesMessage(NewsletterError, "Please enter a valid email address"):
            subscribe(email="not-an-email")

    def test_duplicate_active_subscription(self):
        subscribe(email="ana@example.com")
        with self.assertRaisesMessage(NewsletterError, "You are already subscribed to our newsletter"):
            subscribe(email="ANA@example.com")

    def test_resubscribe_reactivates(self):
        first = subscribe(email="ana@example.com", interests=["guantes"])
        unsubscribe(email="ana@example.com")

        again = subscribe(email="ana@example.com")

        self.assertEqual(again.id, first.id)
        self.assertTrue(again.is_active)
        self.assertIsNone(again.unsubscribed_at)
        self.assertEqual(again.interests, ["guantes"])


class UnsubscribeTestCase(TestCase):
    def test_unsubscribe_marks_inactive(self):
        subscribe(email="ana@example.com")

        sub = unsubscribe(email="ana@example.com")

        self.assertFalse(sub.is_active)
        self.assertIsNotNone(sub.unsubscribed_at)

    def test_unknown_email(self):
        with self.assertRaisesMessage(NewsletterError, "Email not found in our list"):
            unsubscribe(email="nobody@example.com")


class PreferencesAndStatsTestCase(TestCase):
    def test_update_preferences_merges(self):
        sub = subscribe(email="ana@example.com")

        sub = update_preferences(subscriber_id=sub.id, preferences={"promotions": False})

        self.assertFalse(sub.preferences["promotions"])
        self.assertTrue(sub.preferences["newsletter"])

    def test_unknown_preference_key(self):
        sub = subscribe(email="ana@example.com")
        with self.assertRaisesMessage(NewsletterError, "Unknown preferences: sms"):
            update_preferences(subscriber_id=sub.id, preferences={"sms": True})

    def test_stats_count_active_interests(self):
        subscribe(email="a@example.com", interests=["guantes", "ofertas"])
        subscribe(email="b@example.com", interests=["guantes"])
        subscribe(email="c@example.com", interests=["ofertas"])
        unsubscribe(email="c@example.com")

        stats = subscriber_stats()

        self.assertEqual((stats.total, stats.active, stats.inactive), (3, 2, 1))
        self.assertEqual(stats.by_interest, {"guantes": 2, "ofertas": 1})


class NewsletterApiTestCase(TestCase):
    def test_subscribe_endpoint(self):
        response = self.client.post(
            "/api/newsletter/subscribe",
            data={"email": "ana@example.com", "interests": ["guantes"]},
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["source"], "guest")

    def test_subscribe_with_token_links_user(self):
        user = make_user()

        response = self.client.post(
            "/api/newsletter/subscribe",
            data={"email": user.email},
            content_type="application/json",
            **auth_headers(user),
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(Subscriber.objects.get().user, user)

    def test_duplicate_is_400(self):
        subscribe(email="ana@example.com")

        response = self.client.post(
            "/api/newsletter/subscribe",
            data={"email": "ana@example.com"},
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "You are already subscribed to our newsletter")

    def test_unsubscribe_unknown_is_404(self):
        response = self.client.post(
            "/api/newsletter/unsubscribe",
            data={"email": "nobody@example.com"},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 404)

    def test_admin_listing_is_paginated(self):
        subscribe(email="a@example.com")
        subscribe(email="b@example.com")
        unsubscribe(email="b@example.com")

        response = self.client.get("/api/newsletter/admin/subscribers", **auth_headers(make_staff()))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["count"], 1)

    def test_admin_listing_requires_staff(self):
        response = self.client.get("/api/newsletter/admin/subscribers", **auth_headers(make_user()))
        self.assertEqual(response.status_code, 401)

    def test_admin_update_unknown_subscriber(self):
        response = self.client.patch(
            "/api/newsletter/admin/subscribers/999/preferences",
            data={"preferences": {"promotions": False}},
            content_type="application/json",
            **auth_headers(make_staff()),
        )
        self.assertEqual(response.status_code, 404)
