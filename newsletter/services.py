from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field

from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction
from django.utils import timezone

from .models import Subscriber, default_preferences

logger = logging.getLogger(__name__)

PREFERENCE_KEYS = frozenset(default_preferences())


class NewsletterError(ValueError):
    pass


@dataclass(frozen=True)
class SubscriberStats:
    total: int
    active: int
    inactive: int
    by_interest: dict[str, int] = field(default_factory=dict)


def normalize_email(email: str | None) -> str:
    email = (email or "").strip().lower()
    try:
        validate_email(email)
    except ValidationError as e:
        raise NewsletterError("Please enter a valid email address") from e
    return email


def _clean_interests(interests) -> list[str]:
    out: list[str] = []
    for i in interests or []:
        s = str(i or "").strip().lower()[:50]
        if s and s not in out:
            out.append(s)
    return out


def subscribe(*, email: str, interests=None, user=None) -> Subscriber:
    """Add an address to the list, or reactivate one that unsubscribed earlier."""

    email = normalize_email(email)
    authenticated = user is not None and getattr(user, "is_authenticated", False)

    with transaction.atomic():
        sub = Subscriber.objects.select_for_update().filter(email=email).first()
        if sub is not None and sub.is_active:
            raise NewsletterError("You are already subscribed to our newsletter")

        if sub is None:
            prefs = default_preferences()
            prefs["order_updates"] = authenticated
            sub = Subscriber.objects.create(
                email=email,
                interests=_clean_interests(interests),
                source=Subscriber.Source.AUTHENTICATED if authenticated else Subscriber.Source.GUEST,
                user=user if authenticated else None,
                preferences=prefs,
            )
        else:
            sub.is_active = True
            sub.unsubscribed_at = None
            sub.interests = _clean_interests(interests) or sub.interests
            if authenticated and sub.user_id is None:
                sub.user = user
                sub.source = Subscriber.Source.AUTHENTICATED
            sub.save()

    logger.info("Newsletter subscription", extra={"subscriber_id": sub.id, "source": sub.source})
    return sub


def unsubscribe(*, email: str) -> Subscriber:
    email = normalize_email(email)
    sub = Subscriber.objects.filter(email=email).first()
    if sub is None:
        raise NewsletterError("Email not found in our list")
    if sub.is_active:
        sub.is_active = False
        sub.unsubscribed_at = timezone.now()
        sub.save(update_fields=["is_active", "unsubscribed_at", "updated_at"])
    return sub


def list_subscribers(*, active_only: bool = True):
    qs = Subscriber.objects.all().order_by("-subscribed_at", "-id")
    if active_only:
        qs = qs.filter(is_active=True)
    return qs


def update_preferences(*, subscriber_id: int, preferences: dict) -> Subscriber:
    sub = Subscriber.objects.filter(id=subscriber_id).first()
    if sub is None:
        raise NewsletterError("Subscriber not found")

    unknown = set(preferences or {}) - PREFERENCE_KEYS
    if unknown:
        raise NewsletterError(f"Unknown preferences: {', '.join(sorted(unknown))}")

    merged = {**default_preferences(), **(sub.preferences or {})}
    merged.update({k: bool(v) for k, v in (preferences or {}).items()})
    sub.preferences = merged
    sub.save(update_fields=["preferences", "updated_at"])
    return sub


def subscriber_stats() -> SubscriberStats:
    total = Subscriber.objects.count()
    active_interests = Subscriber.objects.filter(is_active=True).values_list("interests", flat=True)
    counter: Counter[str] = Counter()
    active = 0
    for interests in active_interests:
        active += 1
        counter.update(interests or [])
    return SubscriberStats(
        total=total,
        active=active,
        inactive=total - active,
        by_interest=dict(counter.most_common()),
    )
