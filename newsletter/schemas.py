from __future__ import annotations

from datetime import datetime

from ninja import Schema


class SubscribeIn(Schema):
    email: str
    interests: list[str] = []


class UnsubscribeIn(Schema):
    email: str


class SubscriberOut(Schema):
    id: int
    email: str
    interests: list[str] = []
    is_active: bool
    source: str
    preferences: dict[str, bool] = {}
    subscribed_at: datetime
    unsubscribed_at: datetime | None = None


class PreferencesIn(Schema):
    preferences: dict[str, bool]


class SubscriberStatsOut(Schema):
    total: int
    active: int
    inactive: int
    by_interest: dict[str, int] = {}
