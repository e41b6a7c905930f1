from __future__ import annotations

from datetime import datetime

from ninja import Schema


class LevelOut(Schema):
    code: str
    name: str
    min_points: int
    discount_percent: int


class PointsEntryOut(Schema):
    points: int
    reason: str
    order_id: int | None = None
    created_at: datetime


class LoyaltyOut(Schema):
    points: int
    expires_at: datetime | None = None
    expired: bool
    level: LevelOut
    next_level: LevelOut | None = None
    points_to_next_level: int | None = None
    history: list[PointsEntryOut]
