from __future__ import annotations

from datetime import datetime

from ninja import Schema


class ReferralIn(Schema):
    code: str


class ReferralOut(Schema):
    id: int
    referred_email: str
    status: str
    reward_points: int
    created_at: datetime
    completed_at: datetime | None = None


class ReferralStatsOut(Schema):
    total: int
    pending: int
    completed: int
    earnings: int


class MyReferralsOut(Schema):
    code: str
    share_url: str
    share_text: str
    stats: ReferralStatsOut
    referrals: list[ReferralOut]
