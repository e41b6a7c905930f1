from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ninja import Schema


class ReportIn(Schema):
    content_type: str
    content_id: str = ""
    reason: str
    description: str = ""


class ReportOut(Schema):
    id: int
    content_type: str
    content_id: str
    reporter_name: str = ""
    reason: str
    description: str = ""
    status: str
    priority: str
    auto_flagged: bool
    moderator_notes: str = ""
    created_at: datetime
    resolved_at: datetime | None = None


class CheckIn(Schema):
    text: str
    content_type: str = "comment"
    content_id: str = ""


class CheckOut(Schema):
    flagged: bool
    reason: str = ""
    banned_words: list[str] = []
    report_id: int | None = None


class ResolveIn(Schema):
    action: str
    notes: str = ""


class StatsOut(Schema):
    total_reports: int
    pending_reports: int
    monthly_resolved: int
    resolution_rate: Decimal


class BanIn(Schema):
    user_id: int
    reason: str
    days: int | None = None


class BanOut(Schema):
    id: int
    user_id: int
    reason: str
    expires_at: datetime | None = None
    is_active: bool
    created_at: datetime
