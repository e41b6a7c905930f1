from __future__ import annotations

from ninja import Schema


class RegisterIn(Schema):
    email: str
    password: str
    first_name: str | None = None
    last_name: str | None = None
    phone_number: str | None = None
    referral_code: str | None = None


class LoginIn(Schema):
    email: str
    password: str


class RefreshIn(Schema):
    refresh: str | None = None


class StatusOut(Schema):
    status: str


class MeOut(Schema):
    id: int
    email: str
    first_name: str
    last_name: str
    phone_number: str
    is_staff: bool


class MeUpdateIn(Schema):
    first_name: str | None = None
    last_name: str | None = None
    phone_number: str | None = None
