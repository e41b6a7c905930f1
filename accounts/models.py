from __future__ import annotations

import re

from django.contrib.auth.base_user import AbstractBaseUser, BaseUserManager
from django.contrib.auth.models import PermissionsMixin
from django.db import models

# Argentine mobile numbers in international format without "+": 549 + area + number.
AR_MOBILE_RE = re.compile(r"^549\d{10}$")


def normalize_phone(value: str | None) -> str:
    """Strip everything but digits (spaces, dashes, a leading '+')."""
    return re.sub(r"\D", "", value or "")


def is_valid_ar_mobile(value: str | None) -> bool:
    return bool(AR_MOBILE_RE.match(normalize_phone(value)))


class UserManager(BaseUserManager):
    def create_user(self, email: str, password: str | None = None, **extra_fields):
        if not email:
            raise ValueError("Email is required")
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email: str, password: str | None = None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("is_active", True)
        return self.create_user(email=email, password=password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    email = models.EmailField(unique=True)
    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)
    phone_number = models.CharField(
        max_length=20, blank=True, default="", help_text="WhatsApp number, e.g. 5491122334455"
    )

    is_active = models.BooleanField(default=True)
    # Staff users are the store operators (order confirmation, moderation, coupons).
    is_staff = models.BooleanField(default=False)

    date_joined = models.DateTimeField(auto_now_add=True)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS: list[str] = []

    def __str__(self) -> str:
        return self.email

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.email.split("@", 1)[0]
