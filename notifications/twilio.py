from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import requests
from django.conf import settings


@dataclass(frozen=True)
class TwilioConfig:
    base_url: str
    account_sid: str
    auth_token: str
    from_number: str

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)


class TwilioApiError(RuntimeError):
    pass


def _get_cfg() -> TwilioConfig:
    return TwilioConfig(
        base_url=str(
            getattr(settings, "TWILIO_API_BASE_URL", "https://api.twilio.com/2010-04-01")
        ).rstrip("/"),
        account_sid=str(getattr(settings, "TWILIO_ACCOUNT_SID", "") or "").strip(),
        auth_token=str(getattr(settings, "TWILIO_AUTH_TOKEN", "") or "").strip(),
        from_number=str(getattr(settings, "TWILIO_FROM_NUMBER", "") or "").strip(),
    )


def whatsapp_address(number: str) -> str:
    """`5491122334455` / `+54 9 11...` -> `whatsapp:+5491122334455`."""
    n = (number or "").strip()
    if n.startswith("whatsapp:"):
        return n
    digits = "".join(ch for ch in n if ch.isdigit())
    return f"whatsapp:+{digits}"


class TwilioClient:
    def __init__(self, cfg: TwilioConfig | None = None) -> None:
        self.cfg = cfg or _get_cfg()

    def send_whatsapp(self, *, to: str, body: str) -> dict[str, Any]:
        if not self.cfg.is_configured:
            raise TwilioApiError("Twilio not configured")

        url = f"{self.cfg.base_url}/Accounts/{self.cfg.account_sid}/Messages.json"
        try:
            r = requests.post(
                url,
                data={
                    "To": whatsapp_address(to),
                    "From": whatsapp_address(self.cfg.from_number),
                    "Body": body,
                },
                auth=(self.cfg.account_sid, self.cfg.auth_token),
                timeout=20,
            )
        except requests.RequestException as e:
            raise TwilioApiError(f"Twilio request failed: {e}") from e

        if r.status_code >= 400:
            try:
                detail = (r.json() or {}).get("message") or r.text[:300]
            except ValueError:
                detail = r.text[:300]
            raise TwilioApiError(f"Twilio send failed: {r.status_code} {detail}")

        try:
            data = r.json()
        except ValueError as e:
            raise TwilioApiError("Twilio send: unexpected response") from e
        if not isinstance(data, dict) or not data.get("sid"):
            raise TwilioApiError("Twilio send: unexpected response")
        return data
