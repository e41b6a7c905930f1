from __future__ import annotations

from dataclasses import asdict

from ninja import Router
from ninja.errors import HttpError

from accounts.auth import JWTAuth

from .models import Referral
from .schemas import MyReferralsOut, ReferralIn, ReferralOut
from .services import (
    ReferralError,
    ensure_profile,
    referral_stats,
    register_referral,
    share_link,
    share_text,
)

router = Router(tags=["referrals"])
_auth = JWTAuth()


@router.get("/me", response=MyReferralsOut, auth=_auth)
def my_referrals(request):
    user = request.auth
    profile = ensure_profile(user=user)
    return {
        "code": profile.code,
        "share_url": share_link(profile.code),
        "share_text": share_text(profile.code),
        "stats": asdict(referral_stats(user=user)),
        "referrals": list(Referral.objects.filter(referrer=user).order_by("-created_at")),
    }


@router.post("/register", response=ReferralOut, auth=_auth)
def register(request, payload: ReferralIn):
    try:
        return register_referral(referred_user=request.auth, code=payload.code)
    except ReferralError as e:
        raise HttpError(400, str(e))
