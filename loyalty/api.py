from __future__ import annotations

from dataclasses import asdict

from django.utils import timezone
from ninja import Router

from accounts.auth import JWTAuth

from .models import LoyaltyAccount
from .schemas import LevelOut, LoyaltyOut
from .services import LEVELS, level_for_points, next_level_for_points

router = Router(tags=["loyalty"])
_auth = JWTAuth()


@router.get("/levels", response=list[LevelOut])
def levels(request):
    return [asdict(lvl) for lvl in sorted(LEVELS, key=lambda lvl: lvl.min_points)]


@router.get("/me", response=LoyaltyOut, auth=_auth)
def my_loyalty(request, history_limit: int = 20):
    now = timezone.now()
    account = LoyaltyAccount.objects.filter(user=request.auth).first()
    points = account.effective_points(now=now) if account else 0
    level = level_for_points(points)
    nxt = next_level_for_points(points)

    history = []
    if account is not None:
        history = [
            {
                "points": e.points,
                "reason": e.reason,
                "order_id": e.order_id,
                "created_at": e.created_at,
            }
            for e in account.entries.all()[: max(1, min(int(history_limit), 100))]
        ]

    return {
        "points": points,
        "expires_at": account.expires_at if account else None,
        "expired": bool(account and account.is_expired(now=now)),
        "level": asdict(level),
        "next_level": asdict(nxt) if nxt else None,
        "points_to_next_level": (nxt.min_points - points) if nxt else None,
        "history": history,
    }
