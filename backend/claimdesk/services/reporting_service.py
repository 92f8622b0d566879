# Overview: Read-only claim statistics for the dashboard.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Claim, User
from . import permission_service
from .lifecycle_service import ALL_STATUSES
from claimdesk.time_utils import days_ago


STATS_WINDOW_DAYS = 30
TOP_CATEGORY_LIMIT = 5


def _money(value) -> float:
    return float(Decimal(value or 0).quantize(Decimal("0.01")))


def claim_stats(actor: User, *, window_days: int = STATS_WINDOW_DAYS) -> dict:
    """
    Rolling-window claim statistics.

    Scope: every claim for VIEW_ALL_CLAIMS holders, otherwise the caller's
    own claims. Window is on created_at.

    Returns counts per status plus total and total_amount; VIEW_CLAIM_REPORTS
    holders also get the top categories by amount.
    """
    since = days_ago(window_days)

    scope = [Claim.created_at >= since]
    if not permission_service.user_has_capability(actor, "VIEW_ALL_CLAIMS"):
        scope.append(Claim.user_id == actor.id)

    rows = (
        db.session.query(Claim.status, func.count(Claim.id), func.sum(Claim.amount))
        .filter(*scope)
        .group_by(Claim.status)
        .all()
    )

    result = {status: 0 for status in ALL_STATUSES}
    total = 0
    total_amount = Decimal("0")
    for status, count, amount in rows:
        result[status] = count
        total += count
        total_amount += Decimal(amount or 0)

    result["total"] = total
    result["total_amount"] = _money(total_amount)
    result["window_days"] = window_days

    categories = []
    if permission_service.user_has_capability(actor, "VIEW_CLAIM_REPORTS"):
        amount_sum = func.sum(Claim.amount)
        top = (
            db.session.query(Claim.category, func.count(Claim.id), amount_sum)
            .filter(*scope)
            .group_by(Claim.category)
            .order_by(amount_sum.desc())
            .limit(TOP_CATEGORY_LIMIT)
            .all()
        )
        categories = [
            {"category": category, "count": count, "amount": _money(amount)}
            for category, count, amount in top
        ]
    result["categories"] = categories

    return result
