from __future__ import annotations

from fastapi import APIRouter, Request

from quotagate.schemas.quota import QuotaStatus

router = APIRouter(tags=["Quota"])


@router.get("/quota", response_model=QuotaStatus)
def quota_status(request: Request) -> QuotaStatus:
    """Report the rate limit decision made for this very request.

    Calling this endpoint consumes one unit like any other metered route.
    """

    decision = getattr(request.state, "rate_limit", None)
    if decision is None:
        return QuotaStatus(metered=False)

    return QuotaStatus(
        metered=True,
        limited=decision.limited,
        limit=decision.limit,
        remaining=decision.remaining,
        reset_at=decision.reset_at,
    )
