from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check. Exempt from rate limiting and never touches the store."""

    return {"status": "ok"}
