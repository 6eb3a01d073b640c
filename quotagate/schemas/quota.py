from __future__ import annotations

from pydantic import BaseModel, Field


class QuotaStatus(BaseModel):
    """Quota telemetry for the current request."""

    metered: bool = Field(..., description="Whether the request was counted")
    limited: bool = Field(False, description="Whether the request was denied")
    limit: int | None = Field(None, description="Requests allowed per window")
    remaining: int | None = Field(None, description="Requests left in the window")
    reset_at: int | None = Field(None, description="UNIX time when the window resets")
