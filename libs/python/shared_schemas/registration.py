"""Registration event contract published by the identity service."""

from __future__ import annotations

from datetime import datetime, timezone
from pydantic import BaseModel, EmailStr, Field

REGISTRATION_TOPIC = "user.registered"


class RegistrationEvent(BaseModel):
    """Emitted once per new account; keyed by recipient email on the topic.

    The verification token mirrors the one stored against the account when the
    event was published. The account store stays authoritative.
    """

    account_id: str
    email: EmailStr
    name: str
    verification_token: str = Field(..., min_length=1)
    base_url: str = Field(..., min_length=1)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str = "v1"
