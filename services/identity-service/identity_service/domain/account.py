from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from shared_schemas import AccountStatus


def normalize_email(email: str) -> str:
    """Canonical form used for uniqueness checks and lookups."""
    return email.strip().lower()


@dataclass(slots=True)
class Account:
    """Aggregate root for a registered user identity."""

    account_id: str
    name: str
    surname: str
    email: str
    password_hash: str
    status: AccountStatus
    verification_token: str | None
    created_at: datetime
    updated_at: datetime
    verified_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.active
