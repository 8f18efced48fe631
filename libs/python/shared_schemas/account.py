"""Account-related DTOs shared across services."""

from __future__ import annotations

from enum import Enum


class AccountStatus(str, Enum):
    pending = "PENDING"
    active = "ACTIVE"
