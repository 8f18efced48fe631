"""Shared schema exports."""

from .account import AccountStatus
from .registration import REGISTRATION_TOPIC, RegistrationEvent

__all__ = [
    "AccountStatus",
    "REGISTRATION_TOPIC",
    "RegistrationEvent",
]
