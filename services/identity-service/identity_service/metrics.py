"""Prometheus counters for the identity workflows."""

from __future__ import annotations

from prometheus_client import Counter

REGISTRATIONS = Counter(
    "identity_registrations_total",
    "Registration attempts by outcome.",
    ["outcome"],
)
LOGINS = Counter(
    "identity_logins_total",
    "Login attempts by outcome.",
    ["outcome"],
)
EMAIL_VERIFICATIONS = Counter(
    "identity_email_verifications_total",
    "Email verification attempts by outcome.",
    ["outcome"],
)
EVENTS_PUBLISHED = Counter(
    "identity_registration_events_total",
    "Registration events handed to the broker, by outcome.",
    ["outcome"],
)
