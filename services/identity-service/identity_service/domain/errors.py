"""Typed outcomes raised by the identity workflows and the account store."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    email_taken = "email_taken"
    invalid_credentials = "invalid_credentials"
    invalid_or_expired_token = "invalid_or_expired_token"
    internal = "internal"


class IdentityError(Exception):
    """Base class for the closed set of domain failures.

    ``str(exc)`` is safe to show to clients; server-side detail belongs in logs.
    """

    code: ErrorCode
    public_message: str

    def __init__(self) -> None:
        super().__init__(self.public_message)


class EmailTaken(IdentityError):
    code = ErrorCode.email_taken
    public_message = "email already taken"


class InvalidCredentials(IdentityError):
    code = ErrorCode.invalid_credentials
    public_message = "invalid credentials"


class InvalidOrExpiredToken(IdentityError):
    code = ErrorCode.invalid_or_expired_token
    public_message = "invalid or expired token"


class InternalError(IdentityError):
    code = ErrorCode.internal
    public_message = "internal error"


class DuplicateEmail(Exception):
    """Raised by an account store when the email is already registered."""


class AccountNotFound(Exception):
    """Raised by an account store when a lookup matches no account."""


class AccountStoreError(Exception):
    """Raised by an account store when the backing storage fails."""
