"""Utilities for issuing and validating application JWTs."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable

import jwt

from shared_schemas import AccountStatus

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["iss", "sub", "jti", "iat", "exp", "account_id", "email", "status"]


@dataclass(frozen=True, slots=True)
class TokenSettings:
    """Signing material and lifetime for access tokens."""

    secret: str
    issuer: str
    access_ttl_seconds: int


@dataclass(frozen=True, slots=True)
class AccessClaims:
    """Verified payload of an access token."""

    account_id: str
    email: str
    status: AccountStatus
    issuer: str
    subject: str
    token_id: str
    issued_at: int
    expires_at: int

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.active


class TokenInvalid(Exception):
    """Raised for any token that must not be accepted.

    ``reason`` is for server-side logs only; the message is always the same.
    """

    def __init__(self, reason: str) -> None:
        super().__init__("invalid token")
        self.reason = reason


class AccessTokenSigner:
    """Issues and verifies HS256 access tokens for a single provisioned secret."""

    def __init__(self, settings: TokenSettings, clock: Callable[[], float] = time.time) -> None:
        self._settings = settings
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._settings.access_ttl_seconds

    def issue(self, *, account_id: str, email: str, status: AccountStatus) -> tuple[str, str]:
        """Create a signed JWT representing an authenticated account.

        Parameters
        ----------
        account_id:
            Account identifier, also embedded in the ``sub`` claim.
        email:
            Normalised email address of the account.
        status:
            Account status at issuance time; downstream services gate writes on it.

        Returns
        -------
        tuple[str, str]
            The encoded JWT and its unique token id (``jti``).

        Notes
        -----
        ``iat`` is the clock truncated to whole seconds and ``exp`` is exactly
        ``iat`` plus the TTL, so a token never outlives its TTL; it may expire
        up to one second early.
        """
        now = int(self._clock())
        token_id = str(uuid.uuid4())
        payload: dict[str, Any] = {
            "iss": self._settings.issuer,
            "sub": account_id,
            "jti": token_id,
            "iat": now,
            "exp": now + self._settings.access_ttl_seconds,
            "account_id": account_id,
            "email": email,
            "status": AccountStatus(status).value,
        }
        token = jwt.encode(payload, self._settings.secret, algorithm=ALGORITHM)
        return token, token_id

    def verify(self, token: str) -> AccessClaims:
        """Decode and verify a JWT returning its claims.

        Parameters
        ----------
        token:
            Encoded JWT issued by this service.

        Returns
        -------
        AccessClaims
            The decoded claims if signature, algorithm, issuer and expiry checks succeed.

        Raises
        ------
        TokenInvalid
            When the token is forged, malformed, signed with another algorithm,
            issued by someone else, or at/after its expiry instant.
        """
        try:
            payload = jwt.decode(
                token,
                self._settings.secret,
                algorithms=[ALGORITHM],
                issuer=self._settings.issuer,
                # expiry is checked below against the injected clock
                options={
                    "require": REQUIRED_CLAIMS,
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except jwt.InvalidAlgorithmError as exc:
            raise TokenInvalid("unexpected signing algorithm") from exc
        except jwt.PyJWTError as exc:
            raise TokenInvalid(f"rejected by decoder: {exc}") from exc

        try:
            claims = AccessClaims(
                account_id=str(payload["account_id"]),
                email=str(payload["email"]),
                status=AccountStatus(payload["status"]),
                issuer=str(payload["iss"]),
                subject=str(payload["sub"]),
                token_id=str(payload["jti"]),
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
            )
        except (TypeError, ValueError) as exc:
            raise TokenInvalid("malformed claims") from exc

        if claims.expires_at <= claims.issued_at:
            raise TokenInvalid("expiry not after issuance")
        if self._clock() >= claims.expires_at:
            raise TokenInvalid("expired")
        return claims
