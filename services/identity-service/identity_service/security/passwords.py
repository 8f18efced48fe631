"""Password hashing backed by bcrypt."""

from __future__ import annotations

import base64
import hashlib

import bcrypt

DEFAULT_ROUNDS = 12


class HashingError(Exception):
    """Raised when a digest cannot be produced."""


class PasswordHasher:
    """Salted, deliberately slow one-way hashing of user passwords.

    bcrypt only reads the first 72 bytes of its input, so passwords are
    pre-hashed with SHA-256 and base64 encoded (44 bytes) before being handed
    over. Every byte of the original password therefore affects the digest.
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self._rounds = rounds
        self._dummy_digest: bytes | None = None

    @staticmethod
    def _prepare(plaintext: str) -> bytes:
        digest = hashlib.sha256(plaintext.encode("utf-8")).digest()
        return base64.b64encode(digest)

    def hash(self, plaintext: str) -> str:
        """Return a bcrypt digest with an embedded per-call salt."""
        try:
            salt = bcrypt.gensalt(rounds=self._rounds)
            return bcrypt.hashpw(self._prepare(plaintext), salt).decode("ascii")
        except (ValueError, TypeError, OSError) as exc:
            raise HashingError("password hashing failed") from exc

    def verify(self, digest: str, plaintext: str) -> bool:
        """Return ``True`` when ``plaintext`` matches ``digest``.

        A corrupt or foreign digest yields ``False`` rather than an error, so
        callers cannot tell it apart from a wrong password.
        """
        try:
            return bcrypt.checkpw(self._prepare(plaintext), digest.encode("ascii"))
        except (ValueError, TypeError):
            return False

    def verify_dummy(self, plaintext: str) -> None:
        """Spend one verification against a throwaway digest."""
        if self._dummy_digest is None:
            self._dummy_digest = bcrypt.hashpw(b"dummy-password", bcrypt.gensalt(rounds=self._rounds))
        try:
            bcrypt.checkpw(self._prepare(plaintext), self._dummy_digest)
        except (ValueError, TypeError):
            return
