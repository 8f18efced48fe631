"""Identity workflows: registration, login and email verification."""

from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pydantic import ValidationError

from shared_schemas import AccountStatus, RegistrationEvent

from .account import Account, normalize_email
from .contracts import AccountStore, EventPublisher, LoginInput, RegisterAccountInput
from .errors import (
    AccountNotFound,
    AccountStoreError,
    DuplicateEmail,
    EmailTaken,
    InternalError,
    InvalidCredentials,
    InvalidOrExpiredToken,
)
from .. import metrics
from ..events.publisher import PublishError
from ..security.passwords import HashingError, PasswordHasher
from ..security.tokens import AccessTokenSigner

logger = logging.getLogger(__name__)

VERIFICATION_TOKEN_BYTES = 32


@dataclass(slots=True)
class RegistrationResult:
    account_id: str
    status: AccountStatus


@dataclass(slots=True)
class LoginResult:
    """Access token plus the identity fields returned to the client."""

    access_token: str
    token_id: str
    expires_in: int
    account_id: str
    email: str
    status: AccountStatus


class VerificationOutcome(str, Enum):
    activated = "activated"
    already_active = "already_active"


class IdentityService:
    """Account lifecycle orchestration over the store, hasher, signer and publisher."""

    def __init__(
        self,
        store: AccountStore,
        hasher: PasswordHasher,
        signer: AccessTokenSigner,
        publisher: EventPublisher,
        *,
        registration_topic: str,
        verify_base_url: str,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._signer = signer
        self._publisher = publisher
        self._registration_topic = registration_topic
        self._verify_base_url = verify_base_url

    def register(self, payload: RegisterAccountInput) -> RegistrationResult:
        """Create a PENDING account and announce it for email verification.

        The account write and the event publish are two independent steps. A
        publish failure is logged and the registration still succeeds: the
        account exists and its stored token stays usable until consumed.
        """
        email = normalize_email(payload.email)
        try:
            password_hash = self._hasher.hash(payload.password)
        except HashingError as exc:
            logger.error("registration failed: password hashing error", exc_info=exc)
            metrics.REGISTRATIONS.labels(outcome="internal").inc()
            raise InternalError() from exc

        now = datetime.now(timezone.utc)
        account = Account(
            account_id=str(uuid.uuid4()),
            name=payload.name,
            surname=payload.surname,
            email=email,
            password_hash=password_hash,
            status=AccountStatus.pending,
            verification_token=secrets.token_urlsafe(VERIFICATION_TOKEN_BYTES),
            created_at=now,
            updated_at=now,
        )
        try:
            event = self._registration_event(account)
        except ValidationError as exc:
            logger.error("registration failed: registration event rejected", exc_info=exc)
            metrics.REGISTRATIONS.labels(outcome="internal").inc()
            raise InternalError() from exc

        try:
            account = self._store.create(account)
        except DuplicateEmail as exc:
            logger.info("registration rejected: email already registered")
            metrics.REGISTRATIONS.labels(outcome="email_taken").inc()
            raise EmailTaken() from exc
        except AccountStoreError as exc:
            logger.error("registration failed: account store error", exc_info=exc)
            metrics.REGISTRATIONS.labels(outcome="internal").inc()
            raise InternalError() from exc

        self._publish_registration(account, event)
        metrics.REGISTRATIONS.labels(outcome="created").inc()
        logger.info("account %s registered with status %s", account.account_id, account.status.value)
        return RegistrationResult(account_id=account.account_id, status=account.status)

    def _registration_event(self, account: Account) -> RegistrationEvent:
        return RegistrationEvent(
            account_id=account.account_id,
            email=account.email,
            name=account.name,
            verification_token=account.verification_token,
            base_url=self._verify_base_url,
        )

    def _publish_registration(self, account: Account, event: RegistrationEvent) -> None:
        # the account is already stored; nothing raised here may fail registration
        try:
            self._publisher.send(self._registration_topic, account.email, event)
        except PublishError as exc:
            metrics.EVENTS_PUBLISHED.labels(outcome="failed").inc()
            logger.warning(
                "registration event for account %s not published; verification email will not be sent",
                account.account_id,
                exc_info=exc,
            )
            return
        except Exception as exc:
            metrics.EVENTS_PUBLISHED.labels(outcome="failed").inc()
            logger.error(
                "registration event for account %s not published: unexpected publisher error",
                account.account_id,
                exc_info=exc,
            )
            return
        metrics.EVENTS_PUBLISHED.labels(outcome="published").inc()

    def login(self, payload: LoginInput) -> LoginResult:
        """Exchange credentials for an access token.

        Unknown email and wrong password raise the same ``InvalidCredentials``.
        PENDING accounts may log in; their status travels in the token claims.
        """
        email = normalize_email(payload.email)
        try:
            account = self._store.get_by_email(email)
        except AccountNotFound as exc:
            self._hasher.verify_dummy(payload.password)
            logger.info("login rejected: unknown email")
            metrics.LOGINS.labels(outcome="invalid_credentials").inc()
            raise InvalidCredentials() from exc
        except AccountStoreError as exc:
            logger.error("login failed: account store error", exc_info=exc)
            metrics.LOGINS.labels(outcome="internal").inc()
            raise InternalError() from exc

        if not self._hasher.verify(account.password_hash, payload.password):
            logger.info("login rejected: password mismatch for account %s", account.account_id)
            metrics.LOGINS.labels(outcome="invalid_credentials").inc()
            raise InvalidCredentials()

        token, token_id = self._signer.issue(
            account_id=account.account_id,
            email=account.email,
            status=account.status,
        )
        metrics.LOGINS.labels(outcome="success").inc()
        return LoginResult(
            access_token=token,
            token_id=token_id,
            expires_in=self._signer.ttl_seconds,
            account_id=account.account_id,
            email=account.email,
            status=account.status,
        )

    def verify_email(self, token: str) -> VerificationOutcome:
        """Activate the account owning ``token``.

        A token whose account is already ACTIVE (double click, stale retry)
        reports ``already_active`` instead of failing.
        """
        if not token:
            metrics.EMAIL_VERIFICATIONS.labels(outcome="invalid_token").inc()
            raise InvalidOrExpiredToken()
        try:
            account = self._store.get_by_verification_token(token)
            if account.is_active:
                outcome = VerificationOutcome.already_active
            elif self._store.activate(account.account_id):
                outcome = VerificationOutcome.activated
            else:
                outcome = VerificationOutcome.already_active
        except AccountNotFound as exc:
            logger.info("email verification rejected: unknown token")
            metrics.EMAIL_VERIFICATIONS.labels(outcome="invalid_token").inc()
            raise InvalidOrExpiredToken() from exc
        except AccountStoreError as exc:
            logger.error("email verification failed: account store error", exc_info=exc)
            metrics.EMAIL_VERIFICATIONS.labels(outcome="internal").inc()
            raise InternalError() from exc

        metrics.EMAIL_VERIFICATIONS.labels(outcome=outcome.value).inc()
        logger.info("email verification for account %s: %s", account.account_id, outcome.value)
        return outcome
