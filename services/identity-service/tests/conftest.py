from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from identity_service.api import routes
from identity_service.domain.account import Account
from identity_service.domain.errors import AccountNotFound, DuplicateEmail
from identity_service.domain.service import IdentityService
from identity_service.events.publisher import PublishError
from identity_service.security.passwords import PasswordHasher
from identity_service.security.rate_limit import SlidingWindowRateLimiter
from identity_service.security.tokens import AccessTokenSigner, TokenSettings
from shared_schemas import AccountStatus

TEST_SECRET = "test-secret-key-0123456789abcdef-0123"
TEST_ISSUER = "identity-service-test"
TEST_TTL_SECONDS = 900
VERIFY_BASE_URL = "http://identity.test/v1"
TOPIC = "user.registered"


class FakeAccountStore:
    """In-memory store mimicking the Postgres repository contract."""

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._by_email: dict[str, str] = {}
        self._lock = threading.Lock()
        self.fail_with: Exception | None = None

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def create(self, account: Account) -> Account:
        with self._lock:
            self._maybe_fail()
            if account.email in self._by_email:
                raise DuplicateEmail(account.email)
            self._accounts[account.account_id] = replace(account)
            self._by_email[account.email] = account.account_id
        return replace(account)

    def get_by_email(self, email: str) -> Account:
        with self._lock:
            self._maybe_fail()
            account_id = self._by_email.get(email)
            if account_id is None:
                raise AccountNotFound(email)
            return replace(self._accounts[account_id])

    def get_by_verification_token(self, token: str) -> Account:
        with self._lock:
            self._maybe_fail()
            for account in self._accounts.values():
                if account.verification_token == token:
                    return replace(account)
        raise AccountNotFound(token)

    def activate(self, account_id: str) -> bool:
        with self._lock:
            self._maybe_fail()
            account = self._accounts.get(account_id)
            if account is None:
                raise AccountNotFound(account_id)
            if account.status == AccountStatus.active:
                return False
            now = datetime.now(timezone.utc)
            account.status = AccountStatus.active
            account.verified_at = now
            account.updated_at = now
            return True

    def count(self) -> int:
        return len(self._accounts)


class RecordingPublisher:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, object]] = []

    def send(self, topic: str, key: str, payload: object) -> str:
        self.sent.append((topic, key, payload))
        return f"{len(self.sent)}-0"


class FailingPublisher:
    def __init__(self) -> None:
        self.attempts = 0

    def send(self, topic: str, key: str, payload: object) -> str:
        self.attempts += 1
        raise PublishError(f"broker unavailable for {topic}")


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    # minimum bcrypt cost keeps the suite fast
    return PasswordHasher(rounds=4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_settings() -> TokenSettings:
    return TokenSettings(secret=TEST_SECRET, issuer=TEST_ISSUER, access_ttl_seconds=TEST_TTL_SECONDS)


@pytest.fixture
def signer(token_settings: TokenSettings, clock: FakeClock) -> AccessTokenSigner:
    return AccessTokenSigner(token_settings, clock=clock)


@pytest.fixture
def store() -> FakeAccountStore:
    return FakeAccountStore()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def failing_publisher() -> FailingPublisher:
    return FailingPublisher()


@pytest.fixture
def make_service(store, hasher, signer, publisher):
    def _make(event_publisher=None) -> IdentityService:
        return IdentityService(
            store,
            hasher,
            signer,
            event_publisher or publisher,
            registration_topic=TOPIC,
            verify_base_url=VERIFY_BASE_URL,
        )

    return _make


@pytest.fixture
def service(make_service) -> IdentityService:
    return make_service()


@pytest.fixture
def api_app(service, signer) -> FastAPI:
    app = FastAPI()
    app.include_router(routes.router)
    app.state.identity_service = service
    app.state.token_signer = signer
    app.state.rate_limiter = SlidingWindowRateLimiter(max_requests=100, window_seconds=60)
    return app


@pytest.fixture
def api_client(api_app):
    """Provide a FastAPI test client with isolated state."""
    with TestClient(api_app) as client:
        yield client
