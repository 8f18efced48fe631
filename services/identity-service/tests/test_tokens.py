from __future__ import annotations

import base64
import json

import jwt
import pytest

from identity_service.security.tokens import AccessTokenSigner, TokenInvalid, TokenSettings
from shared_schemas import AccountStatus


def _b64(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _payload(token_settings: TokenSettings, now: int, **overrides) -> dict:
    payload = {
        "iss": token_settings.issuer,
        "sub": "acc-1",
        "jti": "jti-1",
        "iat": now,
        "exp": now + token_settings.access_ttl_seconds,
        "account_id": "acc-1",
        "email": "alice@x.com",
        "status": "ACTIVE",
    }
    payload.update(overrides)
    return payload


def test_issue_then_verify_round_trips_claims(signer, token_settings, clock):
    token, token_id = signer.issue(account_id="acc-1", email="alice@x.com", status=AccountStatus.pending)

    claims = signer.verify(token)
    assert claims.account_id == "acc-1"
    assert claims.email == "alice@x.com"
    assert claims.status == AccountStatus.pending
    assert claims.subject == "acc-1"
    assert claims.issuer == token_settings.issuer
    assert claims.token_id == token_id
    assert claims.issued_at == int(clock.now)
    assert claims.expires_at == claims.issued_at + token_settings.access_ttl_seconds


def test_each_token_gets_a_unique_id(signer):
    _, first = signer.issue(account_id="acc-1", email="a@x.com", status=AccountStatus.active)
    _, second = signer.issue(account_id="acc-1", email="a@x.com", status=AccountStatus.active)
    assert first != second


def test_expiry_boundary(signer, token_settings, clock):
    token, _ = signer.issue(account_id="acc-1", email="a@x.com", status=AccountStatus.active)
    issued = clock.now

    clock.now = issued + token_settings.access_ttl_seconds - 0.5
    assert signer.verify(token).account_id == "acc-1"

    clock.now = issued + token_settings.access_ttl_seconds
    with pytest.raises(TokenInvalid) as excinfo:
        signer.verify(token)
    assert excinfo.value.reason == "expired"

    clock.now = issued + token_settings.access_ttl_seconds + 0.5
    with pytest.raises(TokenInvalid):
        signer.verify(token)


def test_rejects_token_signed_with_other_secret(signer, token_settings, clock):
    other = AccessTokenSigner(
        TokenSettings(
            secret="another-secret-value-0123456789abcdef",
            issuer=token_settings.issuer,
            access_ttl_seconds=token_settings.access_ttl_seconds,
        ),
        clock=clock,
    )
    token, _ = other.issue(account_id="acc-1", email="a@x.com", status=AccountStatus.active)

    with pytest.raises(TokenInvalid) as excinfo:
        signer.verify(token)
    assert str(excinfo.value) == "invalid token"


def test_rejects_tampered_payload(signer):
    token, _ = signer.issue(account_id="acc-1", email="a@x.com", status=AccountStatus.pending)
    header, body, signature = token.split(".")
    forged_payload = json.loads(base64.urlsafe_b64decode(body + "=" * (-len(body) % 4)))
    forged_payload["status"] = "ACTIVE"

    with pytest.raises(TokenInvalid):
        signer.verify(f"{header}.{_b64(forged_payload)}.{signature}")


def test_rejects_unsigned_none_algorithm(signer, token_settings, clock):
    payload = _payload(token_settings, int(clock.now))
    token = f"{_b64({'alg': 'none', 'typ': 'JWT'})}.{_b64(payload)}."

    with pytest.raises(TokenInvalid):
        signer.verify(token)


def test_rejects_other_hmac_algorithm_with_same_secret(signer, token_settings, clock):
    payload = _payload(token_settings, int(clock.now))
    token = jwt.encode(payload, token_settings.secret, algorithm="HS512")

    with pytest.raises(TokenInvalid) as excinfo:
        signer.verify(token)
    assert excinfo.value.reason == "unexpected signing algorithm"


def test_rejects_foreign_issuer(signer, token_settings, clock):
    payload = _payload(token_settings, int(clock.now), iss="someone-else")
    token = jwt.encode(payload, token_settings.secret, algorithm="HS256")

    with pytest.raises(TokenInvalid):
        signer.verify(token)


@pytest.mark.parametrize("missing", ["exp", "status", "account_id", "jti"])
def test_rejects_missing_claims(signer, token_settings, clock, missing):
    payload = _payload(token_settings, int(clock.now))
    del payload[missing]
    token = jwt.encode(payload, token_settings.secret, algorithm="HS256")

    with pytest.raises(TokenInvalid):
        signer.verify(token)


def test_rejects_unknown_status(signer, token_settings, clock):
    payload = _payload(token_settings, int(clock.now), status="SUSPENDED")
    token = jwt.encode(payload, token_settings.secret, algorithm="HS256")

    with pytest.raises(TokenInvalid) as excinfo:
        signer.verify(token)
    assert excinfo.value.reason == "malformed claims"


@pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c", "eyJhbGciOiJIUzI1NiJ9.e30."])
def test_rejects_malformed_tokens(signer, token):
    with pytest.raises(TokenInvalid):
        signer.verify(token)


def test_fractional_issue_time_never_extends_lifetime(signer, token_settings, clock):
    clock.now = 1_700_000_000.9
    token, _ = signer.issue(account_id="acc-1", email="a@x.com", status=AccountStatus.active)

    claims = signer.verify(token)
    assert claims.issued_at == 1_700_000_000
    assert claims.expires_at == claims.issued_at + token_settings.access_ttl_seconds

    clock.now = float(claims.expires_at)
    assert clock.now < 1_700_000_000.9 + token_settings.access_ttl_seconds
    with pytest.raises(TokenInvalid):
        signer.verify(token)
