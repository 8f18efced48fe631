"""FastAPI dependencies enforcing bearer-token authorization.

Services that accept identity-service tokens mount these on their routes:
``require_claims`` for any authenticated caller, ``require_active`` for
operations reserved to accounts that completed email verification.
"""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .tokens import AccessClaims, AccessTokenSigner, TokenInvalid

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

_UNAUTHORIZED_HEADERS = {"WWW-Authenticate": "Bearer"}


def get_token_verifier(request: Request) -> AccessTokenSigner:
    """Resolve the token verifier stored on the FastAPI application state."""
    verifier: AccessTokenSigner = request.app.state.token_signer
    return verifier


def require_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    verifier: AccessTokenSigner = Depends(get_token_verifier),
) -> AccessClaims:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="missing or malformed authorization header",
            headers=_UNAUTHORIZED_HEADERS,
        )
    try:
        return verifier.verify(credentials.credentials)
    except TokenInvalid as exc:
        logger.info("bearer token rejected: %s", exc.reason)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid token",
            headers=_UNAUTHORIZED_HEADERS,
        ) from exc


def require_active(claims: AccessClaims = Depends(require_claims)) -> AccessClaims:
    if not claims.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="account not active")
    return claims
