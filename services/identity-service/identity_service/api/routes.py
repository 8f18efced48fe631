"""HTTP route definitions for the identity service."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, EmailStr, Field

from shared_schemas import AccountStatus

from ..domain.account import normalize_email
from ..domain.contracts import LoginInput, RegisterAccountInput
from ..domain.errors import ErrorCode, IdentityError
from ..domain.service import IdentityService, VerificationOutcome
from ..security.guards import require_claims
from ..security.rate_limit import RateLimiter
from ..security.tokens import AccessClaims

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")


class RegisterRequest(BaseModel):
    """Payload accepted when registering a new account."""

    name: str = Field(..., min_length=1, max_length=255)
    surname: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8)


class RegisterResponse(BaseModel):
    account_id: str
    status: AccountStatus
    message: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    """Token issuance response containing the bearer token and identity fields."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    account_id: str
    email: str


class VerifyEmailResponse(BaseModel):
    status: AccountStatus
    message: str


class MeResponse(BaseModel):
    account_id: str
    email: str
    status: AccountStatus
    expires_at: int


_ERROR_STATUS: dict[ErrorCode, int] = {
    ErrorCode.email_taken: status.HTTP_409_CONFLICT,
    ErrorCode.invalid_credentials: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.invalid_or_expired_token: status.HTTP_400_BAD_REQUEST,
    ErrorCode.internal: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

_VERIFY_MESSAGES: dict[VerificationOutcome, str] = {
    VerificationOutcome.activated: "email verified",
    VerificationOutcome.already_active: "account already active",
}


def get_service(request: Request) -> IdentityService:
    """Resolve the `IdentityService` stored on the FastAPI application state."""
    service: IdentityService = request.app.state.identity_service
    return service


def get_rate_limiter(request: Request) -> RateLimiter:
    limiter: RateLimiter = request.app.state.rate_limiter
    return limiter


def _enforce_rate_limit(limiter: RateLimiter, key: str) -> None:
    if not limiter.allow(key):
        logger.info("rate limit exceeded for %s", key.split(":", 1)[0])
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="rate limited")


@router.post("/auth/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    request: Request,
    payload: RegisterRequest,
    service: IdentityService = Depends(get_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> RegisterResponse:
    """Create a PENDING account and trigger the verification email."""
    client_host = request.client.host if request.client else "unknown"
    _enforce_rate_limit(limiter, f"register:{client_host}")
    try:
        result = service.register(
            RegisterAccountInput(
                name=payload.name,
                surname=payload.surname,
                email=payload.email,
                password=payload.password,
            )
        )
    except IdentityError as exc:
        raise _http_error(exc) from exc
    return RegisterResponse(
        account_id=result.account_id,
        status=result.status,
        message="registration successful, check your email to verify your account",
    )


@router.post("/auth/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    service: IdentityService = Depends(get_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> LoginResponse:
    """Issue a signed access token for valid credentials."""
    _enforce_rate_limit(limiter, f"login:{normalize_email(payload.email)}")
    try:
        result = service.login(LoginInput(email=payload.email, password=payload.password))
    except IdentityError as exc:
        raise _http_error(exc) from exc
    return LoginResponse(
        access_token=result.access_token,
        expires_in=result.expires_in,
        account_id=result.account_id,
        email=result.email,
    )


@router.get("/auth/verify", response_model=VerifyEmailResponse)
def verify_email(
    token: str = Query(""),
    service: IdentityService = Depends(get_service),
) -> VerifyEmailResponse:
    """Consume a verification link and activate the account."""
    try:
        outcome = service.verify_email(token)
    except IdentityError as exc:
        raise _http_error(exc) from exc
    return VerifyEmailResponse(status=AccountStatus.active, message=_VERIFY_MESSAGES[outcome])


@router.get("/auth/me", response_model=MeResponse)
def me(claims: AccessClaims = Depends(require_claims)) -> MeResponse:
    """Echo the verified claims of the presented bearer token."""
    return MeResponse(
        account_id=claims.account_id,
        email=claims.email,
        status=claims.status,
        expires_at=claims.expires_at,
    )


def _http_error(exc: IdentityError) -> HTTPException:
    return HTTPException(status_code=_ERROR_STATUS[exc.code], detail=exc.public_message)
