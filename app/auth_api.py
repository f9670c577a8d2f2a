"""Login endpoint and the bearer-token dependency guarding reading routes."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.responses import ERR_UNAUTHORIZED, STATUS_SUCCESS, api_error
from app.schemas import APIResponse, LoginData, LoginRequest
from services.auth import AuthService, TokenClaims, build_default_auth_service
from services.errors import InvalidCredentialsError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

_bearer = HTTPBearer(auto_error=False)
_CHALLENGE = {"WWW-Authenticate": "Bearer"}


def get_auth_service() -> AuthService:
    return build_default_auth_service()


def require_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    auth: AuthService = Depends(get_auth_service),
) -> TokenClaims:
    if credentials is None or not credentials.credentials:
        raise api_error(
            status.HTTP_401_UNAUTHORIZED,
            ERR_UNAUTHORIZED,
            "Missing or malformed authorization header",
            headers=_CHALLENGE,
        )
    try:
        claims = auth.verify_token(credentials.credentials)
    except InvalidCredentialsError as exc:
        raise api_error(
            status.HTTP_401_UNAUTHORIZED,
            ERR_UNAUTHORIZED,
            str(exc),
            headers=_CHALLENGE,
        ) from exc
    request.state.user = claims
    return claims


@router.post(
    "/login",
    response_model=APIResponse[LoginData],
    summary="Exchange email (or username) and password for a bearer token.",
)
def login(
    payload: LoginRequest,
    auth: AuthService = Depends(get_auth_service),
) -> APIResponse[LoginData]:
    try:
        grant = auth.login(payload.email, payload.password)
    except InvalidCredentialsError as exc:
        logger.info("Rejected login attempt", extra={"reason": str(exc)})
        raise api_error(
            status.HTTP_401_UNAUTHORIZED,
            "Invalid credentials",
            str(exc),
        ) from exc
    return APIResponse[LoginData](
        status=STATUS_SUCCESS,
        message="Login successful",
        data=LoginData.from_grant(grant),
    )
