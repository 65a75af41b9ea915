from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from onlygames_platform.config import Config
from onlygames_platform.db import connect
from onlygames_platform.errors import AuthError
from onlygames_platform.models import TokenClaims

from .crud import get_user_by_id, public_user
from .permissions import Capability, authorize
from .security import verify_token


_bearer = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def http_error(exc: AuthError) -> HTTPException:
    """Translate a domain auth error into the HTTP response the client expects."""
    if exc.status_code == 401:
        return _unauthorized(exc.code)
    return HTTPException(status_code=exc.status_code, detail=exc.code)


def get_config(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="server_config_missing")
    return cfg


def get_bearer_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer)) -> str:
    if credentials is None or not credentials.credentials:
        # Keep a single detail string so clients can handle consistently.
        raise _unauthorized("missing_token")
    return credentials.credentials


def get_current_claims(
    token: str = Depends(get_bearer_token),
    cfg: Config = Depends(get_config),
) -> TokenClaims:
    """Verify the bearer token (signature first, then expiry)."""
    try:
        return verify_token(secret=cfg.AUTH_JWT_SECRET, token=token)
    except AuthError as e:
        raise http_error(e)


def get_current_user(
    claims: TokenClaims = Depends(get_current_claims),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    """Verified claims plus the current user row.

    The token alone is enough to authorize; this dependency is for handlers
    that need the profile as well.
    """
    with connect(cfg.DB_DSN) as conn:
        record = get_user_by_id(conn, claims.user_id)
    if record is None:
        raise _unauthorized("user_not_found")
    if not record.is_active:
        raise _unauthorized("user_inactive")
    return public_user(record)


def require_creator(claims: TokenClaims = Depends(get_current_claims)) -> TokenClaims:
    try:
        return authorize(claims, Capability.CREATOR_ONLY)
    except AuthError as e:
        raise http_error(e)
