from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Any, Dict

import jwt
from passlib.context import CryptContext

from onlygames_platform.errors import ConfigurationError, ExpiredToken, InvalidToken
from onlygames_platform.models import TokenClaims
from onlygames_platform.util.time import from_epoch, to_epoch, to_timestamp, utcnow


# pbkdf2_sha256: salted per hash, deliberately slow (many rounds).
_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
_JWT_ALG = "HS256"


def hash_password(password: str) -> str:
    """Hash a plaintext password with a fresh random salt."""
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except (ValueError, TypeError):
        # Unrecognized / malformed stored hash.
        return False


def dummy_verify() -> None:
    """Spend roughly the time of a real verification.

    Used when the identity is unknown so a failed login takes the same time
    either way.
    """
    _pwd.dummy_verify()


def _require_secret(secret: str | None) -> str:
    if not secret or not str(secret).strip():
        raise ConfigurationError("AUTH_JWT_SECRET is not set")
    return str(secret)


def issue_token(
    *,
    secret: str | None,
    user_id: int,
    expires_minutes: int,
    is_creator: bool = False,
    now: datetime | None = None,
) -> str:
    """Create a signed access token for an already-authenticated user.

    The payload is self-contained: `sub`, `iat`, `exp`, a unique `jti` (two
    tokens issued in the same second still differ) and, for creators only,
    `is_creator`. Expiry is always `iat + expires_minutes`.
    """
    key = _require_secret(secret)

    issued = now or utcnow()
    exp = issued + timedelta(minutes=max(1, int(expires_minutes)))

    payload: Dict[str, Any] = {
        "sub": str(int(user_id)),
        "iat": to_epoch(issued),
        "exp": to_epoch(exp),
        "jti": uuid.uuid4().hex,
    }
    if is_creator:
        payload["is_creator"] = True
    return jwt.encode(payload, key, algorithm=_JWT_ALG)


def verify_token(
    *,
    secret: str | None,
    token: str | None,
    now: datetime | None = None,
    grace_seconds: int = 0,
) -> TokenClaims:
    """Validate a token and return its claims.

    Two explicit stages:
      1. structure + signature  -> InvalidToken
      2. expiry against `now`   -> ExpiredToken

    A forged token is therefore always InvalidToken, even when its `exp` is
    in the past. `grace_seconds` lets a caller (refresh) accept tokens that
    expired a short while ago.
    """
    key = _require_secret(secret)
    if not token:
        raise InvalidToken("Missing token.")

    try:
        payload = jwt.decode(
            token,
            key,
            algorithms=[_JWT_ALG],
            options={
                "verify_exp": False,
                "verify_iat": False,
                "verify_nbf": False,
                "require": ["sub", "iat", "exp"],
            },
        )
    except jwt.InvalidTokenError as e:
        raise InvalidToken(f"Invalid token: {e}") from e

    try:
        user_id = int(payload["sub"])
        iat = int(payload["iat"])
        exp = int(payload["exp"])
    except (TypeError, ValueError) as e:
        raise InvalidToken("Invalid token: malformed claims") from e

    # Sub-second precision: a token is expired as soon as `now` passes `exp`.
    now_ts = to_timestamp(now or utcnow())
    if now_ts > exp + max(0, int(grace_seconds)):
        raise ExpiredToken()

    return TokenClaims(
        user_id=user_id,
        issued_at=from_epoch(iat),
        expires_at=from_epoch(exp),
        is_creator=payload.get("is_creator") is True,
    )
