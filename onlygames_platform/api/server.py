from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from onlygames_platform import __version__
from onlygames_platform.config import Config, load_config
from onlygames_platform.db import connect, init_db
from onlygames_platform.errors import AuthError, ConfigurationError

from onlygames_platform.auth import get_current_user, require_creator
from onlygames_platform.auth.crud import (
    authenticate,
    get_user_by_id,
    promote_to_creator,
    public_user,
    register_user,
    touch_last_login,
)
from onlygames_platform.auth.deps import get_bearer_token, http_error
from onlygames_platform.auth.security import issue_token, verify_token
from onlygames_platform.models import CredentialRecord, TokenClaims


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


class RegisterRequest(BaseModel):
    username: str
    email: str
    password: str
    is_creator: bool = False


class LoginRequest(BaseModel):
    # Email or username.
    email: str
    password: str


def _token_response(cfg: Config, record: CredentialRecord) -> Dict[str, Any]:
    try:
        token = issue_token(
            secret=cfg.AUTH_JWT_SECRET,
            user_id=record.user_id,
            is_creator=record.is_creator,
            expires_minutes=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES),
        )
    except ConfigurationError as e:
        _debug(f"Cannot issue tokens: {e.message}")
        raise http_error(e)
    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_in": int(cfg.AUTH_TOKEN_EXPIRE_MINUTES) * 60,
        "user": public_user(record),
    }


def _login(cfg: Config, payload: LoginRequest, *, creator_only: bool) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        try:
            record = authenticate(conn, payload.email, payload.password, creator_only=creator_only)
        except AuthError as e:
            # Same detail for unknown email and wrong password.
            raise http_error(e)
        touch_last_login(conn, record.user_id)
    return _token_response(cfg, record)


def create_app(cfg: Config | None = None) -> FastAPI:
    cfg = cfg or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # A missing signing secret is fatal; never fall back to a default.
        if not cfg.AUTH_JWT_SECRET:
            raise ConfigurationError("AUTH_JWT_SECRET is not set")
        init_db(cfg.DB_DSN)
        yield

    app = FastAPI(title="OnlyGames Platform", version=__version__, lifespan=lifespan)
    # Make config available to auth deps.
    app.state.cfg = cfg

    # CORS is mainly needed for local development (Vite on :5173 -> API on :8000).
    cors_origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # -----------------------------
    # Health
    # -----------------------------

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok"}

    # -----------------------------
    # Auth
    # -----------------------------

    @app.post("/auth/register", status_code=201)
    def auth_register(payload: RegisterRequest) -> Dict[str, Any]:
        if payload.is_creator and not cfg.AUTH_ALLOW_CREATOR_SIGNUP:
            raise HTTPException(status_code=403, detail="creator_signup_disabled")

        with connect(cfg.DB_DSN) as conn:
            try:
                record = register_user(
                    conn,
                    username=payload.username,
                    email=payload.email,
                    password=payload.password,
                    is_creator=payload.is_creator,
                    min_username_length=cfg.AUTH_MIN_USERNAME_LENGTH,
                    min_password_length=cfg.AUTH_MIN_PASSWORD_LENGTH,
                )
            except AuthError as e:
                raise http_error(e)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        _debug(f"Registered user_id={record.user_id} creator={record.is_creator}")
        return _token_response(cfg, record)

    @app.post("/auth/login")
    def auth_login(payload: LoginRequest) -> Dict[str, Any]:
        return _login(cfg, payload, creator_only=False)

    @app.post("/auth/creator-login")
    def auth_creator_login(payload: LoginRequest) -> Dict[str, Any]:
        return _login(cfg, payload, creator_only=True)

    @app.post("/auth/refresh")
    def auth_refresh(token: str = Depends(get_bearer_token)) -> Dict[str, Any]:
        """Reissue a token from the current user row.

        Accepts tokens that expired less than AUTH_REFRESH_GRACE_MINUTES ago;
        role changes made since the old token was issued are picked up here.
        """
        try:
            claims = verify_token(
                secret=cfg.AUTH_JWT_SECRET,
                token=token,
                grace_seconds=int(cfg.AUTH_REFRESH_GRACE_MINUTES) * 60,
            )
        except AuthError as e:
            raise http_error(e)

        with connect(cfg.DB_DSN) as conn:
            record = get_user_by_id(conn, claims.user_id)
        if record is None or not record.is_active:
            raise http_error(AuthError(code="user_not_found"))
        return _token_response(cfg, record)

    _optional_bearer = HTTPBearer(auto_error=False)

    @app.post("/auth/logout")
    def auth_logout(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(_optional_bearer),
    ) -> Dict[str, Any]:
        """Acknowledge a logout.

        Tokens are stateless, so there is nothing to revoke server-side; the
        client has already discarded its token by the time this is called.
        """
        if credentials is not None and credentials.credentials:
            try:
                claims = verify_token(secret=cfg.AUTH_JWT_SECRET, token=credentials.credentials)
                _debug(f"Logout user_id={claims.user_id}")
            except AuthError:
                _debug("Logout with an unusable token")
        return {"ok": True}

    @app.get("/auth/verify")
    def auth_verify(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        return {"valid": True, "user": user}

    @app.get("/auth/me")
    def auth_me(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        return {"user": user}

    # -----------------------------
    # Role transition
    # -----------------------------

    @app.post("/users/me/creator")
    def become_creator(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        """Turn the current user into a creator and hand back a token that says so."""
        with connect(cfg.DB_DSN) as conn:
            record = promote_to_creator(conn, int(user["id"]))
        _debug(f"Promoted user_id={record.user_id} to creator")
        return _token_response(cfg, record)

    # -----------------------------
    # Creator-only
    # -----------------------------

    @app.get("/creators/me/profile")
    def creator_profile(claims: TokenClaims = Depends(require_creator)) -> Dict[str, Any]:
        with connect(cfg.DB_DSN) as conn:
            record = get_user_by_id(conn, claims.user_id)
        if record is None or record.creator_profile is None:
            raise HTTPException(status_code=404, detail="creator_not_found")
        return {"user_id": record.user_id, "creator_profile": record.creator_profile.to_dict()}

    return app


app = create_app()
