"""Client-side session lifecycle.

`AuthSession` owns the token for one user of the API. It is created once and
passed to whatever builds requests; there is no module-level token.

States:

    UNAUTHENTICATED --login/register--> AUTHENTICATING --ok--> AUTHENTICATED
    AUTHENTICATED --timer / 401 token_expired--> REFRESHING
    REFRESHING --ok--> AUTHENTICATED (new token replaces the old one)
    REFRESHING --any failure--> UNAUTHENTICATED (token + identity purged)
    AUTHENTICATED --logout--> UNAUTHENTICATED

Logout clears local state first and only then tells the server, in the
background, without retry. A failed notification changes nothing.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Any, Dict, Optional

import requests

from onlygames_platform.config import Config
from onlygames_platform.errors import AuthError, ExpiredToken, InvalidToken, error_from_code

from .store import FileTokenStore, MemoryTokenStore, StoredSession, TokenStore


def _debug(msg: str) -> None:
    print(f"[session] {msg}")


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"


# 401 details after which retrying with the same token is pointless.
_FATAL_401 = {"token_invalid", "missing_token", "user_not_found", "user_inactive"}


def _detail(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return ""
    detail = body.get("detail") if isinstance(body, dict) else None
    return detail if isinstance(detail, str) else ""


def _raise_for_response(resp: requests.Response) -> None:
    """Raise the domain error matching a failed API response."""
    if resp.status_code < 400:
        return
    code = _detail(resp)
    if resp.status_code in (400, 422):
        raise ValueError(code or "invalid_request")
    raise error_from_code(code or f"http_{resp.status_code}", status_code=resp.status_code)


class AuthSession:
    def __init__(
        self,
        base_url: str,
        *,
        store: Optional[TokenStore] = None,
        http: Optional[requests.Session] = None,
        timeout: float = 10.0,
        refresh_interval: float = 900.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.store = store or MemoryTokenStore()
        self.timeout = float(timeout)
        self.refresh_interval = float(refresh_interval)
        self._http = http or requests.Session()

        self._lock = threading.RLock()
        # Held for the whole duration of a refresh; never waited on by the timer.
        self._refresh_lock = threading.Lock()
        self._stop = threading.Event()
        self._timer: Optional[threading.Thread] = None

        saved = self.store.load()
        self._token: Optional[str] = saved.token if saved else None
        self._identity: Optional[Dict[str, Any]] = saved.identity if saved else None
        self._state = SessionState.AUTHENTICATED if self._token else SessionState.UNAUTHENTICATED

    @classmethod
    def from_config(cls, cfg: Config, *, store: Optional[TokenStore] = None) -> "AuthSession":
        return cls(
            cfg.API_BASE_URL,
            store=store or FileTokenStore(cfg.CLIENT_TOKEN_PATH),
            timeout=cfg.CLIENT_REQUEST_TIMEOUT_SECONDS,
            refresh_interval=cfg.CLIENT_REFRESH_INTERVAL_SECONDS,
        )

    # -----------------------------
    # State
    # -----------------------------

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def token(self) -> Optional[str]:
        with self._lock:
            return self._token

    @property
    def identity(self) -> Optional[Dict[str, Any]]:
        """Cached user snapshot (display only, not authoritative)."""
        with self._lock:
            return dict(self._identity) if self._identity else None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def _set_state(self, state: SessionState) -> None:
        with self._lock:
            if self._state != state:
                _debug(f"{self._state.value} -> {state.value}")
            self._state = state

    def _set_session(self, token: str, identity: Optional[Dict[str, Any]]) -> None:
        with self._lock:
            self.store.save(StoredSession(token=token, identity=identity))
            self._token = token
            self._identity = identity
            self._set_state(SessionState.AUTHENTICATED)

    def _clear_local(self) -> Optional[str]:
        with self._lock:
            token = self._token
            self._token = None
            self._identity = None
            self._set_state(SessionState.UNAUTHENTICATED)
            try:
                self.store.clear()
            except OSError as e:
                _debug(f"Could not remove stored session: {e}")
            return token

    # -----------------------------
    # HTTP
    # -----------------------------

    def _send(self, method: str, path: str, token: Optional[str], **kwargs: Any) -> requests.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        kwargs.setdefault("timeout", self.timeout)
        return self._http.request(method, f"{self.base_url}{path}", headers=headers, **kwargs)

    # -----------------------------
    # Login / register
    # -----------------------------

    def _authenticate(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            previous = self._state
            self._set_state(SessionState.AUTHENTICATING)
        try:
            resp = self._send("POST", path, None, json=payload)
            _raise_for_response(resp)
            data = resp.json()
            token = str(data["access_token"])
            user = data.get("user")
            self._set_session(token, user if isinstance(user, dict) else None)
        except Exception:
            self._set_state(previous if self.token else SessionState.UNAUTHENTICATED)
            raise
        return data

    def register(self, username: str, email: str, password: str, *, is_creator: bool = False) -> Dict[str, Any]:
        return self._authenticate(
            "/auth/register",
            {"username": username, "email": email, "password": password, "is_creator": is_creator},
        )

    def login(self, email: str, password: str) -> Dict[str, Any]:
        return self._authenticate("/auth/login", {"email": email, "password": password})

    def creator_login(self, email: str, password: str) -> Dict[str, Any]:
        return self._authenticate("/auth/creator-login", {"email": email, "password": password})

    # -----------------------------
    # Refresh / logout
    # -----------------------------

    def refresh(self, *, blocking: bool = False, stale_token: Optional[str] = None) -> bool:
        """Exchange the current token for a new one.

        Returns True when the session holds a fresh token afterwards. Any
        failure (HTTP error, timeout, unreachable server) logs the user out.

        With `blocking=False` a refresh already in flight makes this a no-op.
        With `blocking=True` the caller waits for it; if that refresh already
        replaced `stale_token`, no second request is sent.
        """
        if not self._refresh_lock.acquire(blocking=blocking):
            _debug("Refresh already in flight; skipping")
            return False
        try:
            with self._lock:
                token = self._token
                if token is None:
                    return False
                if stale_token is not None and token != stale_token:
                    return True
                self._set_state(SessionState.REFRESHING)

            try:
                resp = self._send("POST", "/auth/refresh", token)
                _raise_for_response(resp)
                data = resp.json()
                new_token = str(data["access_token"])
            except (requests.RequestException, AuthError, ValueError, KeyError) as e:
                _debug(f"Token refresh failed ({type(e).__name__}); logging out")
                return self._finish_refresh(token, None, None)

            user = data.get("user")
            return self._finish_refresh(token, new_token, user if isinstance(user, dict) else None)
        finally:
            self._refresh_lock.release()

    def _finish_refresh(self, old_token: str, new_token: Optional[str], user: Optional[Dict[str, Any]]) -> bool:
        with self._lock:
            # A logout or a new login while the request was out wins.
            if self._token != old_token or self._state != SessionState.REFRESHING:
                _debug("Session changed during refresh; discarding result")
                return False
            if new_token is None:
                self._clear_local()
                return False
            try:
                self._set_session(new_token, user or self._identity)
            except OSError as e:
                _debug(f"Could not store refreshed token ({e}); logging out")
                self._clear_local()
                return False
            return True

    def _notify_logout(self, token: str) -> None:
        try:
            self._send("POST", "/auth/logout", token)
        except requests.RequestException as e:
            _debug(f"Failed to notify server of logout: {type(e).__name__}")

    def logout(self, *, notify_server: bool = True, background: bool = True) -> None:
        """Forget the token locally, then tell the server (best effort).

        Safe to call repeatedly; only the first call has a token to report.
        """
        token = self._clear_local()
        if not notify_server or token is None:
            return
        if background:
            threading.Thread(target=self._notify_logout, args=(token,), daemon=True).start()
        else:
            self._notify_logout(token)

    # -----------------------------
    # Privileged requests
    # -----------------------------

    def request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        """Send an authenticated request.

        `401 token_expired` triggers one refresh and one retry. Other 401s end
        the session. 403 raises Forbidden and leaves the session alone.
        """
        token = self.token
        if token is None:
            raise InvalidToken("Not authenticated.")

        resp = self._send(method, path, token, **kwargs)
        if resp.status_code == 401 and _detail(resp) == "token_expired":
            if not self.refresh(blocking=True, stale_token=token):
                raise ExpiredToken("Session expired; please log in again.")
            resp = self._send(method, path, self.token, **kwargs)

        if resp.status_code == 401:
            code = _detail(resp) or "token_invalid"
            if code in _FATAL_401 or code == "token_expired":
                self.logout(notify_server=False)
            raise error_from_code(code, status_code=401)
        if resp.status_code == 403:
            raise error_from_code(_detail(resp) or "forbidden", status_code=403)
        return resp

    def get(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request("POST", path, **kwargs)

    # -----------------------------
    # Background refresh
    # -----------------------------

    def start_auto_refresh(self) -> None:
        """Start the periodic refresh thread (one per session)."""
        with self._lock:
            if self._timer is not None and self._timer.is_alive():
                return
            self._stop.clear()
            self._timer = threading.Thread(target=self._refresh_loop, name="onlygames-token-refresh", daemon=True)
            self._timer.start()

    def stop_auto_refresh(self) -> None:
        self._stop.set()
        timer = self._timer
        if timer is not None and timer is not threading.current_thread():
            timer.join(timeout=self.timeout + 1)
        self._timer = None

    def _refresh_loop(self) -> None:
        while not self._stop.wait(self.refresh_interval):
            if self.state != SessionState.AUTHENTICATED:
                continue
            try:
                self.refresh()
            except Exception as e:
                _debug(f"Auto-refresh error: {e}")

    def close(self) -> None:
        self.stop_auto_refresh()
        self._http.close()

    def __enter__(self) -> "AuthSession":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
