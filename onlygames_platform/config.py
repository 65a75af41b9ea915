import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

# Load a local .env file if present (no-op otherwise).
load_dotenv()


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


def _env_str(name: str, default: str | None = None) -> str | None:
    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip()
    return v or default


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, str(default)))


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    Values are read from the environment when the object is constructed, so
    `load_config()` always reflects the current process environment.

    IMPORTANT: Provide secrets via environment variables or a .env file.
    Do not hardcode secrets in source code.
    """

    # -----------------
    # Core
    # -----------------
    # Preferred: set ONLYGAMES_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: ONLYGAMES_DB_PATH for SQLite.
    DB_DSN: str = field(
        default_factory=lambda: (
            os.environ.get("ONLYGAMES_DATABASE_URL")
            or os.environ.get("DATABASE_URL")
            or os.environ.get("ONLYGAMES_DB_PATH", "./onlygames.sqlite")
        )
    )

    # -----------------
    # Auth (JWT)
    # -----------------
    # There is deliberately no default: a missing secret is a fatal
    # misconfiguration (ConfigurationError at issue/verify time).
    AUTH_JWT_SECRET: str | None = field(default_factory=lambda: _env_str("AUTH_JWT_SECRET"))
    AUTH_TOKEN_EXPIRE_MINUTES: int = field(
        default_factory=lambda: _env_int("AUTH_TOKEN_EXPIRE_MINUTES", 10080)  # 7 days
    )
    # How long after expiry /auth/refresh still accepts a correctly signed token.
    AUTH_REFRESH_GRACE_MINUTES: int = field(
        default_factory=lambda: _env_int("AUTH_REFRESH_GRACE_MINUTES", 60)
    )

    # Registration rules
    AUTH_MIN_USERNAME_LENGTH: int = field(default_factory=lambda: _env_int("AUTH_MIN_USERNAME_LENGTH", 3))
    AUTH_MIN_PASSWORD_LENGTH: int = field(default_factory=lambda: _env_int("AUTH_MIN_PASSWORD_LENGTH", 6))

    # Self-serve creator sign-up (POST /auth/register with is_creator=true).
    AUTH_ALLOW_CREATOR_SIGNUP: bool = field(
        default_factory=lambda: _env_bool("AUTH_ALLOW_CREATOR_SIGNUP", True) is True
    )

    # -----------------
    # CORS (development)
    # -----------------
    # If you develop with Vite on :5173 and API on :8000, allow that origin.
    CORS_ALLOW_ORIGINS: str = field(
        default_factory=lambda: os.environ.get(
            "CORS_ALLOW_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
        )
    )

    # -----------------
    # Client session manager
    # -----------------
    API_BASE_URL: str = field(default_factory=lambda: os.environ.get("API_BASE_URL", "http://localhost:8000"))
    # Refresh fires well before expiry (15 minutes against a 7 day TTL).
    CLIENT_REFRESH_INTERVAL_SECONDS: float = field(
        default_factory=lambda: _env_float("CLIENT_REFRESH_INTERVAL_SECONDS", 900.0)
    )
    CLIENT_REQUEST_TIMEOUT_SECONDS: float = field(
        default_factory=lambda: _env_float("CLIENT_REQUEST_TIMEOUT_SECONDS", 10.0)
    )
    CLIENT_TOKEN_PATH: str = field(
        default_factory=lambda: os.environ.get("CLIENT_TOKEN_PATH", "~/.onlygames/session.json")
    )


def load_config() -> Config:
    return Config()
