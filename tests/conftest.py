# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# Sets up environment variables before any project imports (the API module
# builds its app from the environment at import time) and provides fixtures
# for a throwaway SQLite database, a config object and an API client.
# =============================================================================

import os

os.environ.setdefault("AUTH_JWT_SECRET", "test-secret-0123456789abcdef0123456789abcdef")
os.environ.setdefault("ONLYGAMES_DB_PATH", "./.pytest-onlygames.sqlite")
os.environ.setdefault("CORS_ALLOW_ORIGINS", "")

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from onlygames_platform.api.server import create_app
from onlygames_platform.config import Config
from onlygames_platform.db import connect, init_db


TEST_SECRET = "test-secret-0123456789abcdef0123456789abcdef"


@pytest.fixture
def cfg(tmp_path) -> Config:
    return replace(
        Config(),
        DB_DSN=str(tmp_path / "onlygames.sqlite"),
        AUTH_JWT_SECRET=TEST_SECRET,
        AUTH_TOKEN_EXPIRE_MINUTES=10080,
        AUTH_REFRESH_GRACE_MINUTES=60,
        CORS_ALLOW_ORIGINS="",
    )


@pytest.fixture
def db(cfg):
    """An initialized database; yields a connection that commits on exit."""
    init_db(cfg.DB_DSN)
    with connect(cfg.DB_DSN) as conn:
        yield conn


@pytest.fixture
def client(cfg):
    app = create_app(cfg)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def alice():
    return {"username": "alice", "email": "a@x.com", "password": "secret1"}
