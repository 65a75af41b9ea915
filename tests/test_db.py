"""Tests for the database layer (sqlite by default, Postgres through an adapter)."""

from __future__ import annotations

import sys
from unittest.mock import MagicMock

import pytest

from onlygames_platform import db as db_module
from onlygames_platform.db import PGConnection, _detect_dialect, _qmark_to_pct, connect, init_db
from onlygames_platform.schema import SCHEMA_POSTGRES


class TestDialect:

    @pytest.mark.parametrize(
        "dsn,dialect",
        [
            ("postgresql://u:p@localhost/onlygames", "postgres"),
            ("postgres://u:p@localhost/onlygames", "postgres"),
            ("sqlite:///tmp/x.sqlite", "sqlite"),
            ("./onlygames.sqlite", "sqlite"),
            ("", "sqlite"),
        ],
    )
    def test_detect(self, dsn, dialect):
        assert _detect_dialect(dsn) == dialect


class TestPlaceholders:

    def test_rewrites_placeholders(self):
        assert _qmark_to_pct("SELECT * FROM users WHERE email=? OR username=?") == (
            "SELECT * FROM users WHERE email=%s OR username=%s"
        )

    def test_leaves_quoted_text_alone(self):
        sql = "SELECT '?', \"odd?col\", 'it''s ?' FROM users WHERE user_id=?"
        assert _qmark_to_pct(sql) == "SELECT '?', \"odd?col\", 'it''s ?' FROM users WHERE user_id=%s"


class TestPGConnection:

    def test_execute_translates_and_returns_cursor(self):
        raw = MagicMock()
        conn = PGConnection(raw)

        cur = conn.execute("SELECT * FROM users WHERE user_id=?", (7,))

        assert cur is raw.cursor.return_value
        cur.execute.assert_called_once_with("SELECT * FROM users WHERE user_id=%s", (7,))

    def test_init_db_takes_advisory_lock(self, monkeypatch):
        raw = MagicMock()
        monkeypatch.setattr(db_module, "_open_postgres", lambda dsn: PGConnection(raw))

        init_db("postgresql://u:p@localhost/onlygames")

        statements = [c.args[0] for c in raw.cursor.return_value.execute.call_args_list]
        assert statements[0] == "SELECT pg_advisory_lock(%s);"
        assert statements[-1] == "SELECT pg_advisory_unlock(%s);"
        assert any("BIGSERIAL PRIMARY KEY" in s for s in statements)
        raw.commit.assert_called_once()
        raw.close.assert_called_once()

    def test_missing_driver(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "psycopg2", None)
        with pytest.raises(RuntimeError, match="psycopg2"):
            with connect("postgresql://u:p@localhost/onlygames"):
                pass

    def test_postgres_schema_has_no_sqlite_syntax(self):
        assert "AUTOINCREMENT" not in SCHEMA_POSTGRES
        assert "PRAGMA" not in SCHEMA_POSTGRES


class TestSqlite:

    def test_init_db_is_idempotent(self, tmp_path):
        dsn = f"sqlite:///{tmp_path / 'nested' / 'og.sqlite'}"
        init_db(dsn)
        init_db(dsn)
        with connect(dsn) as conn:
            cols = {r["name"] for r in conn.execute("PRAGMA table_info(users)").fetchall()}
        assert {"username", "email", "password_hash", "is_creator", "creator_profile_json"} <= cols

    def test_rolls_back_on_error(self, cfg):
        init_db(cfg.DB_DSN)
        with pytest.raises(RuntimeError):
            with connect(cfg.DB_DSN) as conn:
                conn.execute(
                    "INSERT INTO users (username, email, password_hash, created_at, updated_at) VALUES (?,?,?,?,?)",
                    ("ghost", "g@x.com", "h", "2026-01-01T00:00:00Z", "2026-01-01T00:00:00Z"),
                )
                raise RuntimeError("boom")

        with connect(cfg.DB_DSN) as conn:
            assert conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()["n"] == 0
