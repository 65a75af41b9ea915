from __future__ import annotations

import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence
from urllib.parse import urlparse

from onlygames_platform.schema import get_schema_sql


# Serializes schema DDL across API processes sharing one Postgres database.
_SCHEMA_LOCK_ID = 2147483646

# Quoted SQL literals/identifiers, including doubled-quote escapes.
_QUOTED_RE = re.compile(r"('(?:[^']|'')*'|\"(?:[^\"]|\"\")*\")")


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def _detect_dialect(dsn: str) -> str:
    """Return 'postgres' or 'sqlite' (file paths and sqlite:/// URLs)."""
    scheme = urlparse((dsn or "").strip()).scheme.lower()
    return "postgres" if scheme in ("postgres", "postgresql") else "sqlite"


def _sqlite_path(dsn: str) -> str:
    dsn = (dsn or "").strip()
    if dsn.lower().startswith("sqlite:///"):
        return dsn[len("sqlite:///") :]
    return dsn


def _qmark_to_pct(sql: str) -> str:
    """Rewrite sqlite `?` placeholders as psycopg2 `%s`, leaving quoted text alone."""
    parts = _QUOTED_RE.split(sql)
    # split() with one capture group: even indexes are unquoted SQL.
    return "".join(p if i % 2 else p.replace("?", "%s") for i, p in enumerate(parts))


class PGConnection:
    """psycopg2 connection with the sqlite3 `conn.execute(sql, params)` call shape.

    Statements are written once with `?` placeholders; rows come back as dicts
    (RealDictCursor), which `_row_to_record` reads the same way as sqlite3.Row.
    """

    dialect = "postgres"

    def __init__(self, conn: Any):
        self._conn = conn

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> Any:
        cur = self._conn.cursor()
        cur.execute(_qmark_to_pct(sql), tuple(params or ()))
        return cur

    def executescript(self, script: str) -> None:
        for stmt in (s.strip() for s in script.split(";")):
            if stmt:
                self.execute(stmt)

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()


def _open_postgres(dsn: str) -> PGConnection:
    try:
        import psycopg2
        import psycopg2.extras
    except ImportError as e:
        raise RuntimeError(
            "Postgres selected but psycopg2 is not installed. "
            "Install the 'postgres' extra (psycopg2-binary) and try again."
        ) from e
    raw = psycopg2.connect(dsn, cursor_factory=psycopg2.extras.RealDictCursor, connect_timeout=10)
    return PGConnection(raw)


def _open_sqlite(dsn: str) -> sqlite3.Connection:
    path = _sqlite_path(dsn)
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    # API workers share one file.
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA busy_timeout=5000;")
    return conn


@contextmanager
def connect(db_dsn: str) -> Iterator[Any]:
    """Open the users database; commit on success, roll back on error."""
    dsn = (db_dsn or "").strip()
    conn = _open_postgres(dsn) if _detect_dialect(dsn) == "postgres" else _open_sqlite(dsn)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_dsn: str) -> None:
    """Create the users table and its indexes if they do not exist yet."""
    dialect = _detect_dialect(db_dsn)
    _debug(f"Initializing DB ({dialect}) at {db_dsn}")
    with connect(db_dsn) as conn:
        schema_sql = get_schema_sql(dialect)
        if dialect != "postgres":
            conn.executescript(schema_sql)
            return

        conn.execute("SELECT pg_advisory_lock(?);", (_SCHEMA_LOCK_ID,))
        try:
            conn.executescript(schema_sql)
        finally:
            conn.execute("SELECT pg_advisory_unlock(?);", (_SCHEMA_LOCK_ID,))
