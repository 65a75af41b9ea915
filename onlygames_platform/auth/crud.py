from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional

from onlygames_platform.errors import DuplicateIdentity, Forbidden, InvalidCredentials
from onlygames_platform.models import CreatorProfile, CredentialRecord
from onlygames_platform.util.time import utcnow_iso

from .security import dummy_verify, hash_password, verify_password


_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_username(username: str) -> str:
    return (username or "").strip().lower()


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _row_to_record(row: Any) -> CredentialRecord:
    d = dict(row)
    is_creator = int(d.get("is_creator") or 0) == 1
    profile: Optional[CreatorProfile] = None
    if is_creator:
        raw = d.get("creator_profile_json")
        # A creator row written before profiles existed still gets defaults.
        profile = CreatorProfile.from_dict(json.loads(raw)) if raw else CreatorProfile()
    return CredentialRecord(
        user_id=int(d["user_id"]),
        username=str(d["username"]),
        email=str(d["email"]),
        password_hash=str(d["password_hash"]),
        is_creator=is_creator,
        creator_profile=profile,
        is_active=int(d.get("is_active", 1) or 0) == 1,
        created_at=str(d.get("created_at") or ""),
        updated_at=str(d.get("updated_at") or ""),
        last_login_at=d.get("last_login_at"),
    )


def public_user(record: CredentialRecord) -> Dict[str, Any]:
    """API-safe view of a user (never includes the password hash)."""
    return {
        "id": record.user_id,
        "username": record.username,
        "email": record.email,
        "is_creator": record.is_creator,
        "creator_profile": record.creator_profile.to_dict() if record.creator_profile else None,
        "created_at": record.created_at,
        "last_login_at": record.last_login_at,
    }


# -----------------------------
# Credential store
# -----------------------------


def find_by_email_or_username(conn: Any, email: str, username: str | None = None) -> Optional[CredentialRecord]:
    """Single combined lookup on email OR username.

    With only `email` given, the value is matched against both columns, so a
    login identifier may be either. An exact email match always wins over a
    username match.
    """
    e = normalize_email(email)
    u = normalize_username(username if username is not None else email)
    if not e and not u:
        return None
    row = conn.execute(
        """
        SELECT * FROM users
        WHERE email=? OR username=?
        ORDER BY CASE WHEN email=? THEN 0 ELSE 1 END, user_id
        LIMIT 1
        """,
        (e, u, e),
    ).fetchone()
    return _row_to_record(row) if row is not None else None


def get_user_by_id(conn: Any, user_id: int) -> Optional[CredentialRecord]:
    row = conn.execute(
        "SELECT * FROM users WHERE user_id=?",
        (int(user_id),),
    ).fetchone()
    return _row_to_record(row) if row is not None else None


def create_user(
    conn: Any,
    *,
    username: str,
    email: str,
    password: str,
    is_creator: bool = False,
    is_active: bool = True,
) -> CredentialRecord:
    """Insert a new user; the password is hashed exactly once, here.

    The UNIQUE constraints on username/email are the backstop against two
    concurrent registrations: the losing insert hits ON CONFLICT and we
    report DuplicateIdentity.
    """
    u = normalize_username(username)
    e = normalize_email(email)
    if not u:
        raise ValueError("username_blank")
    if not e:
        raise ValueError("email_blank")

    profile = CreatorProfile() if is_creator else None
    now = utcnow_iso()
    inserted = conn.execute(
        """
        INSERT INTO users (username, email, password_hash, is_creator, creator_profile_json, is_active, created_at, updated_at)
        VALUES (?,?,?,?,?,?,?,?)
        ON CONFLICT DO NOTHING
        RETURNING user_id
        """,
        (
            u,
            e,
            hash_password(password),
            1 if is_creator else 0,
            json.dumps(profile.to_dict()) if profile else None,
            1 if is_active else 0,
            now,
            now,
        ),
    ).fetchall()
    if not inserted:
        raise DuplicateIdentity()

    record = get_user_by_id(conn, int(inserted[0]["user_id"]))
    assert record is not None
    return record


def save_user(conn: Any, record: CredentialRecord) -> None:
    """Persist every mutable column of `record`."""
    conn.execute(
        """
        UPDATE users
        SET username=?, email=?, password_hash=?, is_creator=?, creator_profile_json=?,
            is_active=?, updated_at=?, last_login_at=?
        WHERE user_id=?
        """,
        (
            normalize_username(record.username),
            normalize_email(record.email),
            record.password_hash,
            1 if record.is_creator else 0,
            json.dumps(record.creator_profile.to_dict()) if record.creator_profile else None,
            1 if record.is_active else 0,
            utcnow_iso(),
            record.last_login_at,
            int(record.user_id),
        ),
    )


def touch_last_login(conn: Any, user_id: int) -> None:
    now = utcnow_iso()
    conn.execute(
        "UPDATE users SET last_login_at=?, updated_at=? WHERE user_id=?",
        (now, now, int(user_id)),
    )


# -----------------------------
# Flows
# -----------------------------


def register_user(
    conn: Any,
    *,
    username: str,
    email: str,
    password: str,
    is_creator: bool = False,
    min_username_length: int = 3,
    min_password_length: int = 6,
) -> CredentialRecord:
    u = normalize_username(username)
    e = normalize_email(email)
    if len(u) < min_username_length:
        raise ValueError("username_too_short")
    if "@" in u:
        # Keeps usernames and emails from colliding in the login lookup.
        raise ValueError("username_invalid")
    if not _EMAIL_RE.match(e):
        raise ValueError("email_invalid")
    if len(password or "") < min_password_length:
        raise ValueError("password_too_short")

    if find_by_email_or_username(conn, e, u) is not None:
        raise DuplicateIdentity()

    return create_user(conn, username=u, email=e, password=password, is_creator=is_creator)


def authenticate(conn: Any, identifier: str, password: str, *, creator_only: bool = False) -> CredentialRecord:
    """Check a password login.

    Unknown identity, wrong password, inactive account and (for the creator
    login) a non-creator account all raise the same InvalidCredentials.
    """
    record = find_by_email_or_username(conn, identifier)
    if record is None:
        dummy_verify()
        raise InvalidCredentials()

    if not verify_password(password, record.password_hash):
        raise InvalidCredentials()
    if not record.is_active:
        raise InvalidCredentials()
    if creator_only and not record.is_creator:
        raise InvalidCredentials()

    if creator_only and record.creator_profile is not None:
        if record.creator_profile.verification_status == "rejected":
            raise Forbidden("Your creator account was rejected.", code="creator_rejected")

    return record


def promote_to_creator(conn: Any, user_id: int) -> CredentialRecord:
    """Explicit user -> creator transition (initializes the creator profile)."""
    record = get_user_by_id(conn, user_id)
    if record is None:
        raise LookupError("user_not_found")
    if record.is_creator:
        return record

    save_user(conn, record.become_creator())
    updated = get_user_by_id(conn, user_id)
    assert updated is not None
    return updated
