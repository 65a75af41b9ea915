"""Tests for password hashing and token issue/verify."""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from onlygames_platform.auth.security import (
    hash_password,
    issue_token,
    verify_password,
    verify_token,
)
from onlygames_platform.errors import ConfigurationError, ExpiredToken, InvalidToken

from tests.conftest import TEST_SECRET


T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
TTL_MINUTES = 7 * 24 * 60


def _issue(**kwargs):
    params = {"secret": TEST_SECRET, "user_id": 42, "expires_minutes": TTL_MINUTES, "now": T0}
    params.update(kwargs)
    return issue_token(**params)


def _b64(d: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(d).encode()).rstrip(b"=").decode()


# =============================================================================
# Password hashing
# =============================================================================

class TestPasswordHashing:

    @pytest.mark.parametrize("password", ["secret1", "correct horse battery staple", "pässwörd", "x" * 200])
    def test_same_password_hashes_differently_and_both_verify(self, password):
        h1 = hash_password(password)
        h2 = hash_password(password)

        assert h1 != h2
        assert password not in h1
        assert verify_password(password, h1)
        assert verify_password(password, h2)

    def test_wrong_password_does_not_verify(self):
        h = hash_password("secret1")
        assert not verify_password("secret2", h)
        assert not verify_password("", h)

    def test_blank_password_rejected(self):
        with pytest.raises(ValueError, match="password_blank"):
            hash_password("")

    def test_malformed_hash_is_a_mismatch(self):
        assert verify_password("secret1", "not-a-hash") is False
        assert verify_password("secret1", "") is False


# =============================================================================
# Token issue / verify
# =============================================================================

class TestIssueToken:

    def test_round_trip(self):
        claims = verify_token(secret=TEST_SECRET, token=_issue(), now=T0)

        assert claims.user_id == 42
        assert claims.is_creator is False
        assert claims.issued_at == T0
        assert claims.expires_at == T0 + timedelta(minutes=TTL_MINUTES)

    def test_creator_flag_only_present_for_creators(self):
        plain = jwt.decode(_issue(), options={"verify_signature": False})
        creator = jwt.decode(_issue(is_creator=True), options={"verify_signature": False})

        assert "is_creator" not in plain
        assert creator["is_creator"] is True
        assert verify_token(secret=TEST_SECRET, token=_issue(is_creator=True), now=T0).is_creator is True

    def test_tokens_issued_in_same_second_differ(self):
        assert _issue() != _issue()

    @pytest.mark.parametrize("secret", [None, "", "   "])
    def test_missing_secret_is_configuration_error(self, secret):
        with pytest.raises(ConfigurationError):
            _issue(secret=secret)


class TestVerifyToken:

    def test_valid_up_to_expiry(self):
        token = _issue()
        verify_token(secret=TEST_SECRET, token=token, now=T0 + timedelta(days=3))
        verify_token(secret=TEST_SECRET, token=token, now=T0 + timedelta(minutes=TTL_MINUTES))

    def test_expired_just_after_ttl(self):
        token = _issue()
        with pytest.raises(ExpiredToken):
            verify_token(secret=TEST_SECRET, token=token, now=T0 + timedelta(minutes=TTL_MINUTES, seconds=1))

    def test_expired_within_the_second_after_exp(self):
        token = _issue()
        with pytest.raises(ExpiredToken):
            verify_token(
                secret=TEST_SECRET,
                token=token,
                now=T0 + timedelta(minutes=TTL_MINUTES, milliseconds=500),
            )

    def test_grace_window_accepts_recently_expired(self):
        token = _issue()
        late = T0 + timedelta(minutes=TTL_MINUTES, seconds=30)

        claims = verify_token(secret=TEST_SECRET, token=token, now=late, grace_seconds=60)
        assert claims.user_id == 42

        with pytest.raises(ExpiredToken):
            verify_token(secret=TEST_SECRET, token=token, now=late + timedelta(minutes=5), grace_seconds=60)

    def test_wrong_secret_is_invalid(self):
        token = _issue(secret="another-secret-0123456789abcdef0123456789")
        with pytest.raises(InvalidToken):
            verify_token(secret=TEST_SECRET, token=token, now=T0)

    def test_tampered_payload_is_invalid(self):
        header, _payload, sig = _issue().split(".")
        forged = ".".join([header, _b64({"sub": "1", "iat": 0, "exp": 9999999999, "is_creator": True}), sig])
        with pytest.raises(InvalidToken):
            verify_token(secret=TEST_SECRET, token=forged, now=T0)

    def test_tampered_signature_is_invalid(self):
        header, payload, sig = _issue().split(".")
        flipped = sig[:10] + ("A" if sig[10] != "A" else "B") + sig[11:]
        with pytest.raises(InvalidToken):
            verify_token(secret=TEST_SECRET, token=".".join([header, payload, flipped]), now=T0)

    def test_forged_and_expired_is_invalid_not_expired(self):
        token = _issue(secret="another-secret-0123456789abcdef0123456789")
        way_later = T0 + timedelta(days=365)
        with pytest.raises(InvalidToken):
            verify_token(secret=TEST_SECRET, token=token, now=way_later)

    def test_unsigned_token_is_invalid(self):
        token = jwt.encode({"sub": "42", "iat": 0, "exp": 9999999999}, None, algorithm="none")
        with pytest.raises(InvalidToken):
            verify_token(secret=TEST_SECRET, token=token, now=T0)

    def test_missing_claims_are_invalid(self):
        token = jwt.encode({"sub": "42"}, TEST_SECRET, algorithm="HS256")
        with pytest.raises(InvalidToken):
            verify_token(secret=TEST_SECRET, token=token, now=T0)

    def test_non_numeric_subject_is_invalid(self):
        token = jwt.encode({"sub": "alice", "iat": 0, "exp": 9999999999}, TEST_SECRET, algorithm="HS256")
        with pytest.raises(InvalidToken):
            verify_token(secret=TEST_SECRET, token=token, now=T0)

    @pytest.mark.parametrize("token", ["", None, "garbage", "a.b.c"])
    def test_garbage_is_invalid(self, token):
        with pytest.raises(InvalidToken):
            verify_token(secret=TEST_SECRET, token=token, now=T0)

    def test_missing_secret_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            verify_token(secret=None, token=_issue(), now=T0)
