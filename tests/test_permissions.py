from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from onlygames_platform.auth.permissions import Capability, authorize
from onlygames_platform.errors import Forbidden
from onlygames_platform.models import TokenClaims


NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _claims(is_creator: bool = False) -> TokenClaims:
    return TokenClaims(user_id=1, issued_at=NOW, expires_at=NOW + timedelta(days=7), is_creator=is_creator)


class TestAuthorize:

    def test_creator_only_allows_creators(self):
        claims = _claims(is_creator=True)
        assert authorize(claims, Capability.CREATOR_ONLY) is claims

    def test_creator_only_denies_non_creators(self):
        with pytest.raises(Forbidden) as exc:
            authorize(_claims(is_creator=False), Capability.CREATOR_ONLY)
        assert exc.value.code == "creator_required"
        assert exc.value.status_code == 403

    def test_creator_flag_absent_defaults_to_deny(self):
        claims = TokenClaims(user_id=1, issued_at=NOW, expires_at=NOW)
        with pytest.raises(Forbidden):
            authorize(claims, Capability.CREATOR_ONLY)

    @pytest.mark.parametrize("is_creator", [True, False])
    def test_authenticated_allows_everyone_verified(self, is_creator):
        assert authorize(_claims(is_creator), Capability.AUTHENTICATED).user_id == 1

    def test_unverified_payload_is_rejected(self):
        # A decoded-but-unverified dict must never reach the gate.
        with pytest.raises(TypeError):
            authorize({"user_id": 1, "is_creator": True}, Capability.CREATOR_ONLY)

    def test_deterministic(self):
        claims = _claims(is_creator=False)
        results = []
        for _ in range(3):
            try:
                authorize(claims, Capability.CREATOR_ONLY)
                results.append("allow")
            except Forbidden:
                results.append("deny")
        assert results == ["deny", "deny", "deny"]
