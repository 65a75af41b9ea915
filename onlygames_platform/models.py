from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional


VERIFICATION_STATUSES = ("pending", "verified", "rejected")


@dataclass(frozen=True)
class CreatorProfile:
    content_count: int = 0
    total_revenue: float = 0
    subscriber_count: int = 0
    content_categories: List[str] = field(default_factory=list)
    featured: bool = False
    verification_status: str = "pending"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content_count": int(self.content_count),
            "total_revenue": self.total_revenue,
            "subscriber_count": int(self.subscriber_count),
            "content_categories": list(self.content_categories),
            "featured": bool(self.featured),
            "verification_status": self.verification_status,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CreatorProfile":
        status = str(d.get("verification_status") or "pending")
        if status not in VERIFICATION_STATUSES:
            raise ValueError("invalid_verification_status")
        return cls(
            content_count=int(d.get("content_count") or 0),
            total_revenue=d.get("total_revenue") or 0,
            subscriber_count=int(d.get("subscriber_count") or 0),
            content_categories=[str(c) for c in (d.get("content_categories") or [])],
            featured=bool(d.get("featured")),
            verification_status=status,
        )


@dataclass(frozen=True)
class CredentialRecord:
    """A row of the users table.

    Invariant: `creator_profile` is not None iff `is_creator` is True.
    """

    user_id: int
    username: str
    email: str
    password_hash: str
    is_creator: bool = False
    creator_profile: Optional[CreatorProfile] = None
    is_active: bool = True
    created_at: str = ""
    updated_at: str = ""
    last_login_at: Optional[str] = None

    def __post_init__(self) -> None:
        if self.is_creator and self.creator_profile is None:
            raise ValueError("creator_profile_missing")
        if not self.is_creator and self.creator_profile is not None:
            raise ValueError("creator_profile_without_creator")

    def become_creator(self) -> "CredentialRecord":
        """Role transition user -> creator, initializing the creator profile.

        Already-creator records are returned unchanged.
        """
        if self.is_creator:
            return self
        return replace(self, is_creator=True, creator_profile=CreatorProfile())


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims decoded from an access token."""

    user_id: int
    issued_at: datetime
    expires_at: datetime
    is_creator: bool = False
