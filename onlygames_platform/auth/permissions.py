from __future__ import annotations

from enum import Enum

from onlygames_platform.errors import Forbidden
from onlygames_platform.models import TokenClaims


class Capability(str, Enum):
    AUTHENTICATED = "authenticated"
    CREATOR_ONLY = "creator_only"


def authorize(claims: TokenClaims, capability: Capability) -> TokenClaims:
    """Allow or deny a request for `capability`.

    Only claims produced by `verify_token` are accepted; anything else (a raw
    payload dict, a cached identity snapshot) is rejected outright. Returns
    the claims on success so it can be chained inside dependencies.
    """
    if not isinstance(claims, TokenClaims):
        raise TypeError("authorize() requires verified TokenClaims")

    if capability == Capability.AUTHENTICATED:
        return claims
    if capability == Capability.CREATOR_ONLY:
        if claims.is_creator is True:
            return claims
        raise Forbidden("Creator privileges required.", code="creator_required")

    raise ValueError(f"unknown_capability: {capability}")
