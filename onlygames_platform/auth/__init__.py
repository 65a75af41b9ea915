"""Authentication / authorization.

Auth is deliberately small:

- Users table (username/email + password hash + is_creator flag)
- Stateless JWT access tokens, `Authorization: Bearer <token>`
- One capability check that matters: creator-only routes

Nothing about a session is stored server-side; logout and refresh are client
concerns (see `onlygames_platform.client`).
"""

from .crud import authenticate, create_user, find_by_email_or_username, register_user, save_user
from .deps import get_current_claims, get_current_user, require_creator
from .permissions import Capability, authorize
from .security import hash_password, issue_token, verify_password, verify_token

__all__ = [
    "authenticate",
    "authorize",
    "Capability",
    "create_user",
    "find_by_email_or_username",
    "get_current_claims",
    "get_current_user",
    "hash_password",
    "issue_token",
    "register_user",
    "require_creator",
    "save_user",
    "verify_password",
    "verify_token",
]
