"""Client-side session handling for the OnlyGames API.

Usage:

    session = AuthSession("http://localhost:8000", store=FileTokenStore("~/.onlygames/session.json"))
    session.login("a@x.com", "secret1")
    session.start_auto_refresh()
    profile = session.get("/auth/me").json()
"""

from .session import AuthSession, SessionState
from .store import FileTokenStore, MemoryTokenStore, StoredSession, TokenStore

__all__ = [
    "AuthSession",
    "SessionState",
    "FileTokenStore",
    "MemoryTokenStore",
    "StoredSession",
    "TokenStore",
]
