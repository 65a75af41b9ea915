from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional


def _debug(msg: str) -> None:
    print(f"[client] {msg}")


@dataclass(frozen=True)
class StoredSession:
    """What the client keeps between runs.

    `identity` is a cached snapshot of the user for display only; it is never
    used to decide what the user may do.
    """

    token: str
    identity: Optional[Dict[str, Any]] = None


class TokenStore:
    def load(self) -> Optional[StoredSession]:
        raise NotImplementedError

    def save(self, session: StoredSession) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryTokenStore(TokenStore):
    def __init__(self, session: Optional[StoredSession] = None):
        self._session = session

    def load(self) -> Optional[StoredSession]:
        return self._session

    def save(self, session: StoredSession) -> None:
        self._session = session

    def clear(self) -> None:
        self._session = None


class FileTokenStore(TokenStore):
    """JSON file on disk (0600), replaced atomically on every save."""

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def load(self) -> Optional[StoredSession]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (ValueError, OSError):
            _debug(f"Ignoring unreadable session file {self.path}")
            return None
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            return None
        identity = data.get("identity")
        return StoredSession(token=str(token), identity=identity if isinstance(identity, dict) else None)

    def save(self, session: StoredSession) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps({"token": session.token, "identity": session.identity}, ensure_ascii=False)
        fd, tmp = tempfile.mkstemp(prefix=".session-", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
        except Exception:
            Path(tmp).unlink(missing_ok=True)
            raise

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
