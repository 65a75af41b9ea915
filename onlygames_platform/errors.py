"""Error taxonomy for authentication and authorization.

Every error carries a short machine code (the same string the HTTP layer puts
in `detail`) plus an HTTP status, so the server and the client session manager
speak the same vocabulary.

Validation problems (blank username, short password, ...) stay plain
`ValueError("<code>")`, matching the rest of the codebase.
"""

from __future__ import annotations

from typing import Dict, Type


class AuthError(Exception):
    code = "auth_error"
    status_code = 401
    default_message = "Authentication failed."

    def __init__(self, message: str | None = None, *, code: str | None = None):
        if code:
            self.code = code
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCredentials(AuthError):
    """Unknown identity or wrong password. The two are never distinguished."""

    code = "invalid_credentials"
    status_code = 401
    default_message = "Invalid email or password."


class DuplicateIdentity(AuthError):
    code = "duplicate_identity"
    status_code = 409
    default_message = "A user with that username or email already exists."


class InvalidToken(AuthError):
    """Malformed, forged or otherwise unusable token. Re-authenticate."""

    code = "token_invalid"
    status_code = 401
    default_message = "Invalid token."


class ExpiredToken(AuthError):
    """Correctly signed but past its expiry. Recoverable via refresh."""

    code = "token_expired"
    status_code = 401
    default_message = "Token has expired."


class Forbidden(AuthError):
    code = "forbidden"
    status_code = 403
    default_message = "Access denied."


class ConfigurationError(AuthError):
    code = "server_misconfigured"
    status_code = 500
    default_message = "Authentication is not configured."


ERRORS_BY_CODE: Dict[str, Type[AuthError]] = {
    cls.code: cls
    for cls in (InvalidCredentials, DuplicateIdentity, InvalidToken, ExpiredToken, Forbidden, ConfigurationError)
}


def error_from_code(code: str, *, status_code: int | None = None, message: str | None = None) -> AuthError:
    """Rebuild an AuthError from a wire `detail` code.

    Codes without a dedicated class (e.g. `creator_required`) fall back on the
    HTTP status: 403 becomes Forbidden, anything else a plain AuthError.
    """
    cls = ERRORS_BY_CODE.get(code)
    if cls is not None:
        return cls(message)
    if status_code == 403:
        return Forbidden(message, code=code)
    err = AuthError(message, code=code)
    if status_code is not None:
        err.status_code = status_code
    return err
