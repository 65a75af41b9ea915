"""OnlyGames creator/subscriber platform - Backend.

The backend owns identity and sessions:
- Users table (username/email + password hash + creator role flag)
- Stateless JWT access tokens (no server-side session table)
- A small client-side session manager that stores, refreshes and discards tokens

Everything else (profiles, bookings, uploads) talks to this core through
`Authorization: Bearer <token>` and the creator/user split.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
