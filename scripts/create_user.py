"""Create a user in the DB.

Usage:
  python scripts/create_user.py --username alice --email a@x.com --password '...' [--creator]

NOTE: This is intended for local/dev.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from onlygames_platform.auth.crud import public_user, register_user
from onlygames_platform.config import load_config
from onlygames_platform.db import connect, init_db


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--username", required=True)
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--creator", action="store_true", help="Create the account as a creator")
    args = ap.parse_args()

    cfg = load_config()
    init_db(cfg.DB_DSN)

    with connect(cfg.DB_DSN) as conn:
        record = register_user(
            conn,
            username=args.username,
            email=args.email,
            password=args.password,
            is_creator=args.creator,
            min_username_length=cfg.AUTH_MIN_USERNAME_LENGTH,
            min_password_length=cfg.AUTH_MIN_PASSWORD_LENGTH,
        )

    print("Created user:")
    print(public_user(record))


if __name__ == "__main__":
    main()
