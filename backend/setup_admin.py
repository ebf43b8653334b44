"""
Bootstrap the admin account.

Usage:
    python -m backend.setup_admin                          # ADMIN_* env defaults
    python -m backend.setup_admin --username root --password s3cret
"""

from __future__ import annotations

import argparse
import asyncio

import config_env
from backend.database import async_session, init_db
from backend.services.accounts import ensure_admin


async def setup(username: str, password: str, email: str):
    print("Initialising database schema ...")
    await init_db()

    async with async_session() as session:
        user, created = await ensure_admin(session, username, password, email)

    if created:
        print(f"Admin user created: {user.username}")
        print("Change the default password after the first login.")
    else:
        print(f"Admin user already exists: {user.username}")


def main():
    parser = argparse.ArgumentParser(description="Create the admin account if missing")
    parser.add_argument("--username", default=config_env.ADMIN_USERNAME)
    parser.add_argument("--password", default=config_env.ADMIN_PASSWORD)
    parser.add_argument("--email", default=config_env.ADMIN_EMAIL)
    args = parser.parse_args()
    asyncio.run(setup(args.username, args.password, args.email))


if __name__ == "__main__":
    main()
