"""Create or restore an administrator account.

Run from the repository root: python -m scripts.create_admin --email owner@example.com
"""

from __future__ import annotations

import argparse
import asyncio
import getpass

from app.core.database import close_engine, transaction
from app.modules.identity.repository import IdentityRepository
from app.modules.identity.service import IdentityService

MIN_PASSWORD_LENGTH = 8


async def _create_admin(email: str, password: str) -> bool:
    async with transaction() as session:
        service = IdentityService(IdentityRepository(session))
        await service.ensure_default_roles()
        _, created = await service.ensure_admin(email, password)
    return created


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create or restore the admin account for an email.")
    parser.add_argument("--email", required=True, help="Admin login email.")
    parser.add_argument(
        "--password",
        help="Admin password. Prompted for when omitted so it stays out of shell history.",
    )
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    password = args.password or getpass.getpass("Admin password: ")
    if len(password) < MIN_PASSWORD_LENGTH:
        print(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        return 1

    try:
        created = asyncio.run(_create_admin(args.email, password))
    except Exception as exc:
        print(f"Admin bootstrap failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())

    print(f"Admin {args.email} {'created' if created else 'updated'}.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
