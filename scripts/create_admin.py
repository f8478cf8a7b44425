from __future__ import annotations

import argparse
import asyncio
import getpass

from app.db.session import SessionLocal
from app.entitlements.errors import EntitlementError
from app.services.auth import AuthService


async def _create(*, email: str, password: str, name: str | None) -> int:
    async with SessionLocal.begin() as session:
        admin = await AuthService.create_admin(session, email=email, password=password, name=name)
        return admin.id


def main() -> int:
    parser = argparse.ArgumentParser(description="Create an admin account")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name")
    args = parser.parse_args()

    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        print("create_admin: passwords do not match")  # noqa: T201
        return 1

    try:
        admin_id = asyncio.run(_create(email=args.email, password=password, name=args.name))
    except EntitlementError as exc:
        print(f"create_admin: {exc.code} {exc.message}")  # noqa: T201
        return 1
    print(f"create_admin: created admin_id={admin_id}")  # noqa: T201
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
