from __future__ import annotations

import argparse
import asyncio
import csv
from datetime import datetime, timezone
from pathlib import Path

from app.db.repo.admins_repo import AdminsRepo
from app.db.session import SessionLocal
from app.entitlements.keys.codes import normalize_email, parse_utc_datetime
from app.entitlements.keys.rules import MAX_BULK_QUANTITY
from app.entitlements.keys.service import KeyRegistryService
from app.entitlements.types import KeyKind, KeyTarget

CSV_HEADER = ("code", "key_id", "kind", "course_id", "expires_at")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Activation key batch issuing tool")
    parser.add_argument("--kind", choices=[kind.value for kind in KeyKind], required=True)
    parser.add_argument("--course-id", type=int)
    parser.add_argument("--quantity", type=int, required=True)
    parser.add_argument("--admin-email", required=True, help="recorded as the issuing admin")
    parser.add_argument("--notes")
    parser.add_argument("--expires-at", help="ISO datetime; naive values are read as UTC")
    parser.add_argument("--output-csv", type=Path)
    parser.add_argument("--dry-run", action="store_true", help="issue inside a rolled back transaction")
    return parser.parse_args()


def _target_from_args(args: argparse.Namespace) -> KeyTarget:
    if not 1 <= args.quantity <= MAX_BULK_QUANTITY:
        raise ValueError(f"--quantity must be in range 1..{MAX_BULK_QUANTITY}")
    kind = KeyKind(args.kind)
    if kind == KeyKind.COURSE:
        if args.course_id is None:
            raise ValueError("--course-id is required for COURSE keys")
        return KeyTarget.course(args.course_id)
    if args.course_id is not None:
        raise ValueError(f"--course-id must not be used for {kind.value} keys")
    return KeyTarget(kind=kind)


async def _issue(args: argparse.Namespace, target: KeyTarget) -> list[tuple[object, ...]]:
    now_utc = datetime.now(timezone.utc)
    expires_at = parse_utc_datetime(args.expires_at) if args.expires_at else None
    if expires_at is not None and expires_at <= now_utc:
        raise ValueError("--expires-at must be in the future")

    async with SessionLocal() as session:
        transaction = await session.begin()
        try:
            admin = await AdminsRepo.get_by_email(session, normalize_email(args.admin_email))
            if admin is None:
                raise ValueError(f"admin not found: {args.admin_email}")
            keys = await KeyRegistryService.issue_bulk(
                session,
                target=target,
                quantity=args.quantity,
                created_by=admin.id,
                now_utc=now_utc,
                notes=args.notes,
                expires_at=expires_at,
            )
            rows = [
                (
                    key.code,
                    "" if args.dry_run else key.id,
                    key.kind,
                    key.target_course_id or "",
                    key.expires_at.isoformat() if key.expires_at else "",
                )
                for key in keys
            ]
        except Exception:
            await transaction.rollback()
            raise

        if args.dry_run:
            await transaction.rollback()
        else:
            await transaction.commit()
        return rows


def _write_output(path: Path, rows: list[tuple[object, ...]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as file:
        writer = csv.writer(file)
        writer.writerow(CSV_HEADER)
        writer.writerows(rows)


async def _run() -> int:
    args = _parse_args()
    target = _target_from_args(args)
    rows = await _issue(args, target)

    output_csv = args.output_csv or Path(f"reports/activation_keys_{target.kind.value.lower()}.csv")
    _write_output(output_csv, rows)
    print(  # noqa: T201
        f"kind={target.kind.value} issued={len(rows)} "
        f"committed={0 if args.dry_run else len(rows)} output={output_csv}"
    )
    return 0


def main() -> int:
    return asyncio.run(_run())


if __name__ == "__main__":
    raise SystemExit(main())
