from __future__ import annotations

import re
import secrets
from datetime import datetime, timezone

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_PREFIX = "XFLEX"
CODE_GROUP_LENGTH = 5
CODE_GROUPS = 3

_KEY_CODE_PATTERN = re.compile(
    rf"^{CODE_PREFIX}(-[{CODE_ALPHABET}]{{{CODE_GROUP_LENGTH}}}){{{CODE_GROUPS}}}$"
)


def normalize_key_code(raw_code: str) -> str:
    return raw_code.strip().upper()


def normalize_email(raw_email: str) -> str:
    return raw_email.strip().lower()


def is_well_formed_key_code(code: str) -> bool:
    return _KEY_CODE_PATTERN.fullmatch(code) is not None


def generate_key_code() -> str:
    groups = [
        "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_GROUP_LENGTH))
        for _ in range(CODE_GROUPS)
    ]
    return "-".join([CODE_PREFIX, *groups])


def generate_key_codes(*, count: int, existing_codes: set[str] | None = None) -> list[str]:
    if count <= 0:
        raise ValueError("count must be positive")

    existing = existing_codes if existing_codes is not None else set()
    generated: list[str] = []
    attempts = 0
    max_attempts = max(100, count * 50)

    while len(generated) < count:
        attempts += 1
        if attempts > max_attempts:
            raise RuntimeError("unable to generate unique activation key codes")

        code = generate_key_code()
        if code in existing:
            continue

        existing.add(code)
        generated.append(code)

    return generated


def parse_utc_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
