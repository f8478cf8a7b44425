from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime

PASSWORD_HASH_ALGORITHM = "pbkdf2_sha256"
PASSWORD_HASH_ITERATIONS = 260_000
SESSION_COOKIE_NAME = "entitlement_session"


@dataclass(frozen=True, slots=True)
class SessionClaims:
    actor_kind: str
    actor_id: int
    expires_at: int


def hash_password(password: str, *, salt: str | None = None) -> str:
    salt_value = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt_value.encode("utf-8"),
        PASSWORD_HASH_ITERATIONS,
    )
    return f"{PASSWORD_HASH_ALGORITHM}${PASSWORD_HASH_ITERATIONS}${salt_value}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algorithm, iterations, salt, expected = password_hash.split("$", 3)
    except ValueError:
        return False
    if algorithm != PASSWORD_HASH_ALGORITHM or not iterations.isdigit():
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        int(iterations),
    )
    return secrets.compare_digest(digest.hex(), expected)


def _sign(payload: str, *, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def issue_session_token(
    *,
    actor_kind: str,
    actor_id: int,
    secret: str,
    ttl_seconds: int,
    now_utc: datetime,
) -> str:
    expires_at = int(now_utc.timestamp()) + ttl_seconds
    payload = f"{actor_kind}:{actor_id}:{expires_at}"
    encoded = base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")
    return f"{encoded}.{_sign(payload, secret=secret)}"


def verify_session_token(
    token: str | None,
    *,
    secret: str,
    now_utc: datetime,
) -> SessionClaims | None:
    if not token or "." not in token:
        return None
    encoded, signature = token.rsplit(".", 1)
    try:
        padded = encoded + "=" * (-len(encoded) % 4)
        payload = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        return None
    if not secrets.compare_digest(_sign(payload, secret=secret), signature):
        return None

    parts = payload.split(":")
    if len(parts) != 3 or parts[0] not in {"USER", "ADMIN"}:
        return None
    try:
        actor_id = int(parts[1])
        expires_at = int(parts[2])
    except ValueError:
        return None
    if actor_id <= 0 or expires_at < int(now_utc.timestamp()):
        return None
    return SessionClaims(actor_kind=parts[0], actor_id=actor_id, expires_at=expires_at)
