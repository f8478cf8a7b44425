from __future__ import annotations

from datetime import datetime, timedelta

from app.entitlements.errors import (
    AlreadyBoundError,
    BadRequestError,
    KeyExpiredError,
    KeyInactiveError,
    WrongKeyKindError,
)
from app.entitlements.keys.types import ActivationDecision, KeySnapshot
from app.entitlements.types import KeyKind

MAX_BULK_QUANTITY = 1000


def is_expired(expires_at: datetime | None, *, now_utc: datetime) -> bool:
    return expires_at is not None and expires_at < now_utc


def evaluate_activation(
    snapshot: KeySnapshot,
    *,
    email: str,
    expected_kind: KeyKind,
    now_utc: datetime,
) -> ActivationDecision:
    """Apply the activation checks in their fixed order.

    The email is expected normalized. Nothing here writes; a BIND decision still
    has to win the conditional bind at the storage layer.
    """
    if not snapshot.is_active:
        raise KeyInactiveError("activation key is deactivated")
    if is_expired(snapshot.expires_at, now_utc=now_utc):
        raise KeyExpiredError("activation key has expired")
    if snapshot.kind != expected_kind:
        raise WrongKeyKindError(
            f"activation key is for {snapshot.kind.value}, not {expected_kind.value}"
        )
    if snapshot.bound_email is not None:
        if snapshot.bound_email.lower() == email.lower():
            return ActivationDecision.ALREADY_OWNED
        raise AlreadyBoundError("activation key is already bound to another email")
    return ActivationDecision.BIND


def is_key_valid_for_access(snapshot: KeySnapshot, *, now_utc: datetime) -> bool:
    return (
        snapshot.is_active
        and snapshot.bound_email is not None
        and snapshot.activated_at is not None
        and not is_expired(snapshot.expires_at, now_utc=now_utc)
    )


def activation_rate(*, total: int, activated: int) -> int:
    if total <= 0:
        return 0
    return int((100 * activated / total) + 0.5)


def feature_window_end(
    *,
    activated_at: datetime,
    expires_at: datetime | None,
    window_days: int,
) -> datetime:
    window_end = activated_at + timedelta(days=window_days)
    if expires_at is not None and expires_at < window_end:
        return expires_at
    return window_end


def validate_bulk_quantity(quantity: int) -> None:
    if quantity < 1 or quantity > MAX_BULK_QUANTITY:
        raise BadRequestError(f"quantity must be between 1 and {MAX_BULK_QUANTITY}")
