from __future__ import annotations

import re
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.activation_keys import ActivationKey
from app.db.repo.activation_keys_repo import ActivationKeysRepo
from app.db.repo.courses_repo import CoursesRepo
from app.entitlements.errors import (
    AlreadyBoundError,
    BadRequestError,
    KeyNotFoundError,
    NotFoundError,
)
from app.entitlements.keys.codes import generate_key_codes, normalize_email, normalize_key_code
from app.entitlements.keys.rules import (
    activation_rate,
    evaluate_activation,
    is_key_valid_for_access,
    validate_bulk_quantity,
)
from app.entitlements.keys.types import (
    ActivationDecision,
    KeyActivationResult,
    KeySnapshot,
    KeyStatistics,
)
from app.entitlements.types import KeyKind, KeyTarget

logger = structlog.get_logger(__name__)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_MAX_CODE_GENERATION_ROUNDS = 5


def snapshot_of(key: ActivationKey) -> KeySnapshot:
    return KeySnapshot(
        kind=KeyKind(key.kind),
        is_active=key.is_active,
        bound_email=key.bound_email,
        activated_at=key.activated_at,
        expires_at=key.expires_at,
    )


def require_email(raw_email: str) -> str:
    email = normalize_email(raw_email)
    if not _EMAIL_PATTERN.fullmatch(email):
        raise BadRequestError("a valid email is required")
    return email


class KeyRegistryService:
    @staticmethod
    async def _fresh_codes(session: AsyncSession, *, quantity: int) -> list[str]:
        seen: set[str] = set()
        codes: list[str] = []
        for _ in range(_MAX_CODE_GENERATION_ROUNDS):
            batch = generate_key_codes(count=quantity - len(codes), existing_codes=seen)
            taken = await ActivationKeysRepo.list_existing_codes(session, batch)
            codes.extend(code for code in batch if code not in taken)
            if len(codes) == quantity:
                return codes
        raise RuntimeError("unable to generate unique activation key codes")

    @staticmethod
    async def issue_bulk(
        session: AsyncSession,
        *,
        target: KeyTarget,
        quantity: int,
        created_by: int,
        now_utc: datetime,
        notes: str | None = None,
        expires_at: datetime | None = None,
    ) -> list[ActivationKey]:
        validate_bulk_quantity(quantity)
        if target.course_id is not None:
            course = await CoursesRepo.get_by_id(session, target.course_id)
            if course is None:
                raise NotFoundError("course not found")

        codes = await KeyRegistryService._fresh_codes(session, quantity=quantity)
        keys = [
            ActivationKey(
                code=code,
                kind=target.kind.value,
                target_course_id=target.course_id,
                bound_email=None,
                activated_at=None,
                is_active=True,
                created_by=created_by,
                notes=notes,
                expires_at=expires_at,
                created_at=now_utc,
            )
            for code in codes
        ]
        created = await ActivationKeysRepo.create_many(session, keys=keys)
        logger.info(
            "activation_keys_issued",
            kind=target.kind.value,
            course_id=target.course_id,
            quantity=len(created),
            created_by=created_by,
        )
        return created

    @staticmethod
    async def issue(
        session: AsyncSession,
        *,
        target: KeyTarget,
        created_by: int,
        now_utc: datetime,
        notes: str | None = None,
        expires_at: datetime | None = None,
    ) -> ActivationKey:
        keys = await KeyRegistryService.issue_bulk(
            session,
            target=target,
            quantity=1,
            created_by=created_by,
            now_utc=now_utc,
            notes=notes,
            expires_at=expires_at,
        )
        return keys[0]

    @staticmethod
    async def activate(
        session: AsyncSession,
        *,
        code: str,
        email: str,
        expected_kind: KeyKind,
        now_utc: datetime,
    ) -> KeyActivationResult:
        normalized_email = require_email(email)
        key = await ActivationKeysRepo.get_by_code(session, normalize_key_code(code))
        if key is None:
            raise KeyNotFoundError("activation key not found")

        decision = evaluate_activation(
            snapshot_of(key),
            email=normalized_email,
            expected_kind=expected_kind,
            now_utc=now_utc,
        )
        if decision == ActivationDecision.BIND:
            bound = await ActivationKeysRepo.bind_email_if_unbound(
                session,
                key_id=key.id,
                email=normalized_email,
                now_utc=now_utc,
            )
            await session.refresh(key)
            if not bound:
                # Lost the bind to a concurrent activation; the winner's email decides.
                decision = evaluate_activation(
                    snapshot_of(key),
                    email=normalized_email,
                    expected_kind=expected_kind,
                    now_utc=now_utc,
                )
                if decision == ActivationDecision.BIND:
                    raise AlreadyBoundError("activation key is already bound to another email")

        assert key.bound_email is not None and key.activated_at is not None
        idempotent_replay = decision == ActivationDecision.ALREADY_OWNED
        logger.info(
            "key_activated",
            key_id=key.id,
            kind=key.kind,
            course_id=key.target_course_id,
            idempotent_replay=idempotent_replay,
        )
        return KeyActivationResult(
            key_id=key.id,
            code=key.code,
            kind=KeyKind(key.kind),
            target_course_id=key.target_course_id,
            bound_email=key.bound_email,
            activated_at=key.activated_at,
            idempotent_replay=idempotent_replay,
            expires_at=key.expires_at,
        )

    @staticmethod
    async def _set_active(session: AsyncSession, *, key_id: int, is_active: bool) -> ActivationKey:
        key = await ActivationKeysRepo.set_active(session, key_id=key_id, is_active=is_active)
        if key is None:
            raise NotFoundError("activation key not found")
        logger.info("activation_key_state_changed", key_id=key_id, is_active=is_active)
        return key

    @staticmethod
    async def deactivate(session: AsyncSession, *, key_id: int) -> ActivationKey:
        return await KeyRegistryService._set_active(session, key_id=key_id, is_active=False)

    @staticmethod
    async def reactivate(session: AsyncSession, *, key_id: int) -> ActivationKey:
        return await KeyRegistryService._set_active(session, key_id=key_id, is_active=True)

    @staticmethod
    async def get_by_code(session: AsyncSession, *, code: str) -> ActivationKey:
        key = await ActivationKeysRepo.get_by_code(session, normalize_key_code(code))
        if key is None:
            raise KeyNotFoundError("activation key not found")
        return key

    @staticmethod
    async def list_by_email(session: AsyncSession, *, email: str) -> list[ActivationKey]:
        return await ActivationKeysRepo.list_by_bound_email(session, email=normalize_email(email))

    @staticmethod
    async def list_all(
        session: AsyncSession,
        *,
        kind: KeyKind | None = None,
        state: str | None = None,
        course_id: int | None = None,
    ) -> list[ActivationKey]:
        return await ActivationKeysRepo.list_keys(
            session,
            kind=None if kind is None else kind.value,
            course_id=course_id,
            state=state,
        )

    @staticmethod
    async def statistics(session: AsyncSession, *, kind: KeyKind | None = None) -> KeyStatistics:
        counts = await ActivationKeysRepo.count_by_state(
            session,
            kind=None if kind is None else kind.value,
        )
        return KeyStatistics(
            total=counts["total"],
            activated=counts["activated"],
            unused=counts["unused"],
            deactivated=counts["deactivated"],
            activation_rate=activation_rate(total=counts["total"], activated=counts["activated"]),
        )

    @staticmethod
    async def list_valid_bound_keys(
        session: AsyncSession,
        *,
        email: str,
        kind: KeyKind,
        now_utc: datetime,
        course_id: int | None = None,
    ) -> list[ActivationKey]:
        keys = await ActivationKeysRepo.list_valid_bound_keys(
            session,
            email=normalize_email(email),
            kind=kind.value,
            now_utc=now_utc,
            course_id=course_id,
        )
        return [key for key in keys if is_key_valid_for_access(snapshot_of(key), now_utc=now_utc)]

    @staticmethod
    async def has_course_access(
        session: AsyncSession,
        *,
        email: str,
        course_id: int,
        now_utc: datetime,
    ) -> bool:
        keys = await KeyRegistryService.list_valid_bound_keys(
            session,
            email=email,
            kind=KeyKind.COURSE,
            now_utc=now_utc,
            course_id=course_id,
        )
        return bool(keys)
