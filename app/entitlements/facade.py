from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.models.enrollments import Enrollment
from app.db.models.subscriptions import Subscription
from app.db.repo.subscriptions_repo import SubscriptionsRepo
from app.db.repo.users_repo import UsersRepo
from app.entitlements.errors import KeyExpiredError
from app.entitlements.keys.rules import feature_window_end
from app.entitlements.keys.service import KeyRegistryService
from app.entitlements.keys.types import KeyActivationResult
from app.entitlements.subscriptions.rules import PAYMENT_STATUS_KEY, feature_terms
from app.entitlements.subscriptions.service import SubscriptionLedger
from app.entitlements.types import Actor, Feature, KeyKind
from app.progression.enrollments import EnrollmentService
from app.services.identity import user_actor

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class FeatureRedemption:
    activation: KeyActivationResult
    subscription: Subscription | None


@dataclass(slots=True)
class SyncSummary:
    enrollments_created: int = 0
    subscriptions_created: int = 0


class EntitlementFacade:
    @staticmethod
    async def require_course_access(
        session: AsyncSession,
        *,
        actor: Actor,
        course_id: int,
    ) -> Enrollment | None:
        return await EnrollmentService.require_course_access(
            session,
            actor=actor,
            course_id=course_id,
        )

    @staticmethod
    async def activate_course_key(
        session: AsyncSession,
        *,
        code: str,
        email: str,
        now_utc: datetime,
    ) -> KeyActivationResult:
        result = await KeyRegistryService.activate(
            session,
            code=code,
            email=email,
            expected_kind=KeyKind.COURSE,
            now_utc=now_utc,
        )
        user = await UsersRepo.get_by_email(session, result.bound_email)
        if user is not None and result.target_course_id is not None:
            await EnrollmentService.ensure_enrolled(
                session,
                actor=user_actor(user),
                course_id=result.target_course_id,
                now_utc=now_utc,
                activation_key_id=result.key_id,
            )
        return result

    @staticmethod
    async def redeem_course_key(
        session: AsyncSession,
        *,
        actor: Actor,
        code: str,
        now_utc: datetime,
    ) -> KeyActivationResult:
        result = await KeyRegistryService.activate(
            session,
            code=code,
            email=actor.email,
            expected_kind=KeyKind.COURSE,
            now_utc=now_utc,
        )
        assert result.target_course_id is not None
        await EnrollmentService.ensure_enrolled(
            session,
            actor=actor,
            course_id=result.target_course_id,
            now_utc=now_utc,
            activation_key_id=result.key_id,
        )
        return result

    @staticmethod
    async def _grant_from_key(
        session: AsyncSession,
        *,
        actor: Actor,
        feature: Feature,
        activation: KeyActivationResult,
        now_utc: datetime,
    ) -> Subscription:
        terms = feature_terms(feature, get_settings())
        end_date = None
        if activation.idempotent_replay:
            current = await SubscriptionLedger.get_active(
                session,
                actor=actor,
                feature=feature,
                now_utc=now_utc,
            )
            # A replay never touches a live grant, whichever key produced it.
            if current is not None:
                return current

            end_date = feature_window_end(
                activated_at=activation.activated_at,
                expires_at=activation.expires_at,
                window_days=terms.duration_days,
            )
            if end_date < now_utc:
                raise KeyExpiredError("access window of this activation key has ended")

        return await SubscriptionLedger.grant_or_refresh(
            session,
            actor=actor,
            feature=feature,
            duration_days=terms.duration_days,
            messages_limit=terms.messages_limit,
            now_utc=now_utc,
            payment_status=PAYMENT_STATUS_KEY,
            activation_key_id=activation.key_id,
            end_date=end_date,
        )

    @staticmethod
    async def redeem_feature_key(
        session: AsyncSession,
        *,
        actor: Actor,
        feature: Feature,
        code: str,
        now_utc: datetime,
    ) -> FeatureRedemption:
        activation = await KeyRegistryService.activate(
            session,
            code=code,
            email=actor.email,
            expected_kind=KeyKind.for_feature(feature),
            now_utc=now_utc,
        )
        subscription = await EntitlementFacade._grant_from_key(
            session,
            actor=actor,
            feature=feature,
            activation=activation,
            now_utc=now_utc,
        )
        return FeatureRedemption(activation=activation, subscription=subscription)

    @staticmethod
    async def redeem_feature_key_by_email(
        session: AsyncSession,
        *,
        feature: Feature,
        code: str,
        email: str,
        now_utc: datetime,
    ) -> FeatureRedemption:
        activation = await KeyRegistryService.activate(
            session,
            code=code,
            email=email,
            expected_kind=KeyKind.for_feature(feature),
            now_utc=now_utc,
        )
        user = await UsersRepo.get_by_email(session, activation.bound_email)
        if user is None:
            return FeatureRedemption(activation=activation, subscription=None)

        subscription = await EntitlementFacade._grant_from_key(
            session,
            actor=user_actor(user),
            feature=feature,
            activation=activation,
            now_utc=now_utc,
        )
        return FeatureRedemption(activation=activation, subscription=subscription)

    @staticmethod
    async def sync_from_keys(
        session: AsyncSession,
        *,
        actor: Actor,
        now_utc: datetime,
    ) -> SyncSummary:
        """Recreate grants implied by keys already bound to the actor's email.

        Covers keys activated by email before the account existed. Existing
        subscriptions are left untouched so their usage is never reset.
        """
        summary = SyncSummary()
        course_keys = await KeyRegistryService.list_valid_bound_keys(
            session,
            email=actor.email,
            kind=KeyKind.COURSE,
            now_utc=now_utc,
        )
        for key in course_keys:
            if key.target_course_id is None:
                continue
            created = await EnrollmentService.ensure_enrolled(
                session,
                actor=actor,
                course_id=key.target_course_id,
                now_utc=now_utc,
                activation_key_id=key.id,
            )
            if created:
                summary.enrollments_created += 1

        settings = get_settings()
        for feature in (Feature.AI_ASSISTANT, Feature.RECOMMENDATION_FEED):
            keys = await KeyRegistryService.list_valid_bound_keys(
                session,
                email=actor.email,
                kind=KeyKind.for_feature(feature),
                now_utc=now_utc,
            )
            if not keys:
                continue
            key = keys[0]
            assert key.activated_at is not None
            terms = feature_terms(feature, settings)
            window_end = feature_window_end(
                activated_at=key.activated_at,
                expires_at=key.expires_at,
                window_days=terms.duration_days,
            )
            if window_end < now_utc:
                continue

            current = await SubscriptionsRepo.get_active(
                session,
                actor_kind=actor.kind.value,
                actor_id=actor.id,
                feature=feature.value,
            )
            if current is not None:
                continue

            await SubscriptionLedger.grant_or_refresh(
                session,
                actor=actor,
                feature=feature,
                duration_days=terms.duration_days,
                messages_limit=terms.messages_limit,
                now_utc=now_utc,
                payment_status=PAYMENT_STATUS_KEY,
                activation_key_id=key.id,
                end_date=window_end,
            )
            summary.subscriptions_created += 1

        if summary.enrollments_created or summary.subscriptions_created:
            logger.info(
                "entitlements_synced_from_keys",
                actor_kind=actor.kind.value,
                actor_id=actor.id,
                enrollments_created=summary.enrollments_created,
                subscriptions_created=summary.subscriptions_created,
            )
        return summary
