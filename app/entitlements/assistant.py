from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.models.analysis_messages import AnalysisMessage
from app.db.models.subscriptions import Subscription
from app.db.repo.analysis_messages_repo import AnalysisMessagesRepo
from app.entitlements.errors import BadRequestError, ForbiddenError
from app.entitlements.subscriptions.rules import PAYMENT_STATUS_KEY, has_remaining_quota
from app.entitlements.subscriptions.service import SubscriptionLedger
from app.entitlements.types import Actor, Feature
from app.services.analysis_client import AnalysisRequest, analyze

logger = structlog.get_logger(__name__)

MAX_HISTORY_LIMIT = 200


class AnalysisFlow(str, Enum):
    FIRST_TIMEFRAME = "m15"
    SECOND_TIMEFRAME = "h4"
    SINGLE = "single"
    FEEDBACK = "feedback"
    FEEDBACK_WITH_IMAGE = "feedback_with_image"


_IMAGE_REQUIRED = {
    AnalysisFlow.FIRST_TIMEFRAME,
    AnalysisFlow.SECOND_TIMEFRAME,
    AnalysisFlow.SINGLE,
    AnalysisFlow.FEEDBACK_WITH_IMAGE,
}
_TEXT_REQUIRED = {AnalysisFlow.FEEDBACK, AnalysisFlow.FEEDBACK_WITH_IMAGE}


@dataclass(frozen=True, slots=True)
class AnalysisInput:
    language: str = "en"
    timeframe: str | None = None
    image_url: str | None = None
    user_analysis: str | None = None


@dataclass(slots=True)
class AnalysisOutcome:
    flow: AnalysisFlow
    text: str
    subscription_id: int
    user_message_id: int
    assistant_message_id: int


def _validate_input(flow: AnalysisFlow, payload: AnalysisInput) -> None:
    if flow in _IMAGE_REQUIRED and not payload.image_url:
        raise BadRequestError(f"{flow.value} analysis requires a chart image")
    if flow in _TEXT_REQUIRED and not (payload.user_analysis or "").strip():
        raise BadRequestError(f"{flow.value} analysis requires the user's analysis text")


def _user_message_content(flow: AnalysisFlow, payload: AnalysisInput) -> str:
    if payload.user_analysis:
        return payload.user_analysis.strip()
    timeframe = payload.timeframe or "M15"
    if flow == AnalysisFlow.SECOND_TIMEFRAME:
        timeframe = payload.timeframe or "H4"
    return f"{flow.value} analysis request ({timeframe})"


class AssistantService:
    @staticmethod
    async def ensure_access(
        session: AsyncSession,
        *,
        actor: Actor,
        now_utc: datetime,
    ) -> Subscription:
        subscription = await SubscriptionLedger.get_active(
            session,
            actor=actor,
            feature=Feature.AI_ASSISTANT,
            now_utc=now_utc,
        )
        if subscription is None:
            raise ForbiddenError("no active AI assistant subscription")
        if (
            subscription.payment_status != PAYMENT_STATUS_KEY
            and not get_settings().direct_payment_enabled
        ):
            raise ForbiddenError("AI assistant access requires an activation key")
        if not actor.is_admin and not has_remaining_quota(
            messages_used=subscription.messages_used,
            messages_limit=subscription.messages_limit,
        ):
            raise ForbiddenError("message quota exhausted")
        return subscription

    @staticmethod
    async def _previous_first_timeframe(session: AsyncSession, *, actor: Actor) -> str:
        previous = await AnalysisMessagesRepo.get_latest_assistant(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            analysis_type=AnalysisFlow.FIRST_TIMEFRAME.value,
        )
        if previous is None:
            raise BadRequestError("run the M15 analysis before requesting the H4 analysis")
        return previous.content

    @staticmethod
    async def analyze(
        session: AsyncSession,
        *,
        actor: Actor,
        flow: AnalysisFlow,
        payload: AnalysisInput,
        now_utc: datetime,
    ) -> AnalysisOutcome:
        subscription = await AssistantService.ensure_access(session, actor=actor, now_utc=now_utc)
        _validate_input(flow, payload)

        previous_analysis = None
        if flow == AnalysisFlow.SECOND_TIMEFRAME:
            previous_analysis = await AssistantService._previous_first_timeframe(
                session,
                actor=actor,
            )

        text = await analyze(
            AnalysisRequest(
                flow=flow.value,
                language=payload.language,
                timeframe=payload.timeframe,
                image_url=payload.image_url,
                previous_analysis=previous_analysis,
                user_analysis=payload.user_analysis,
            )
        )

        user_message = await AnalysisMessagesRepo.create(
            session,
            message=AnalysisMessage(
                actor_kind=actor.kind.value,
                actor_id=actor.id,
                subscription_id=subscription.id,
                role="user",
                content=_user_message_content(flow, payload),
                image_url=payload.image_url,
                analysis_type=flow.value,
                created_at=now_utc,
            ),
        )
        assistant_message = await AnalysisMessagesRepo.create(
            session,
            message=AnalysisMessage(
                actor_kind=actor.kind.value,
                actor_id=actor.id,
                subscription_id=subscription.id,
                role="assistant",
                content=text,
                image_url=None,
                analysis_type=flow.value,
                created_at=now_utc,
            ),
        )

        consumed = await SubscriptionLedger.consume_unit(
            session,
            subscription_id=subscription.id,
            now_utc=now_utc,
            unlimited=actor.is_admin,
        )
        if not consumed:
            raise ForbiddenError("message quota exhausted")

        logger.info(
            "assistant_analysis_completed",
            flow=flow.value,
            subscription_id=subscription.id,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
        )
        return AnalysisOutcome(
            flow=flow,
            text=text,
            subscription_id=subscription.id,
            user_message_id=user_message.id,
            assistant_message_id=assistant_message.id,
        )

    @staticmethod
    async def messages(
        session: AsyncSession,
        *,
        actor: Actor,
        limit: int = 50,
    ) -> list[AnalysisMessage]:
        bounded = max(1, min(limit, MAX_HISTORY_LIMIT))
        return await AnalysisMessagesRepo.list_recent(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            limit=bounded,
        )
