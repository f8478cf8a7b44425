from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.enrollments import Enrollment
from app.db.repo.courses_repo import CoursesRepo
from app.db.repo.enrollments_repo import EnrollmentsRepo
from app.entitlements.errors import ConflictError, ForbiddenError, NotFoundError
from app.entitlements.subscriptions.rules import PAYMENT_STATUS_COMPLETED, PAYMENT_STATUS_KEY
from app.entitlements.types import Actor

logger = structlog.get_logger(__name__)


class EnrollmentService:
    @staticmethod
    async def ensure_enrolled(
        session: AsyncSession,
        *,
        actor: Actor,
        course_id: int,
        now_utc: datetime,
        activation_key_id: int | None = None,
    ) -> bool:
        """Create the enrollment if it is missing. Returns True when a row was created."""
        created_id = await EnrollmentsRepo.create_if_absent(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            course_id=course_id,
            now_utc=now_utc,
            payment_status=(
                PAYMENT_STATUS_KEY if activation_key_id is not None else PAYMENT_STATUS_COMPLETED
            ),
            activated_via_key=activation_key_id is not None,
            activation_key_id=activation_key_id,
        )
        if created_id is not None:
            logger.info(
                "enrollment_created",
                enrollment_id=created_id,
                course_id=course_id,
                actor_kind=actor.kind.value,
                actor_id=actor.id,
                via_key=activation_key_id is not None,
            )
        return created_id is not None

    @staticmethod
    async def enroll(
        session: AsyncSession,
        *,
        actor: Actor,
        course_id: int,
        now_utc: datetime,
    ) -> Enrollment:
        course = await CoursesRepo.get_by_id(session, course_id)
        if course is None:
            raise NotFoundError("course not found")

        created = await EnrollmentService.ensure_enrolled(
            session,
            actor=actor,
            course_id=course_id,
            now_utc=now_utc,
        )
        if not created:
            raise ConflictError("already enrolled in this course")

        enrollment = await EnrollmentsRepo.get(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            course_id=course_id,
        )
        assert enrollment is not None
        return enrollment

    @staticmethod
    async def require_course_access(
        session: AsyncSession,
        *,
        actor: Actor,
        course_id: int,
    ) -> Enrollment | None:
        enrollment = await EnrollmentsRepo.get(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            course_id=course_id,
        )
        if enrollment is not None or actor.is_admin:
            return enrollment
        raise ForbiddenError("no access to this course")
