from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.db.models.activation_keys import ActivationKey
from app.entitlements.keys.types import KeyActivationResult
from app.entitlements.types import KeyKind


class KeyActivateRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    email: str = Field(min_length=3, max_length=320)


class KeyRedeemRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)


class KeyActivationResponse(BaseModel):
    success: bool
    message: str
    key_id: int
    kind: str
    course_id: int | None = None
    activated_at: datetime
    idempotent_replay: bool


class CourseAccessResponse(BaseModel):
    has_access: bool


class KeyIssueRequest(BaseModel):
    kind: KeyKind = KeyKind.COURSE
    course_id: int | None = Field(default=None, gt=0)
    notes: str | None = Field(default=None, max_length=512)
    expires_at: datetime | None = None


class KeyBulkIssueRequest(KeyIssueRequest):
    quantity: int = Field(ge=1, le=1000)


class KeyResponse(BaseModel):
    id: int
    code: str
    kind: str
    course_id: int | None = None
    bound_email: str | None = None
    activated_at: datetime | None = None
    is_active: bool
    created_by: int
    notes: str | None = None
    expires_at: datetime | None = None
    created_at: datetime


class KeyListResponse(BaseModel):
    keys: list[KeyResponse]
    count: int = Field(ge=0)


class KeyStatisticsResponse(BaseModel):
    total: int = Field(ge=0)
    activated: int = Field(ge=0)
    unused: int = Field(ge=0)
    deactivated: int = Field(ge=0)
    activation_rate: int = Field(ge=0, le=100)


def key_as_response(key: ActivationKey) -> KeyResponse:
    return KeyResponse(
        id=key.id,
        code=key.code,
        kind=key.kind,
        course_id=key.target_course_id,
        bound_email=key.bound_email,
        activated_at=key.activated_at,
        is_active=key.is_active,
        created_by=key.created_by,
        notes=key.notes,
        expires_at=key.expires_at,
        created_at=key.created_at,
    )


def keys_as_response(keys: list[ActivationKey]) -> KeyListResponse:
    return KeyListResponse(keys=[key_as_response(key) for key in keys], count=len(keys))


def activation_as_response(result: KeyActivationResult, *, message: str) -> KeyActivationResponse:
    return KeyActivationResponse(
        success=True,
        message=message,
        key_id=result.key_id,
        kind=result.kind.value,
        course_id=result.target_course_id,
        activated_at=result.activated_at,
        idempotent_replay=result.idempotent_replay,
    )
