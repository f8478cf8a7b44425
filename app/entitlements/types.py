from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ActorKind(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


@dataclass(frozen=True, slots=True)
class Actor:
    kind: ActorKind
    id: int
    email: str
    is_publisher: bool = False

    @property
    def is_admin(self) -> bool:
        return self.kind == ActorKind.ADMIN


class Feature(str, Enum):
    AI_ASSISTANT = "AI_ASSISTANT"
    RECOMMENDATION_FEED = "RECOMMENDATION_FEED"


class KeyKind(str, Enum):
    COURSE = "COURSE"
    AI_ASSISTANT = "AI_ASSISTANT"
    RECOMMENDATION_FEED = "RECOMMENDATION_FEED"

    @classmethod
    def for_feature(cls, feature: Feature) -> KeyKind:
        return cls(feature.value)

    @property
    def feature(self) -> Feature | None:
        if self == KeyKind.COURSE:
            return None
        return Feature(self.value)


LEGACY_AI_ASSISTANT_COURSE_ID = 0
LEGACY_RECOMMENDATION_FEED_COURSE_ID = -1


@dataclass(frozen=True, slots=True)
class KeyTarget:
    """What an activation key grants: one course, or one feature family."""

    kind: KeyKind
    course_id: int | None = None

    def __post_init__(self) -> None:
        if self.kind == KeyKind.COURSE:
            if self.course_id is None or self.course_id <= 0:
                raise ValueError("course keys require a positive course_id")
        elif self.course_id is not None:
            raise ValueError(f"{self.kind.value} keys must not target a course")

    @classmethod
    def course(cls, course_id: int) -> KeyTarget:
        return cls(kind=KeyKind.COURSE, course_id=course_id)

    @classmethod
    def for_feature(cls, feature: Feature) -> KeyTarget:
        return cls(kind=KeyKind.for_feature(feature))

    @classmethod
    def from_legacy_course_id(cls, legacy_course_id: int) -> KeyTarget:
        if legacy_course_id == LEGACY_AI_ASSISTANT_COURSE_ID:
            return cls(kind=KeyKind.AI_ASSISTANT)
        if legacy_course_id == LEGACY_RECOMMENDATION_FEED_COURSE_ID:
            return cls(kind=KeyKind.RECOMMENDATION_FEED)
        if legacy_course_id > 0:
            return cls.course(legacy_course_id)
        raise ValueError(f"unsupported legacy course id: {legacy_course_id}")

    @property
    def legacy_course_id(self) -> int:
        if self.kind == KeyKind.AI_ASSISTANT:
            return LEGACY_AI_ASSISTANT_COURSE_ID
        if self.kind == KeyKind.RECOMMENDATION_FEED:
            return LEGACY_RECOMMENDATION_FEED_COURSE_ID
        assert self.course_id is not None
        return self.course_id
