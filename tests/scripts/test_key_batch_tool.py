import argparse

import pytest

from app.entitlements.types import KeyKind
from scripts import key_batch_tool


def _args(**overrides) -> argparse.Namespace:
    values = {"kind": "COURSE", "course_id": 3, "quantity": 10}
    values.update(overrides)
    return argparse.Namespace(**values)


def test_course_batch_targets_course() -> None:
    target = key_batch_tool._target_from_args(_args())
    assert target.kind == KeyKind.COURSE
    assert target.course_id == 3


def test_feature_batch_rejects_course_id() -> None:
    with pytest.raises(ValueError, match="must not be used"):
        key_batch_tool._target_from_args(_args(kind="AI_ASSISTANT"))

    target = key_batch_tool._target_from_args(_args(kind="AI_ASSISTANT", course_id=None))
    assert target.course_id is None


@pytest.mark.parametrize("quantity", [0, 1001])
def test_quantity_bounds(quantity: int) -> None:
    with pytest.raises(ValueError, match="--quantity"):
        key_batch_tool._target_from_args(_args(quantity=quantity))


def test_course_batch_requires_course_id() -> None:
    with pytest.raises(ValueError, match="--course-id is required"):
        key_batch_tool._target_from_args(_args(course_id=None))
