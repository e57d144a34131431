import math

import pytest

from discount_wheel.errors import (
    EmptySegmentsError,
    InvalidSegmentError,
    NoWinnableSegmentsError,
    UnknownCouponError,
)
from discount_wheel.segments import SUM_EPSILON, Segment, SegmentValidator, normalize

from conftest import make_segment

KNOWN_CODES = {"METRO5", "METRO10", "METRO15", "SHIPFREE"}


def make_validator():
    return SegmentValidator(lambda code: code in KNOWN_CODES)


def test_validate_normalizes_active_probabilities():
    """Active probabilities are rescaled to sum to 1."""
    segments = [
        make_segment("A", "METRO5", 0.2),
        make_segment("B", "METRO10", 0.3),
        make_segment("C", "METRO15", 0.1),
    ]

    result = make_validator().validate(segments)

    assert abs(result.active_sum() - 1.0) < SUM_EPSILON
    assert math.isclose(result.segments[0].probability, 0.2 / 0.6)
    assert math.isclose(result.segments[1].probability, 0.5)
    assert [s.label for s in result] == ["A", "B", "C"]


def test_validate_near_miss_sum_is_normalized_not_rejected():
    segments = [make_segment("A", "METRO5", 0.3333), make_segment("B", "METRO10", 0.6666)]

    result = make_validator().validate(segments)

    assert abs(result.active_sum() - 1.0) < SUM_EPSILON


def test_validate_keeps_inactive_probability():
    """Inactive segments pass through untouched and do not count toward the sum."""
    segments = [
        make_segment("A", "METRO5", 0.5),
        make_segment("B", "METRO10", 0.9, active=False),
    ]

    result = make_validator().validate(segments)

    assert result.segments[0].probability == 1.0
    assert result.segments[1].probability == 0.9
    assert not result.segments[1].active


def test_validate_rejects_empty():
    with pytest.raises(EmptySegmentsError):
        make_validator().validate([])


def test_validate_rejects_all_zero_active():
    segments = [
        make_segment("A", "METRO5", 0.0),
        make_segment("B", "METRO10", 0.0),
        make_segment("C", "METRO15", 0.7, active=False),
    ]

    with pytest.raises(NoWinnableSegmentsError):
        make_validator().validate(segments)


def test_validate_rejects_unknown_coupon():
    segments = [make_segment("A", "METRO5", 0.5), make_segment("B", "NOPE", 0.5)]

    with pytest.raises(UnknownCouponError) as exc_info:
        make_validator().validate(segments)

    assert exc_info.value.coupon_code == "NOPE"
    assert exc_info.value.index == 1
    assert exc_info.value.to_dict()["error"] == "UnknownCoupon"


def test_validate_checks_coupon_of_inactive_segment():
    segments = [make_segment("A", "METRO5", 1.0), make_segment("B", "GONE", 0.0, active=False)]

    with pytest.raises(UnknownCouponError):
        make_validator().validate(segments)


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"label": ""}, "label"),
        ({"reward": "  "}, "reward"),
        ({"coupon_code": ""}, "coupon_code"),
        ({"probability": 1.5}, "probability"),
        ({"probability": -0.1}, "probability"),
        ({"probability": float("nan")}, "probability"),
    ],
)
def test_validate_rejects_bad_fields(overrides, field):
    base = {"label": "A", "reward": "r", "coupon_code": "METRO5", "probability": 0.5}
    base.update(overrides)
    segments = [make_segment("Ok", "METRO10", 0.5), Segment(**base)]

    with pytest.raises(InvalidSegmentError) as exc_info:
        make_validator().validate(segments)

    assert exc_info.value.index == 1
    assert exc_info.value.field == field


def test_normalize_zero_sum():
    with pytest.raises(NoWinnableSegmentsError):
        normalize([make_segment("A", "METRO5", 0.0)])


def test_segment_dict_uses_wire_names():
    segment = make_segment("A", "METRO5", 0.5, category="books")

    data = segment.to_dict()

    assert data["couponCode"] == "METRO5"
    assert Segment.from_dict(data) == segment


def test_from_dict_treats_empty_category_as_unscoped():
    segment = Segment.from_dict(
        {"label": "A", "reward": "r", "couponCode": "METRO5", "probability": 1, "category": ""}
    )

    assert segment.category is None
    assert not segment.is_scoped
    assert segment.color == "#ffffff"
    assert segment.active


def test_validate_stores_catalog_form_of_coupon_code():
    segments = [make_segment("A", " metro5 ", 0.5), make_segment("B", "Metro10", 0.5, active=False)]

    result = make_validator().validate(segments)

    assert [s.coupon_code for s in result] == ["METRO5", "METRO10"]
