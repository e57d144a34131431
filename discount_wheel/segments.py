# discount_wheel/segments.py
import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Iterable, Optional

from discount_wheel.errors import (
    EmptySegmentsError,
    InvalidSegmentError,
    NoWinnableSegmentsError,
    UnknownCouponError,
)

SUM_EPSILON = 1e-6


@dataclass(frozen=True)
class Segment:
    label: str
    reward: str
    coupon_code: str
    probability: float
    color: str = "#ffffff"
    active: bool = True
    category: Optional[str] = None

    @property
    def is_scoped(self) -> bool:
        return bool(self.category)

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "reward": self.reward,
            "couponCode": self.coupon_code,
            "probability": self.probability,
            "color": self.color,
            "active": self.active,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Segment":
        return cls(
            label=data["label"],
            reward=data["reward"],
            coupon_code=data["couponCode"],
            probability=float(data["probability"]),
            color=data.get("color") or "#ffffff",
            active=data.get("active", True),
            category=data.get("category") or None,
        )


@dataclass(frozen=True)
class SegmentSet:
    """Immutable snapshot of the wheel, in display order."""

    segments: tuple[Segment, ...]
    updated_by: str = "system"
    updated_at: Optional[datetime] = field(default=None, compare=False)

    def __iter__(self):
        return iter(self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    def active(self) -> list[Segment]:
        return [s for s in self.segments if s.active]

    def active_sum(self) -> float:
        return math.fsum(s.probability for s in self.segments if s.active)

    def to_dict(self) -> dict:
        return {
            "segments": [s.to_dict() for s in self.segments],
            "updatedBy": self.updated_by,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


def normalize_code(code: str) -> str:
    """Coupon codes are stored trimmed and upper-case."""
    return (code or "").strip().upper()


def _check_fields(index: int, segment: Segment) -> None:
    for name in ("label", "reward", "coupon_code"):
        value = getattr(segment, name)
        if not isinstance(value, str) or not value.strip():
            raise InvalidSegmentError(index, name, "must be a non-empty string")

    p = segment.probability
    # NaN fails both comparisons
    if not (0.0 <= p <= 1.0):
        raise InvalidSegmentError(index, "probability", f"must be within [0, 1], got {p!r}")


def normalize(segments: Iterable[Segment]) -> tuple[Segment, ...]:
    """Rescale active probabilities so they sum to 1; inactive ones are kept as is."""
    segments = tuple(segments)
    active_sum = math.fsum(s.probability for s in segments if s.active)
    if active_sum <= 0:
        raise NoWinnableSegmentsError()

    return tuple(
        replace(s, probability=s.probability / active_sum) if s.active else s
        for s in segments
    )


class SegmentValidator:
    """Checks a proposed wheel before it is committed.

    Returns a normalized SegmentSet or raises a ValidationError subclass.
    Nothing is persisted here.
    """

    def __init__(self, coupon_exists: Callable[[str], bool]):
        self.coupon_exists = coupon_exists

    def validate(self, segments: Iterable[Segment], updated_by: str = "admin") -> SegmentSet:
        segments = tuple(segments)
        if not segments:
            raise EmptySegmentsError()

        for index, segment in enumerate(segments):
            _check_fields(index, segment)

        if not any(s.active and s.probability > 0 for s in segments):
            raise NoWinnableSegmentsError()

        normalized = tuple(
            replace(s, coupon_code=normalize_code(s.coupon_code)) for s in normalize(segments)
        )

        for index, segment in enumerate(normalized):
            if not self.coupon_exists(segment.coupon_code):
                raise UnknownCouponError(segment.coupon_code, index)

        return SegmentSet(segments=normalized, updated_by=updated_by)
