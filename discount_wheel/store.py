# discount_wheel/store.py
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import sessionmaker

from discount_wheel.config import DEFAULT_COUPONS, DEFAULT_SEGMENTS, CouponConfig, SegmentConfig
from discount_wheel.errors import ConfigurationUnavailableError
from discount_wheel.models import CONFIGURATION_ROW_ID, Coupon, WheelConfiguration
from discount_wheel.segments import Segment, SegmentSet, SegmentValidator, normalize, normalize_code

logger = logging.getLogger(__name__)

Subscriber = Callable[[SegmentSet], None]


class CouponCatalog:
    """Read side of the coupon table; the wheel only asks whether a code exists."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def coupon_exists(self, code: str) -> bool:
        code = normalize_code(code)
        if not code:
            return False

        db = self.session_factory()
        try:
            return db.get(Coupon, code) is not None
        except DBAPIError as e:
            raise ConfigurationUnavailableError(str(e.orig)) from e
        finally:
            db.close()

    def seed(self, coupons: Iterable[CouponConfig] = DEFAULT_COUPONS) -> int:
        """Insert the coupons that are missing; returns how many were added."""
        db = self.session_factory()
        try:
            existing = set(db.scalars(select(Coupon.code)))
            added = 0
            for c in coupons:
                code = normalize_code(c.code)
                if code in existing:
                    continue
                db.add(Coupon(code=code, description=c.description, is_active=True))
                existing.add(code)
                added += 1
            db.commit()
        except IntegrityError:
            # another process seeded concurrently
            db.rollback()
            return 0
        finally:
            db.close()

        if added:
            logger.info("Seeded %d coupon(s)", added)
        return added


def _segment_from_config(cfg: SegmentConfig) -> Segment:
    return Segment(
        label=cfg.label,
        reward=cfg.reward,
        coupon_code=cfg.coupon_code,
        probability=cfg.probability,
        color=cfg.color,
        active=cfg.active,
        category=cfg.category,
    )


def _row_to_set(row: WheelConfiguration) -> SegmentSet:
    return SegmentSet(
        segments=tuple(Segment.from_dict(d) for d in row.segments),
        updated_by=row.updated_by,
        updated_at=row.updated_at,
    )


class ConfigurationStore:
    """Holds the single committed wheel configuration.

    Every load returns a fresh immutable snapshot, so a save that lands while
    a spin is in flight cannot change the segments that spin is using.
    """

    def __init__(self, session_factory: sessionmaker, validator: SegmentValidator):
        self.session_factory = session_factory
        self.validator = validator
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def load_configuration(self) -> SegmentSet:
        db = self.session_factory()
        try:
            row = db.get(WheelConfiguration, CONFIGURATION_ROW_ID)
            if row is None:
                row = self._seed(db)
            return _row_to_set(row)
        except DBAPIError as e:
            db.rollback()
            logger.error("Loading wheel configuration failed: %s", e)
            raise ConfigurationUnavailableError(str(e.orig)) from e
        finally:
            db.close()

    def _seed(self, db) -> WheelConfiguration:
        now = datetime.now(timezone.utc)
        segments = normalize(_segment_from_config(c) for c in DEFAULT_SEGMENTS)
        row = WheelConfiguration(
            id=CONFIGURATION_ROW_ID,
            segments=[s.to_dict() for s in segments],
            updated_by="system-seed",
            created_at=now,
            updated_at=now,
        )
        db.add(row)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            return db.get(WheelConfiguration, CONFIGURATION_ROW_ID)

        logger.info("Seeded default wheel configuration with %d segments", len(segments))
        return row

    def save_configuration(self, segments: Iterable[Segment], updated_by: str = "admin") -> SegmentSet:
        # raises ValidationError before anything is written
        validated = self.validator.validate(segments, updated_by=updated_by)

        now = datetime.now(timezone.utc)
        payload = [s.to_dict() for s in validated.segments]

        db = self.session_factory()
        try:
            row = db.get(WheelConfiguration, CONFIGURATION_ROW_ID)
            if row is None:
                row = WheelConfiguration(id=CONFIGURATION_ROW_ID, created_at=now)
                db.add(row)
            row.segments = payload
            row.updated_by = updated_by
            row.updated_at = now
            db.commit()
        except DBAPIError as e:
            db.rollback()
            logger.error("Saving wheel configuration failed: %s", e)
            raise ConfigurationUnavailableError(str(e.orig)) from e
        finally:
            db.close()

        committed = SegmentSet(segments=validated.segments, updated_by=updated_by, updated_at=now)
        logger.info("Wheel configuration updated by %s (%d segments)", updated_by, len(committed))
        self._notify(committed)
        return committed

    def _notify(self, segment_set: SegmentSet) -> None:
        for callback in list(self._subscribers):
            try:
                callback(segment_set)
            except Exception:
                logger.exception("Configuration subscriber %r failed", callback)
