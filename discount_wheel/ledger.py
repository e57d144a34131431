# discount_wheel/ledger.py
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import sessionmaker

from discount_wheel.errors import AlreadyClaimedError, ClaimUnresolvedError, LedgerUnavailableError
from discount_wheel.models import WheelClaim
from discount_wheel.segments import Segment

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands DateTime columns back without tzinfo; they are written as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class ClaimRecord:
    customer_id: str
    segment_label: str
    coupon_code: str
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "customerId": self.customer_id,
            "segmentLabel": self.segment_label,
            "couponCode": self.coupon_code,
            "createdAt": self.created_at.isoformat(),
        }


class ClaimLedger:
    """One claim per customer, ever.

    claim() must be an atomic insert-if-absent; there is no update or delete.
    """

    def claim(self, customer_id: str, segment: Segment) -> ClaimRecord:
        raise NotImplementedError

    def get(self, customer_id: str) -> Optional[ClaimRecord]:
        raise NotImplementedError

    def has_claimed(self, customer_id: str) -> bool:
        return self.get(customer_id) is not None


class SqlClaimLedger(ClaimLedger):
    """Ledger backed by the wheel_claims table; the primary key does the locking."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def claim(self, customer_id: str, segment: Segment) -> ClaimRecord:
        record = ClaimRecord(
            customer_id=customer_id,
            segment_label=segment.label,
            coupon_code=segment.coupon_code,
            created_at=datetime.now(timezone.utc),
        )

        db = self.session_factory()
        try:
            db.add(
                WheelClaim(
                    customer_id=record.customer_id,
                    segment_label=record.segment_label,
                    coupon_code=record.coupon_code,
                    created_at=record.created_at,
                )
            )

            try:
                db.flush()
            except IntegrityError:
                db.rollback()
                raise AlreadyClaimedError(customer_id)
            except DBAPIError as e:
                db.rollback()
                logger.error("Claim insert failed for %s: %s", customer_id, e)
                raise LedgerUnavailableError(str(e.orig)) from e

            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise AlreadyClaimedError(customer_id)
            except DBAPIError as e:
                # the row may or may not be durable now
                db.rollback()
                logger.error("Claim commit outcome unknown for %s: %s", customer_id, e)
                raise ClaimUnresolvedError(customer_id) from e
        finally:
            db.close()

        return record

    def get(self, customer_id: str) -> Optional[ClaimRecord]:
        db = self.session_factory()
        try:
            row = db.get(WheelClaim, customer_id)
        except DBAPIError as e:
            logger.error("Claim lookup failed for %s: %s", customer_id, e)
            raise LedgerUnavailableError(str(e.orig)) from e
        finally:
            db.close()

        if row is None:
            return None
        return ClaimRecord(
            customer_id=row.customer_id,
            segment_label=row.segment_label,
            coupon_code=row.coupon_code,
            created_at=_as_utc(row.created_at),
        )


class MemoryClaimLedger(ClaimLedger):
    """In-process ledger; check and insert happen under one lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: dict[str, ClaimRecord] = {}

    def claim(self, customer_id: str, segment: Segment) -> ClaimRecord:
        record = ClaimRecord(
            customer_id=customer_id,
            segment_label=segment.label,
            coupon_code=segment.coupon_code,
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            if customer_id in self._records:
                raise AlreadyClaimedError(customer_id)
            self._records[customer_id] = record
        return record

    def get(self, customer_id: str) -> Optional[ClaimRecord]:
        with self._lock:
            return self._records.get(customer_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
