# discount_wheel/coordinator.py
import logging
from dataclasses import dataclass
from typing import Optional

from discount_wheel.errors import AlreadyClaimedError, NoEligibleSegmentError
from discount_wheel.ledger import ClaimLedger, ClaimRecord
from discount_wheel.segments import Segment
from discount_wheel.selection import SelectionEngine
from discount_wheel.store import ConfigurationStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpinResult:
    segment: Segment
    claim: ClaimRecord


class SpinCoordinator:
    """Runs one spin attempt: check claim, snapshot config, draw, claim.

    Every failure is terminal for the attempt. A draw that loses the claim
    race is thrown away, never handed out.
    """

    def __init__(self, store: ConfigurationStore, engine: SelectionEngine, ledger: ClaimLedger):
        self.store = store
        self.engine = engine
        self.ledger = ledger

    def spin(self, customer_id: str, customer_category: Optional[str] = None) -> SpinResult:
        if self.ledger.has_claimed(customer_id):
            logger.info("Spin refused for %s: already claimed", customer_id)
            raise AlreadyClaimedError(customer_id)

        snapshot = self.store.load_configuration()

        try:
            segment = self.engine.select(snapshot.segments, customer_category)
        except NoEligibleSegmentError:
            logger.info("Spin for %s: no eligible segment for category %r", customer_id, customer_category)
            raise

        try:
            claim = self.ledger.claim(customer_id, segment)
        except AlreadyClaimedError:
            logger.info("Spin for %s lost a concurrent claim, draw discarded", customer_id)
            raise

        logger.info("Customer %s won %r (%s)", customer_id, segment.label, segment.coupon_code)
        return SpinResult(segment=segment, claim=claim)

    def claim_status(self, customer_id: str) -> Optional[ClaimRecord]:
        return self.ledger.get(customer_id)
