# discount_wheel/errors.py
"""
Error taxonomy of the wheel.

ValidationError       - configuration rejected, the admin can fix and resubmit
SpinError             - expected business outcome of a spin, never retried
InfrastructureError   - storage unreachable or in an unknown state
"""
from typing import Optional


class WheelError(Exception):
    code = "WheelError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


# =====================
# CONFIGURATION
# =====================

class ValidationError(WheelError):
    code = "ValidationError"


class EmptySegmentsError(ValidationError):
    code = "EmptySegments"

    def __init__(self):
        super().__init__("Segments array is required")


class InvalidSegmentError(ValidationError):
    code = "InvalidSegment"

    def __init__(self, index: int, field: str, reason: str):
        super().__init__(f"Segment #{index}: {field} {reason}")
        self.index = index
        self.field = field

    def to_dict(self) -> dict:
        return {**super().to_dict(), "index": self.index, "field": self.field}


class InvalidCustomerError(ValidationError):
    code = "InvalidCustomer"

    def __init__(self):
        super().__init__("customerId is required")


class NoWinnableSegmentsError(ValidationError):
    code = "NoWinnableSegments"

    def __init__(self):
        super().__init__("At least one active segment must have a probability above zero")


class UnknownCouponError(ValidationError):
    code = "UnknownCoupon"

    def __init__(self, coupon_code: str, index: Optional[int] = None):
        where = f"Segment #{index}: " if index is not None else ""
        super().__init__(f"{where}coupon code {coupon_code!r} does not exist")
        self.coupon_code = coupon_code
        self.index = index

    def to_dict(self) -> dict:
        return {**super().to_dict(), "couponCode": self.coupon_code, "index": self.index}


# =====================
# SPIN OUTCOMES
# =====================

class SpinError(WheelError):
    code = "SpinError"


class AlreadyClaimedError(SpinError):
    code = "AlreadyClaimed"

    def __init__(self, customer_id: str):
        super().__init__("This customer has already used their spin")
        self.customer_id = customer_id


class NoEligibleSegmentError(SpinError):
    code = "NoEligibleSegment"

    def __init__(self, customer_category: Optional[str]):
        super().__init__(f"No reward is available for category {customer_category!r}")
        self.customer_category = customer_category


# =====================
# INFRASTRUCTURE
# =====================

class InfrastructureError(WheelError):
    code = "InfrastructureError"


class LedgerUnavailableError(InfrastructureError):
    code = "LedgerUnavailable"

    def __init__(self, detail: str = ""):
        super().__init__(f"Claim ledger is unavailable{': ' + detail if detail else ''}")


class ClaimUnresolvedError(InfrastructureError):
    """Raised when the claim write may or may not have committed.

    The caller must query the claim status before trying again; a fresh draw
    could award a second segment.
    """

    code = "ClaimUnresolved"

    def __init__(self, customer_id: str):
        super().__init__("Spin outcome is unknown, check claim status before retrying")
        self.customer_id = customer_id


class ConfigurationUnavailableError(InfrastructureError):
    code = "ConfigurationUnavailable"

    def __init__(self, detail: str = ""):
        super().__init__(f"Wheel configuration store is unavailable{': ' + detail if detail else ''}")
