# discount_wheel/selection.py
import math
import random
from typing import Iterable, Optional

from discount_wheel.config import CategoryMatch
from discount_wheel.errors import NoEligibleSegmentError
from discount_wheel.segments import Segment


def category_matches(segment: Segment, customer_category: Optional[str], policy: CategoryMatch = "exact") -> bool:
    if not segment.category:
        return True
    if customer_category is None:
        return False
    if policy == "casefold":
        return segment.category.casefold() == customer_category.casefold()
    return segment.category == customer_category


class SelectionEngine:
    """Weighted draw over the segments a customer is eligible for.

    The default random source is SystemRandom (os.urandom); pass a seeded
    random.Random for reproducible simulations.
    """

    def __init__(self, rng: Optional[random.Random] = None, category_match: CategoryMatch = "exact"):
        self.rng = rng if rng is not None else random.SystemRandom()
        self.category_match = category_match

    def eligible(self, segments: Iterable[Segment], customer_category: Optional[str]) -> list[Segment]:
        return [
            s for s in segments
            if s.active and category_matches(s, customer_category, self.category_match)
        ]

    def weights(self, segments: Iterable[Segment], customer_category: Optional[str]) -> list[tuple[Segment, float]]:
        """Eligible segments paired with their weight re-normalized over the eligible subset."""
        candidates = [s for s in self.eligible(segments, customer_category) if s.probability > 0]
        total = math.fsum(s.probability for s in candidates)
        if total <= 0:
            raise NoEligibleSegmentError(customer_category)
        return [(s, s.probability / total) for s in candidates]

    def select(self, segments: Iterable[Segment], customer_category: Optional[str] = None) -> Segment:
        weighted = self.weights(segments, customer_category)

        r = self.rng.random()
        cumulative = 0.0
        for segment, weight in weighted:
            cumulative += weight
            if r < cumulative:
                return segment

        # rounding left the cumulative sum just below r
        return weighted[-1][0]
