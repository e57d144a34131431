# discount_wheel/config.py
import logging
import os
from dataclasses import dataclass
from typing import Literal, Optional

from dotenv import load_dotenv

load_dotenv()


CategoryMatch = Literal["exact", "casefold"]


@dataclass(frozen=True)
class Settings:
    database_url: str
    db_busy_timeout: float
    category_match: CategoryMatch
    telegram_bot_token: Optional[str]
    telegram_chat_id: Optional[str]
    log_level: str


def load_settings() -> Settings:
    category_match = os.getenv("CATEGORY_MATCH", "exact").strip().lower()
    if category_match not in ("exact", "casefold"):
        raise ValueError(f"CATEGORY_MATCH must be 'exact' or 'casefold', got {category_match!r}")

    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./discount_wheel.db"),
        db_busy_timeout=float(os.getenv("DB_BUSY_TIMEOUT", "5")),
        category_match=category_match,
        telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN") or None,
        telegram_chat_id=os.getenv("TELEGRAM_CHAT_ID") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@dataclass
class SegmentConfig:
    label: str
    reward: str
    coupon_code: str
    probability: float
    color: str = "#ffffff"
    active: bool = True
    category: Optional[str] = None


# Seed wheel, written on first read when no configuration exists yet
DEFAULT_SEGMENTS: list[SegmentConfig] = [
    SegmentConfig("5% off", "Enjoy 5% off on your cart", "METRO5", 0.30, "#c0b6ff"),
    SegmentConfig("Free Shipping", "Complimentary metro shipping", "SHIPFREE", 0.25, "#ffc0cb"),
    SegmentConfig("10% off", "Limited 10% drop", "METRO10", 0.20, "#a5f3fc"),
    SegmentConfig("15% off", "Signature insignia 15%", "METRO15", 0.15, "#fde68a"),
    SegmentConfig("Lucky Draw", "Access to next capsule early", "EARLYPASS", 0.05, "#c7d2fe"),
    SegmentConfig("No Reward", "Better luck on next spin", "TRYAGAIN", 0.05, "#f5f5f5"),
]


@dataclass
class CouponConfig:
    code: str
    description: str


DEFAULT_COUPONS: list[CouponConfig] = [
    CouponConfig("METRO5", "5% off on your cart"),
    CouponConfig("METRO10", "10% off drop"),
    CouponConfig("METRO15", "15% Signature Discount"),
    CouponConfig("SHIPFREE", "Complimentary metro shipping"),
    CouponConfig("EARLYPASS", "Early Access Pass"),
    CouponConfig("TRYAGAIN", "No reward"),
]
