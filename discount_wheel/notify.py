# discount_wheel/notify.py
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"


class TelegramNotifier:
    def __init__(
        self,
        bot_token: Optional[str],
        chat_id: Optional[str],
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.timeout = timeout
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    @staticmethod
    def format_win(customer_id: str, label: str, coupon_code: str) -> str:
        return (
            "🎯 New discount wheel win\n\n"
            f"Customer: {customer_id}\n"
            f"Reward: {label}\n"
            f"Coupon: {coupon_code}"
        )

    async def send_win(self, customer_id: str, label: str, coupon_code: str) -> bool:
        if not self.enabled:
            logger.debug("Telegram disabled")
            return False

        url = f"{TELEGRAM_API}/bot{self.bot_token}/sendMessage"
        text = self.format_win(customer_id, label, coupon_code)

        # a won spin is already committed; nothing here may change its outcome
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, json={"chat_id": self.chat_id, "text": text})
                response.raise_for_status()
        except Exception as e:
            logger.warning("Telegram notification failed: %s", e)
            return False
        return True
