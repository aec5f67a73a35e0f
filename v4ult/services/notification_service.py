"""
Admin notifications for payment activity.

Notifications are fire-and-forget: a failed send is logged and never
propagates to the request that triggered it.
"""

import logging
from typing import Optional, Protocol

import requests

from v4ult.config import settings

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, message: str) -> bool:
        ...


class TelegramNotifier:
    """Posts to an admin chat through the Telegram Bot API."""

    def __init__(self, bot_token: str, chat_id: str, timeout: Optional[float] = None):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.timeout = timeout or settings.provider_timeout

    def notify(self, message: str) -> bool:
        url = f"https://api.telegram.org/bot{self.bot_token}/sendMessage"
        try:
            response = requests.post(
                url,
                data={"chat_id": self.chat_id, "text": message},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Telegram notification failed: chat_id={self.chat_id}, error={e}")
            return False

        logger.info(f"Telegram notification sent: chat_id={self.chat_id}")
        return True


class NullNotifier:
    def notify(self, message: str) -> bool:
        logger.debug(f"Notifications disabled, dropping: {message}")
        return False


def build_notifier() -> Notifier:
    if settings.telegram_bot_token and settings.telegram_chat_id:
        return TelegramNotifier(settings.telegram_bot_token, settings.telegram_chat_id)
    return NullNotifier()


def payment_proof_message(short_code: str, external_ref: str, amount: int) -> str:
    return (
        f"New payment proof for {short_code}\n"
        f"Ref: {external_ref}\n"
        f"Amount: {amount} {settings.reveal_currency}"
    )


def payment_reconciled_message(short_code: str, external_ref: str) -> str:
    return f"Payment reconciled for {short_code} (ref {external_ref}); identity unlocked"
