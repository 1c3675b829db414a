"""Telegram Bot API sender and MarkdownV2 escaping."""

import logging

import requests

from config import is_dry_run

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
PARSE_MODE = "MarkdownV2"
DEFAULT_TIMEOUT = 15

_MARKDOWN_SPECIAL_CHARS = frozenset("_*[]()~`>#+-=|{}.!")


def escape_markdown(text: str) -> str:
    """Escape every MarkdownV2 reserved character with a backslash."""
    return "".join(f"\\{c}" if c in _MARKDOWN_SPECIAL_CHARS else c for c in text)


class DeliveryError(Exception):
    """Raised when a message could not be delivered."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class TelegramSender:
    """Posts MarkdownV2 messages to a single chat. One attempt per message."""

    def __init__(self, api_key: str, chat_id: str, session: requests.Session | None = None):
        self._api_key = api_key
        self._chat_id = chat_id
        self._session = session or requests.Session()

    @property
    def url(self) -> str:
        return f"{TELEGRAM_API_BASE}/bot{self._api_key}/sendMessage"

    def send(self, text: str) -> None:
        """Send text to the configured chat. Raises DeliveryError on failure."""
        if is_dry_run():
            logger.info("[DRY RUN] Would send to chat %s:\n%s", self._chat_id, text)
            return

        payload = {
            "chat_id": self._chat_id,
            "text": text,
            "parse_mode": PARSE_MODE,
        }

        try:
            resp = self._session.post(self.url, json=payload, timeout=DEFAULT_TIMEOUT)
        except requests.RequestException as e:
            raise DeliveryError(f"Telegram request failed: {e}") from e

        if not resp.ok:
            body = resp.text or "Could not read body"
            logger.error(
                "Telegram API returned non-200 status %d: %s", resp.status_code, body
            )
            raise DeliveryError(
                f"Telegram API error: {resp.status_code}",
                status_code=resp.status_code,
                body=body,
            )
