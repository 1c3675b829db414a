"""Message composition and paced delivery of notification batches."""

import logging
import threading
from typing import Iterable, Optional

from config import ServiceConfig
from models import AnyNotification
from telegram_notifier import DeliveryError, TelegramSender, escape_markdown

logger = logging.getLogger(__name__)

PACING_SECONDS = 1.0
FOOTER_SEPARATOR = "--------------------"


def build_message(notification: AnyNotification, config: ServiceConfig) -> str:
    """Render a notification and append the optional support/disclaimer footer."""
    message = notification.format_message()

    if config.buymeacoffee_url or config.disclaimer:
        message += "\n\n" + escape_markdown(FOOTER_SEPARATOR)
    if config.buymeacoffee_url:
        message += "\n\n*Like this service?*"
        message += f"\n[Buy Me a Coffee ☕]({config.buymeacoffee_url})"
    if config.disclaimer:
        message += "\n\n" + config.disclaimer

    return message


class Dispatcher:
    """Sends one source's notifications in order, one at a time."""

    def __init__(
        self,
        config: ServiceConfig,
        sender: Optional[TelegramSender] = None,
        pacing_seconds: float = PACING_SECONDS,
        stop_event: Optional[threading.Event] = None,
    ):
        self._config = config
        self._sender = sender or TelegramSender(config.telegram_api_key, config.telegram_chat_id)
        self._pacing = pacing_seconds
        self._stop = stop_event or threading.Event()

    def send(self, notification: AnyNotification) -> bool:
        """Deliver one notification. Returns True on success, False on failure."""
        try:
            self._sender.send(build_message(notification, self._config))
        except DeliveryError as e:
            logger.error("Failed to send notification %s: %s", notification.id, e)
            return False
        logger.info("Successfully sent notification %s.", notification.id)
        return True

    def dispatch(self, notifications: Iterable[AnyNotification]) -> int:
        """Deliver a batch with a fixed delay between sends. Returns count sent.

        Failed items are logged and dropped; they were already marked seen.
        """
        sent = 0
        for i, notification in enumerate(notifications):
            if i and self._pacing > 0:
                self._stop.wait(self._pacing)
            if self.send(notification):
                sent += 1
        return sent
