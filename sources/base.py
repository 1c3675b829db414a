"""Abstract base source and resilient HTTP helpers."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

import requests
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config import ServiceConfig
from models import AnyNotification
from state import SeenStore

logger = logging.getLogger(__name__)

USER_AGENT = "automatex-notifier/0.1"
DEFAULT_TIMEOUT = 15


class FetchError(Exception):
    """Transport failure or non-success HTTP status from a remote source."""


class ResponseFormatError(Exception):
    """Remote payload does not have the expected shape."""


class BaseSource(ABC):
    """A pluggable data feed that turns remote events into new notifications.

    Subclasses set ``source_name``, ``state_file`` and ``retention_seconds``
    and implement ``fetch_new``, usually as one GET followed by ``collect``
    over a ``parse_entry`` of their own. Load/save of the owned SeenStore is
    shared.
    """

    source_name: str = ""
    state_file: str = ""
    retention_seconds: float = 0
    # Key of the entry's identifier in the raw payload, for log records
    id_field: str = "id"

    def __init__(self, config: ServiceConfig, state: SeenStore, session: requests.Session | None = None):
        self._config = config
        self._state = state
        self._session = session or requests.Session()

    @property
    def name(self) -> str:
        return self.source_name or self.__class__.__name__

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @property
    def seen_store(self) -> SeenStore:
        return self._state

    @abstractmethod
    def fetch_new(self) -> list[AnyNotification]:
        """Fetch once and return unseen, filter-passing items, marking each seen.

        Raises FetchError or ResponseFormatError.
        """
        ...

    def load_state(self) -> int:
        return self._state.load()

    def save_state(self) -> None:
        self._state.save()

    def get_json(self, url: str, **kwargs):
        """GET url and decode JSON, translating failures to the source error types."""
        try:
            resp = resilient_get(url, session=self._session, **kwargs)
        except requests.RequestException as e:
            raise FetchError(f"{self.name}: request to {url} failed: {e}") from e

        if not resp.ok:
            raise FetchError(f"{self.name}: {url} returned status {resp.status_code}")

        try:
            return resp.json()
        except ValueError as e:
            raise ResponseFormatError(f"{self.name}: response is not valid JSON: {e}") from e

    def mark_seen(self, notification: AnyNotification) -> AnyNotification:
        self._state.add(notification.id, notification.timestamp)
        return notification

    def parse_entry(self, entry, *args) -> AnyNotification | None:
        """Turn one raw entry into a notification, or None if seen or filtered out.

        Raise KeyError, TypeError or ValueError (pydantic's ValidationError
        included) for a malformed entry.
        """
        raise NotImplementedError

    def collect(self, entries: list, *args) -> list[AnyNotification]:
        """Run parse_entry over entries, skipping malformed ones with a warning.

        An entry is marked seen only once its notification is fully built.
        """
        notifications = []
        for entry in entries:
            try:
                notification = self.parse_entry(entry, *args)
            except (KeyError, TypeError, ValueError, AttributeError, ValidationError) as e:
                entry_id = entry.get(self.id_field) if isinstance(entry, dict) else None
                logger.warning(
                    "[%s] Skipping malformed entry %s: %s", self.name, entry_id, _short(e)
                )
                continue
            if notification is not None:
                notifications.append(self.mark_seen(notification))
        return notifications


def _short(exc: Exception) -> str:
    text = " ".join(str(exc).split())
    return f"{type(exc).__name__}: {text[:200]}"


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@retry(
    retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=15),
    reraise=True,
)
def resilient_get(url: str, session: requests.Session | None = None, **kwargs) -> requests.Response:
    """GET with retry on connection errors, timeouts and 5xx responses."""
    kwargs.setdefault("timeout", DEFAULT_TIMEOUT)
    kwargs.setdefault("headers", {})
    kwargs["headers"].setdefault("User-Agent", USER_AGENT)
    resp = (session or requests).get(url, **kwargs)
    if resp.status_code >= 500:
        raise requests.ConnectionError(f"Server error {resp.status_code} from {url}")
    return resp
