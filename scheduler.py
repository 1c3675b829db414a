"""Per-source polling loops, one thread each."""

import logging
import threading
import time
from typing import Optional

from dispatcher import Dispatcher
from sources.base import BaseSource, FetchError, ResponseFormatError
from state import StateError

logger = logging.getLogger(__name__)


class SourceMonitor:
    """Drives one source: load state, check now, then check on every tick."""

    def __init__(
        self,
        source: BaseSource,
        dispatcher: Dispatcher,
        stop_event: Optional[threading.Event] = None,
    ):
        self.source = source
        self.dispatcher = dispatcher
        self._stop = stop_event or threading.Event()

    def init_state(self) -> None:
        try:
            self.source.load_state()
        except StateError as e:
            logger.error("[%s] Error loading state: %s", self.source.name, e)

    def run_check(self) -> int:
        """Run one fetch/dispatch/persist cycle. Returns the number of new items."""
        name = self.source.name
        logger.info("[%s] Checking for new notifications...", name)
        try:
            notifications = self.source.fetch_new()
        except (FetchError, ResponseFormatError) as e:
            logger.error("[%s] Error checking for notifications: %s", name, e)
            return 0
        except Exception:
            logger.exception("[%s] Unexpected error checking for notifications", name)
            return 0

        if not notifications:
            logger.info("[%s] No new notifications found.", name)
            return 0

        logger.info("[%s] Found %d new notification(s).", name, len(notifications))
        sent = self.dispatcher.dispatch(notifications)
        if sent < len(notifications):
            logger.warning(
                "[%s] Delivered %d of %d notification(s).", name, sent, len(notifications)
            )

        try:
            self.source.save_state()
        except StateError as e:
            logger.error("[%s] Error saving state: %s", name, e)

        return len(notifications)

    def safe_check(self) -> int:
        """run_check that logs and absorbs anything it lets escape, keeping the loop alive."""
        try:
            return self.run_check()
        except Exception:
            logger.exception("[%s] Unexpected error during check", self.source.name)
            return 0

    def run(self) -> None:
        """Loop until the stop event is set.

        A cycle that overruns one or more ticks is followed by a single
        immediate check; the schedule then restarts from that moment.
        """
        logger.info("[%s] Initializing service", self.source.name)
        self.init_state()

        interval = self.source.config.check_interval
        self.safe_check()
        next_tick = time.monotonic() + interval

        while not self._stop.wait(max(next_tick - time.monotonic(), 0)):
            fired_at = time.monotonic()
            next_tick = max(next_tick, fired_at) + interval
            self.safe_check()

        logger.info("[%s] Stopped", self.source.name)


class Scheduler:
    """Owns one SourceMonitor thread per source and a shared stop event."""

    def __init__(self, stop_event: Optional[threading.Event] = None):
        self.stop_event = stop_event or threading.Event()
        self._monitors: list[SourceMonitor] = []
        self._threads: list[threading.Thread] = []

    @property
    def monitors(self) -> list[SourceMonitor]:
        return list(self._monitors)

    def add(self, source: BaseSource, dispatcher: Optional[Dispatcher] = None) -> SourceMonitor:
        path = source.seen_store.file_path.resolve()
        for m in self._monitors:
            if m.source.seen_store.file_path.resolve() == path:
                raise ValueError(
                    f"{source.name} and {m.source.name} share state file {path}"
                )
        dispatcher = dispatcher or Dispatcher(source.config, stop_event=self.stop_event)
        monitor = SourceMonitor(source, dispatcher, self.stop_event)
        self._monitors.append(monitor)
        return monitor

    def start(self) -> None:
        for monitor in self._monitors:
            thread = threading.Thread(
                target=monitor.run,
                name=f"monitor-{monitor.source.name}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        logger.info("Started %d source monitor(s)", len(self._threads))

    def stop(self, timeout: Optional[float] = None) -> None:
        self.stop_event.set()
        for thread in self._threads:
            thread.join(timeout)
