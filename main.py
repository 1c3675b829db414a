"""Main entry point: build sources, start per-source monitors, serve liveness."""

import json
import logging
import os
import signal
import sys
from pathlib import Path

import requests

from config import AppConfig, ConfigError, is_dry_run, load_config
from health import create_app
from scheduler import Scheduler
from sources.base import BaseSource
from sources.earthquake import EarthquakeSource
from sources.rocketlaunch import RocketLaunchSource
from sources.spaceweather import SpaceWeatherSource
from sources.vulnerability import VulnerabilitySource
from state import SeenStore

logger = logging.getLogger(__name__)

SOURCE_REGISTRY: dict[str, type[BaseSource]] = {
    "earthquake": EarthquakeSource,
    "rocket_launch": RocketLaunchSource,
    "space_weather": SpaceWeatherSource,
    "vulnerability": VulnerabilitySource,
}


class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_obj = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj)


def setup_logging() -> None:
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    log_format = os.environ.get("LOG_FORMAT", "text").lower()

    if log_format == "json":
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        logging.root.handlers = [handler]
        logging.root.setLevel(getattr(logging, log_level, logging.INFO))
    else:
        logging.basicConfig(
            level=getattr(logging, log_level, logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )


def build_sources(config: AppConfig, session: requests.Session | None = None) -> list[BaseSource]:
    """Instantiate every enabled source with its own state file.

    Each source gets its own HTTP session unless one is passed in.
    """
    state_dir = Path(config.state_dir)
    services = config.services()

    sources = []
    for key, source_cls in SOURCE_REGISTRY.items():
        service_config = services[key]
        if not service_config.enabled:
            logger.info("Source '%s' is disabled", key)
            continue
        state = SeenStore(state_dir / source_cls.state_file, source_cls.retention_seconds)
        sources.append(source_cls(service_config, state, session=session))

    logger.info("Built %d source(s)", len(sources))
    return sources


def build_scheduler(config: AppConfig) -> Scheduler:
    scheduler = Scheduler()
    for source in build_sources(config):
        scheduler.add(source)
    return scheduler


def main():
    setup_logging()

    try:
        config = load_config(os.environ.get("ENV_PATH", ".env"))
    except ConfigError as e:
        logger.critical("%s", e)
        sys.exit(1)

    scheduler = build_scheduler(config)

    def _handle_signal(signum, frame):
        logger.info("Received signal %d, shutting down gracefully...", signum)
        scheduler.stop(timeout=5)
        sys.exit(0)

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    logger.info(
        "Starting %d source monitor(s) (dry_run=%s)",
        len(scheduler.monitors),
        is_dry_run(),
    )
    scheduler.start()

    app = create_app()
    logger.info("Starting Automatex Notifier web server on 0.0.0.0:%d", config.port)
    app.run(host="0.0.0.0", port=config.port)


if __name__ == "__main__":
    main()
