"""Configuration loading and validation."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when required settings are missing. Fatal at startup."""


class ServiceConfig(BaseModel):
    """Per-source settings, loaded once and never mutated."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    check_interval: float = 300
    telegram_api_key: str
    telegram_chat_id: str
    buymeacoffee_url: str = ""
    disclaimer: str = ""
    # Source-specific tuning; only the owning source reads its own keys
    options: dict[str, str] = {}


class AppConfig(BaseModel):
    earthquake: ServiceConfig
    rocket_launch: ServiceConfig
    space_weather: ServiceConfig
    vulnerability: ServiceConfig
    state_dir: str = "."
    port: int = 8010

    def services(self) -> dict[str, ServiceConfig]:
        return {
            "earthquake": self.earthquake,
            "rocket_launch": self.rocket_launch,
            "space_weather": self.space_weather,
            "vulnerability": self.vulnerability,
        }


def get_env(key: str, default: str = "") -> str:
    value = os.environ.get(key)
    if value is None:
        logger.warning("Environment variable '%s' not found, using default value.", key)
        return default
    return value


def get_env_bool(key: str, default: bool = True) -> bool:
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes")


def get_env_duration(key: str, default_secs: int) -> float:
    """Read a positive number of seconds, falling back to default_secs."""
    raw = os.environ.get(key)
    try:
        secs = int(raw) if raw is not None else None
    except ValueError:
        secs = None
    if secs is None or secs <= 0:
        logger.warning(
            "Environment variable '%s' not found or invalid, using default value.", key
        )
        return float(default_secs)
    return float(secs)


def _service(prefix: str, default_interval: int, shared: dict, **options: str) -> ServiceConfig:
    return ServiceConfig(
        enabled=get_env_bool(f"{prefix}_ENABLED", True),
        check_interval=get_env_duration(f"{prefix}_INTERVAL_SECS", default_interval),
        disclaimer=get_env(f"{prefix}_DISCLAIMER", ""),
        options=options,
        **shared,
    )


def load_config(env_path: Optional[str] = ".env") -> AppConfig:
    """Load .env and the environment, return validated AppConfig.

    Raises ConfigError if the Telegram credentials are missing.
    """
    if env_path:
        env_file = Path(env_path)
        if env_file.exists():
            load_dotenv(env_file)
            logger.info("Loaded .env file from %s", env_file.resolve())
        else:
            logger.warning("Could not load .env file: %s does not exist", env_path)

    telegram_api_key = get_env("TELEGRAM_API_KEY", "")
    telegram_chat_id = get_env("TELEGRAM_CHAT_ID", "")
    if not telegram_api_key or not telegram_chat_id:
        raise ConfigError(
            "TELEGRAM_API_KEY or TELEGRAM_CHAT_ID is missing. "
            "Ensure they are set in the .env file in the project root. "
            f"Current working directory: {os.getcwd()}"
        )

    shared = {
        "telegram_api_key": telegram_api_key,
        "telegram_chat_id": telegram_chat_id,
        "buymeacoffee_url": get_env("BUYMEACOFFEE_URL", ""),
    }

    return AppConfig(
        earthquake=_service(
            "EARTHQUAKE", 5 * 60, shared,
            min_magnitude=os.environ.get("EARTHQUAKE_MIN_MAGNITUDE", "4.5"),
        ),
        rocket_launch=_service("ROCKETLAUNCH", 15 * 60, shared),
        space_weather=_service(
            "SPACEWEATHER", 30 * 60, shared,
            api_key=os.environ.get("NASA_API_KEY", "DEMO_KEY"),
            min_class=os.environ.get("SPACEWEATHER_MIN_CLASS", "M"),
        ),
        vulnerability=_service(
            "VULNERABILITY", 60 * 60, shared,
            lookback_days=os.environ.get("VULNERABILITY_LOOKBACK_DAYS", "2"),
        ),
        state_dir=os.environ.get("STATE_DIR", "."),
        port=int(os.environ.get("PORT", "8010")),
    )


def is_dry_run() -> bool:
    """Check if DRY_RUN is enabled."""
    return os.environ.get("DRY_RUN", "false").lower() in ("true", "1", "yes")
