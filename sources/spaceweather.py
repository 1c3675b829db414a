"""Source for solar flares from NASA DONKI."""

from datetime import datetime, timedelta, timezone

from filtering import flare_class_at_least
from models import SpaceWeatherNotification
from sources.base import BaseSource, ResponseFormatError, parse_iso

API_URL = "https://api.nasa.gov/DONKI/FLR"


class SpaceWeatherSource(BaseSource):
    source_name = "Space Weather"
    state_file = "seen_space_weather.json"
    retention_seconds = 7 * 24 * 3600
    id_field = "flrID"

    def fetch_new(self, now: datetime | None = None) -> list[SpaceWeatherNotification]:
        now = now or datetime.now(timezone.utc)
        params = {
            "startDate": (now - timedelta(hours=24)).strftime("%Y-%m-%d"),
            "api_key": self.config.options.get("api_key", "DEMO_KEY"),
        }
        events = self.get_json(API_URL, params=params)
        if not isinstance(events, list):
            raise ResponseFormatError(f"{self.name}: expected a list of flare events")

        return self.collect(events, self.config.options.get("min_class", "M"))

    def parse_entry(self, event, min_class: str) -> SpaceWeatherNotification | None:
        uid = str(event["flrID"])
        if self.seen_store.is_seen(uid):
            return None

        class_type = event.get("classType") or ""
        if not flare_class_at_least(class_type, min_class):
            return None

        begin_time = parse_iso(event["beginTime"])
        return SpaceWeatherNotification(
            id=uid,
            timestamp=int(begin_time.timestamp()),
            class_type=class_type,
            url=event.get("link", ""),
        )
