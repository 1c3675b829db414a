"""Source for upcoming launches from The Space Devs Launch Library 2."""

from datetime import datetime, timedelta, timezone

from filtering import launches_within
from models import RocketLaunchNotification
from sources.base import BaseSource, ResponseFormatError, parse_iso

API_URL = "https://ll.thespacedevs.com/2.2.0/launch/upcoming/"
LOOKAHEAD = timedelta(hours=24)
# Slack added to the check interval so a launch just past the next tick is not missed
WINDOW_SLACK = timedelta(seconds=60)


class RocketLaunchSource(BaseSource):
    source_name = "Rocket Launch"
    state_file = "seen_launches.json"
    retention_seconds = 30 * 24 * 3600

    def fetch_new(self, now: datetime | None = None) -> list[RocketLaunchNotification]:
        now = now or datetime.now(timezone.utc)
        params = {"limit": 10, "window_end": (now + LOOKAHEAD).isoformat()}
        data = self.get_json(API_URL, params=params)
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise ResponseFormatError(f"{self.name}: response has no 'results' list")

        window = timedelta(seconds=self.config.check_interval) + WINDOW_SLACK
        return self.collect(results, now, window)

    def parse_entry(self, result, now: datetime, window: timedelta) -> RocketLaunchNotification | None:
        uid = str(result["id"])
        if self.seen_store.is_seen(uid):
            return None

        launch_time = parse_iso(result["net"])
        if not launches_within(launch_time, now, window):
            return None

        vid_urls = result.get("vidURLs") or []
        watch_url = vid_urls[0].get("url") if vid_urls and isinstance(vid_urls[0], dict) else None

        return RocketLaunchNotification(
            id=uid,
            timestamp=int(launch_time.timestamp()),
            name=result.get("name", ""),
            agency=(result.get("launch_service_provider") or {}).get("name", ""),
            vehicle=((result.get("rocket") or {}).get("configuration") or {}).get("full_name", ""),
            watch_url=watch_url,
        )
