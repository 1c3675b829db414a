"""Source for the USGS significant earthquake GeoJSON feed."""

from filtering import meets_magnitude
from models import EarthquakeNotification
from sources.base import BaseSource, ResponseFormatError

FEED_URL = "https://earthquake.usgs.gov/earthquakes/feed/v1.0/summary/4.5_day.geojson"


class EarthquakeSource(BaseSource):
    source_name = "Earthquake"
    state_file = "seen_quakes.json"
    retention_seconds = 72 * 3600

    @property
    def min_magnitude(self) -> float:
        try:
            return float(self.config.options.get("min_magnitude", 4.5))
        except ValueError:
            return 4.5

    def fetch_new(self) -> list[EarthquakeNotification]:
        data = self.get_json(FEED_URL)
        features = data.get("features") if isinstance(data, dict) else None
        if not isinstance(features, list):
            raise ResponseFormatError(f"{self.name}: response has no 'features' list")

        return self.collect(features, self.min_magnitude)

    def parse_entry(self, feature, min_magnitude: float) -> EarthquakeNotification | None:
        uid = str(feature["id"])
        if self.seen_store.is_seen(uid):
            return None

        props = feature["properties"]
        if not meets_magnitude(props.get("mag"), min_magnitude):
            return None

        lon, lat = feature["geometry"]["coordinates"][:2]
        return EarthquakeNotification(
            id=uid,
            # USGS reports milliseconds
            timestamp=int(props["time"]) // 1000,
            magnitude=props["mag"],
            location=props.get("place") or "Unknown location",
            url=props.get("url", ""),
            latitude=lat,
            longitude=lon,
        )
