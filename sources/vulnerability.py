"""Source for the CISA Known Exploited Vulnerabilities catalog."""

from datetime import datetime, timedelta, timezone

from filtering import added_since
from models import VulnerabilityNotification
from sources.base import BaseSource, ResponseFormatError, parse_iso

CATALOG_URL = (
    "https://www.cisa.gov/sites/default/files/feeds/known_exploited_vulnerabilities.json"
)


class VulnerabilitySource(BaseSource):
    source_name = "Vulnerability"
    state_file = "seen_vulnerabilities.json"
    retention_seconds = 30 * 24 * 3600
    id_field = "cveID"

    @property
    def lookback(self) -> timedelta:
        try:
            days = int(self.config.options.get("lookback_days", 2))
        except ValueError:
            days = 2
        return timedelta(days=days)

    def fetch_new(self, now: datetime | None = None) -> list[VulnerabilityNotification]:
        now = now or datetime.now(timezone.utc)
        data = self.get_json(CATALOG_URL)
        vulns = data.get("vulnerabilities") if isinstance(data, dict) else None
        if not isinstance(vulns, list):
            raise ResponseFormatError(f"{self.name}: response has no 'vulnerabilities' list")

        return self.collect(vulns, now, self.lookback)

    def parse_entry(self, vuln, now: datetime, lookback: timedelta) -> VulnerabilityNotification | None:
        uid = str(vuln["cveID"])
        if self.seen_store.is_seen(uid):
            return None

        added = parse_iso(vuln["dateAdded"])
        # The catalog is cumulative; only recent additions are news
        if not added_since(added, now, lookback):
            return None

        return VulnerabilityNotification(
            id=uid,
            timestamp=int(added.timestamp()),
            vendor=vuln.get("vendorProject", ""),
            product=vuln.get("product", ""),
            name=vuln.get("vulnerabilityName", ""),
            description=vuln.get("shortDescription", ""),
            required_action=vuln.get("requiredAction", ""),
            due_date=vuln.get("dueDate", ""),
        )
