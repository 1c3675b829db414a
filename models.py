"""Notification models, one variant per source."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from telegram_notifier import escape_markdown as esc


def format_timestamp(ts: int) -> str:
    """Render epoch seconds as a UTC date/time string, or N/A when out of range."""
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%c")
    except (OverflowError, OSError, ValueError):
        return "N/A"


class Notification(BaseModel, ABC):
    """Base for one alert-worthy event.

    ``id`` is source-scoped and stable across polls; ``timestamp`` is the
    event's own time in epoch seconds.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: int

    @abstractmethod
    def format_message(self) -> str:
        """Render the MarkdownV2 message body."""
        ...


class EarthquakeNotification(Notification):
    kind: Literal["earthquake"] = "earthquake"
    magnitude: float
    location: str
    url: str
    latitude: float
    longitude: float

    def format_message(self) -> str:
        gmaps_url = (
            f"https://www.google.com/maps/place/{self.latitude},{self.longitude}"
            f"/@{self.latitude:.4f},{self.longitude:.4f},5z"
        )
        return (
            "🌍 *Earthquake Report* 🌍\n\n"
            f"*Magnitude:* {esc(f'{self.magnitude:.2f}')}\n"
            f"*Location:* {esc(self.location)}\n"
            f"*Time:* {esc(format_timestamp(self.timestamp))}\n"
            f"*Map:* [Google Maps]({gmaps_url}) \\| [Details on USGS]({self.url})"
        )


class RocketLaunchNotification(Notification):
    kind: Literal["rocket_launch"] = "rocket_launch"
    name: str
    agency: str
    vehicle: str
    watch_url: Optional[str] = None

    def format_message(self) -> str:
        msg = (
            "🚀 *Rocket Launch Alert* 🚀\n\n"
            f"*Mission:* {esc(self.name)}\n"
            f"*Agency:* {esc(self.agency)}\n"
            f"*Vehicle:* {esc(self.vehicle)}\n"
            f"*Launch Time:* {esc(format_timestamp(self.timestamp))}"
        )
        if self.watch_url:
            msg += f"\n*Watch Live:* [Click Here]({self.watch_url})"
        return msg


class SpaceWeatherNotification(Notification):
    kind: Literal["space_weather"] = "space_weather"
    event_type: str = "Solar Flare Detected"
    class_type: str
    url: str

    def format_message(self) -> str:
        return (
            "☀️ *Space Weather Alert* ☀️\n\n"
            f"*Event:* {esc(self.event_type)}\n"
            f"*Class:* {esc(self.class_type)}\n"
            f"*Time:* {esc(format_timestamp(self.timestamp))}\n"
            "*Potential Impact:* Strong HF radio blackouts on Earth's sunlit side, "
            "increased aurora chances\\.\n"
            f"*Details:* [NASA DONKI]({self.url})"
        )


class VulnerabilityNotification(Notification):
    kind: Literal["vulnerability"] = "vulnerability"
    vendor: str
    product: str
    name: str
    description: str = ""
    required_action: str = ""
    due_date: str = ""

    @property
    def url(self) -> str:
        return f"https://nvd.nist.gov/vuln/detail/{self.id}"

    def format_message(self) -> str:
        lines = [
            "🛡️ *Known Exploited Vulnerability* 🛡️\n",
            f"*CVE:* {esc(self.id)}",
            f"*Product:* {esc(f'{self.vendor} {self.product}')}",
            f"*Name:* {esc(self.name)}",
            f"*Added:* {esc(format_timestamp(self.timestamp))}",
        ]
        if self.due_date:
            lines.append(f"*Remediation Due:* {esc(self.due_date)}")
        if self.description:
            lines.append(f"\n{esc(self.description)}")
        if self.required_action:
            lines.append(f"\n*Required Action:* {esc(self.required_action)}")
        lines.append(f"*Details:* [NVD]({self.url})")
        return "\n".join(lines)


AnyNotification = Annotated[
    Union[
        EarthquakeNotification,
        RocketLaunchNotification,
        SpaceWeatherNotification,
        VulnerabilityNotification,
    ],
    Field(discriminator="kind"),
]
