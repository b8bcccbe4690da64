from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import tz

from ..errors import ZoneLoadError


def load_local_zone(name: Optional[str] = None) -> tzinfo:
    """Resolve the deployment zone once at startup: an IANA name, or the process local zone."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ZoneLoadError(f"Failed to load time zone {name!r}: {exc}") from exc
    return tz.tzlocal()


class TimestampNormalizer:
    """Relabels syslog timestamps with the local zone.

    Syslog BSD timestamps carry no zone, so the decoded instant's calendar fields
    already are local wall-clock time. Only the zone label is replaced; the fields
    are never shifted.
    """

    def __init__(self, zone: tzinfo) -> None:
        self.zone = zone

    def normalize(self, instant: datetime) -> datetime:
        return instant.replace(tzinfo=self.zone)
