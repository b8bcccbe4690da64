"""Decoder for BSD-style (RFC 3164) syslog lines into envelopes."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Optional

from ..errors import EnvelopeDecodeError

# <PRI>Mmm dd hh:mm:ss HOSTNAME TAG[pid]: content
PRI_RE = re.compile(r'^<(?P<pri>\d{1,3})>')
HEADER_RE = re.compile(
    r'^(?P<month>[A-Z][a-z]{2})\s+'
    r'(?P<day>\d{1,2})\s+'
    r'(?P<time>\d{2}:\d{2}:\d{2})\s+'
    r'(?P<host>\S{1,255})\s+'
)
TAG_RE = re.compile(r'^(?P<tag>[^\s\[:]{1,48})(?:\[(?P<pid>[^\]]*)\])?:\s?')

MONTHS = {
    "Jan": 1,
    "Feb": 2,
    "Mar": 3,
    "Apr": 4,
    "May": 5,
    "Jun": 6,
    "Jul": 7,
    "Aug": 8,
    "Sep": 9,
    "Oct": 10,
    "Nov": 11,
    "Dec": 12,
}


@dataclass(frozen=True)
class Envelope:
    timestamp: datetime
    hostname: str
    client: str
    priority: int
    severity: int
    tls_peer: str
    tag: str
    facility: int
    content: str


def _header_timestamp(month: str, day: str, time_str: str, now: datetime) -> Optional[datetime]:
    month_num = MONTHS.get(month)
    if month_num is None:
        return None
    hour, minute, second = (int(x) for x in time_str.split(":"))
    try:
        return datetime(now.year, month_num, int(day), hour, minute, second, tzinfo=timezone.utc)
    except ValueError:
        return None


def decode_rfc3164(
    line: str,
    client: str,
    now: Optional[datetime] = None,
    zone: Optional[tzinfo] = None,
) -> Envelope:
    """Decode one syslog line. Raises EnvelopeDecodeError when the <PRI> header is missing or invalid.

    The header timestamp has no year or zone; the fields are taken as-is
    (labelled UTC until the normalizer relabels them). Both the year and the
    fallback for lines without a parseable timestamp/hostname come from the
    wall-clock of `now` in `zone` (process local zone when None), so every
    envelope carries local wall-clock fields. The fallback hostname is the
    sender address, as most BSD syslog receivers do.
    """
    now = now or datetime.now(timezone.utc)
    local_now = now.astimezone(zone) if zone is not None else now.astimezone()
    wall_now = local_now.replace(microsecond=0, tzinfo=timezone.utc)
    m = PRI_RE.match(line)
    if m is None:
        raise EnvelopeDecodeError(f"missing <PRI> header: {line[:80]!r}")
    priority = int(m.group("pri"))
    if priority > 191:
        raise EnvelopeDecodeError(f"priority out of range: {priority}")
    rest = line[m.end():]

    timestamp = None
    hostname = ""
    h = HEADER_RE.match(rest)
    if h is not None:
        timestamp = _header_timestamp(h.group("month"), h.group("day"), h.group("time"), wall_now)
    if timestamp is not None:
        hostname = h.group("host")
        rest = rest[h.end():]
    else:
        timestamp = wall_now
        hostname = client.rsplit(":", 1)[0]

    tag = ""
    t = TAG_RE.match(rest)
    if t is not None:
        tag = t.group("tag")
        rest = rest[t.end():]

    return Envelope(
        timestamp=timestamp,
        hostname=hostname,
        client=client,
        priority=priority,
        severity=priority % 8,
        tls_peer="",
        tag=tag,
        facility=priority // 8,
        content=rest.rstrip("\r\n"),
    )
