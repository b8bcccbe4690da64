"""Field extraction and action classification for netfilter kernel log lines.

A typical line (content part of the syslog message) looks like::

    [FW-IN-D] IN=eth0 OUT= MAC=00:11:22:33:44:55:66:77:88:99:aa:bb:08:00
    SRC=10.0.0.1 DST=10.0.0.2 LEN=60 TOS=0x00 ... PROTO=TCP SPT=1234 DPT=80 ...

The bracketed prefix is the log prefix configured on the firewall rule; by
convention its last character encodes the rule's verdict.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

# Optional "[rule]" prefix, then the fixed IN/OUT/MAC/SRC/DST run, anything up to
# PROTO=, then an optional SPT/DPT pair. Absent for ICMP and friends.
# Interface, address and protocol values are capped at their column widths; a
# longer value means the line is not one we can store, so it does not match.
# The first PROTO= after DST wins, so the outer header of an ICMP error is used
# rather than the quoted inner packet.
FIREWALL_LINE_RE = re.compile(
    r'(?:\[(?P<rule>[0-9A-Za-z_\-]*)\]\s*)?'
    r'IN=(?P<in>[0-9A-Za-z._\-]{0,64})\s+'
    r'OUT=(?P<out>[0-9A-Za-z._\-]{0,64})\s+'
    r'MAC=(?P<mac>[0-9A-Za-z:_\-]*)\s+'
    r'SRC=(?P<src>[0-9A-Za-z.]{0,64})\s+'
    r'DST=(?P<dst>[0-9A-Za-z.]{0,64})'
    r'(?:\s.*?)?\s*'
    r'PROTO=(?P<proto>[A-Za-z]{0,16})(?![A-Za-z])\s*'
    r'(?:SPT=*(?P<spt>[0-9]*)\s+DPT=*(?P<dpt>[0-9]*))?'
)


class Action(str, Enum):
    ACCEPT = "ACCEPT"
    DROP = "DROP"
    REJECT = "REJECT"
    UNKNOWN = "UNKNOWN"


_ACTION_BY_SUFFIX = {
    "A": Action.ACCEPT,
    "D": Action.DROP,
    "R": Action.REJECT,
}


@dataclass
class ExtractResult:
    """Named fields that participated in the match. Empty when the line is not a firewall line."""

    fields: Dict[str, str] = field(default_factory=dict)

    @property
    def matched(self) -> bool:
        return bool(self.fields)

    def get(self, name: str, default: str = "") -> str:
        return self.fields.get(name, default)


@dataclass
class ParsedEvent:
    rule: str
    action: Action
    interface_in: str
    interface_out: str
    mac: str
    src: str
    dst: str
    proto: str
    source_port: Optional[int] = None
    dest_port: Optional[int] = None


def extract_fields(content: str) -> ExtractResult:
    m = FIREWALL_LINE_RE.search(content or "")
    if m is None:
        return ExtractResult()
    return ExtractResult({k: v for k, v in m.groupdict().items() if v is not None})


def classify_action(rule: str) -> Action:
    """Map the rule prefix's trailing character to an action. Empty or unrecognised -> UNKNOWN."""
    if not rule:
        return Action.UNKNOWN
    return _ACTION_BY_SUFFIX.get(rule[-1], Action.UNKNOWN)


def _port(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def build_parsed_event(result: ExtractResult) -> ParsedEvent:
    """ParsedEvent from a matched extraction. Raises ValueError for an empty one."""
    if not result.matched:
        raise ValueError("cannot build a ParsedEvent from an empty extraction")
    rule = result.get("rule")
    return ParsedEvent(
        rule=rule,
        action=classify_action(rule),
        interface_in=result.get("in"),
        interface_out=result.get("out"),
        mac=result.get("mac"),
        src=result.get("src"),
        dst=result.get("dst"),
        proto=result.get("proto"),
        source_port=_port(result.fields.get("spt")),
        dest_port=_port(result.fields.get("dpt")),
    )
