"""Ingest pipeline statistics for troubleshooting (UDP packets, lines, records, DB writes)."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger("fwlog.ingest.stats")

# Max length of sample line included in stats (to avoid huge payloads)
SAMPLE_RAW_LINE_MAX = 600


@dataclass
class IngestStats:
    """Counters updated by the UDP receiver and the pipeline. No locking (single asyncio thread)."""

    # UDP layer
    udp_packets: int = 0
    udp_bytes: int = 0
    lines_received: int = 0
    decode_errors: int = 0
    envelopes_dropped: int = 0  # queue full

    # Pipeline
    envelopes_processed: int = 0
    extraction_misses: int = 0
    records_parsed: int = 0
    records_saved: int = 0
    persist_errors: int = 0
    replayed: int = 0
    backlog_size: int = 0
    backlog_dropped: int = 0
    dead_lettered: int = 0  # rejected by the store, not retried

    # Last line that did not match the firewall grammar (truncated)
    sample_unmatched_line: Optional[str] = None

    started_at: float = field(default_factory=time.monotonic)
    last_updated: Optional[datetime] = None

    def touch(self) -> None:
        """Update last_updated (call whenever counters change)."""
        self.last_updated = datetime.now(timezone.utc)

    def reset(self) -> None:
        self.udp_packets = 0
        self.udp_bytes = 0
        self.lines_received = 0
        self.decode_errors = 0
        self.envelopes_dropped = 0
        self.envelopes_processed = 0
        self.extraction_misses = 0
        self.records_parsed = 0
        self.records_saved = 0
        self.persist_errors = 0
        self.replayed = 0
        self.backlog_dropped = 0
        self.dead_lettered = 0
        self.sample_unmatched_line = None
        self.last_updated = None
        self.started_at = time.monotonic()

    def to_dict(self) -> dict:
        d: dict = {
            "udp_packets": self.udp_packets,
            "udp_bytes": self.udp_bytes,
            "lines_received": self.lines_received,
            "decode_errors": self.decode_errors,
            "envelopes_dropped": self.envelopes_dropped,
            "envelopes_processed": self.envelopes_processed,
            "extraction_misses": self.extraction_misses,
            "records_parsed": self.records_parsed,
            "records_saved": self.records_saved,
            "persist_errors": self.persist_errors,
            "replayed": self.replayed,
            "backlog_size": self.backlog_size,
            "backlog_dropped": self.backlog_dropped,
            "dead_lettered": self.dead_lettered,
            "uptime_seconds": round(time.monotonic() - self.started_at, 1),
        }
        if self.sample_unmatched_line is not None:
            d["sample_unmatched_line"] = self.sample_unmatched_line
        if self.last_updated is not None:
            d["last_updated"] = self.last_updated.isoformat()
        return d

    def snapshot(self) -> dict:
        """Lightweight snapshot for GET /api/stats."""
        return {
            "udp_packets": self.udp_packets,
            "lines": self.lines_received,
            "misses": self.extraction_misses,
            "saved": self.records_saved,
            "errors": self.persist_errors,
            "backlog": self.backlog_size,
            "rejected": self.dead_lettered,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }

    def log_summary(self) -> None:
        logger.info(
            "Ingest stats | UDP: %d packets, %d bytes | lines: %d (decode_err=%d, dropped=%d) | envelopes: %d (misses=%d, parsed=%d) | DB: saved=%d, errors=%d, replayed=%d, backlog=%d, rejected=%d",
            self.udp_packets,
            self.udp_bytes,
            self.lines_received,
            self.decode_errors,
            self.envelopes_dropped,
            self.envelopes_processed,
            self.extraction_misses,
            self.records_parsed,
            self.records_saved,
            self.persist_errors,
            self.replayed,
            self.backlog_size,
            self.dead_lettered,
        )
        if self.envelopes_processed > 0 and self.records_parsed == 0 and self.sample_unmatched_line:
            logger.warning(
                "No firewall lines matched. Sample line (first %d chars): %s",
                SAMPLE_RAW_LINE_MAX,
                self.sample_unmatched_line,
            )


# Single global instance used by the UDP receiver and the pipeline
ingest_stats = IngestStats()
