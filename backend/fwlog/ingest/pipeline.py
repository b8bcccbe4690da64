"""Single-consumer ingest pipeline: envelope -> extract -> classify -> normalize -> persist."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from datetime import datetime
from enum import Enum
from typing import Deque, List, Optional

from ..storage.models import LogRecord
from ..storage.persister import PersistResult, RecordPersister
from .extract import ParsedEvent, build_parsed_event, extract_fields
from .rfc3164 import Envelope
from .stats import SAMPLE_RAW_LINE_MAX, IngestStats, ingest_stats
from .timestamps import TimestampNormalizer

logger = logging.getLogger("fwlog.ingest")

GET_TIMEOUT_SEC = 0.5


class PipelineState(str, Enum):
    WAITING = "waiting"
    EXTRACTING = "extracting"
    DISCARDED = "discarded"
    CLASSIFYING = "classifying"
    NORMALIZING = "normalizing"
    PERSISTING = "persisting"


def build_record(envelope: Envelope, event: ParsedEvent, timestamp: datetime) -> LogRecord:
    return LogRecord(
        timestamp=timestamp,
        hostname=envelope.hostname,
        client=envelope.client,
        priority=envelope.priority,
        severity=envelope.severity,
        tls_peer=envelope.tls_peer,
        tag=envelope.tag,
        facility=envelope.facility,
        fw_rule=event.rule,
        action=event.action.value,
        interface_in=event.interface_in,
        interface_out=event.interface_out,
        mac=event.mac,
        src=event.src,
        dst=event.dst,
        proto=event.proto,
        spt=event.source_port,
        dpt=event.dest_port,
    )


class IngestPipeline:
    """Consumes envelopes strictly one at a time, in arrival order.

    Records whose insert failed go to an in-order replay backlog. While the backlog
    is non-empty new records queue behind it, so rows reach the store in the order
    their envelopes arrived. Records the store rejects outright (constraint or data
    errors) are not retried; they go to `dead_letters` and ingestion carries on.
    """

    def __init__(
        self,
        persister: RecordPersister,
        normalizer: TimestampNormalizer,
        queue_size: int = 1000,
        backlog_max: int = 10000,
        stats: IngestStats = ingest_stats,
    ) -> None:
        self.persister = persister
        self.normalizer = normalizer
        self.queue: asyncio.Queue[Envelope] = asyncio.Queue(maxsize=queue_size)
        self.backlog: Deque[LogRecord] = deque()
        self.backlog_max = backlog_max
        self.dead_letters: Deque[LogRecord] = deque(maxlen=backlog_max)
        self.stats = stats
        self.state = PipelineState.WAITING

    def submit(self, envelope: Envelope) -> bool:
        """Enqueue without waiting. Returns False (and counts a drop) when the queue is full."""
        try:
            self.queue.put_nowait(envelope)
        except asyncio.QueueFull:
            self.stats.envelopes_dropped += 1
            logger.debug("Ingest queue full (%d); dropping envelope from %s", self.queue.maxsize, envelope.client)
            return False
        return True

    async def put(self, envelope: Envelope) -> None:
        """Enqueue, waiting for room when the queue is full."""
        await self.queue.put(envelope)

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Consume until shutdown_event is set and the queue has been drained."""
        logger.info("Ingest pipeline started (queue size %d)", self.queue.maxsize)
        while not (shutdown_event.is_set() and self.queue.empty()):
            try:
                envelope = await asyncio.wait_for(self.queue.get(), timeout=GET_TIMEOUT_SEC)
            except asyncio.TimeoutError:
                continue
            try:
                self.process(envelope)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Unexpected error processing envelope from %s: %s", envelope.client, exc)
                self.state = PipelineState.WAITING
            finally:
                self.queue.task_done()

        if self.backlog:
            self.replay_backlog()
        if self.backlog:
            logger.warning("Stopping with %d record(s) still awaiting replay", len(self.backlog))
        logger.info("Ingest pipeline stopped")

    def process(self, envelope: Envelope) -> Optional[PersistResult]:
        """Run one envelope through the pipeline. None when the content is not a firewall line."""
        self.stats.envelopes_processed += 1

        self.state = PipelineState.EXTRACTING
        extracted = extract_fields(envelope.content)
        if not extracted.matched:
            self.state = PipelineState.DISCARDED
            self.stats.extraction_misses += 1
            self.stats.sample_unmatched_line = envelope.content[:SAMPLE_RAW_LINE_MAX]
            logger.debug("No firewall fields in message from %s tag=%s", envelope.hostname, envelope.tag)
            self.state = PipelineState.WAITING
            return None

        self.state = PipelineState.CLASSIFYING
        event = build_parsed_event(extracted)
        self.stats.records_parsed += 1

        self.state = PipelineState.NORMALIZING
        timestamp = self.normalizer.normalize(envelope.timestamp)
        record = build_record(envelope, event, timestamp)

        self.state = PipelineState.PERSISTING
        result = self._persist_in_order(record)
        self.stats.touch()
        self.state = PipelineState.WAITING
        return result

    def _persist_in_order(self, record: LogRecord) -> PersistResult:
        if self.backlog:
            self._add_to_backlog(record)
            results = self.replay_backlog()
            for r in results:
                if r.record is record:
                    return r
            head_error = results[-1].error if results else None
            return PersistResult(ok=False, record=record, error=head_error, retryable=True)

        result = self.persister.persist(record)
        if result.ok:
            self.stats.records_saved += 1
            return result
        self.stats.persist_errors += 1
        if result.retryable:
            self._add_to_backlog(record)
        else:
            self._dead_letter(result)
        return result

    def _add_to_backlog(self, record: LogRecord) -> None:
        if len(self.backlog) >= self.backlog_max:
            dropped = self.backlog.popleft()
            self.stats.backlog_dropped += 1
            logger.warning(
                "Replay backlog full (%d); dropping oldest record host=%s ts=%s rule=%s",
                self.backlog_max,
                dropped.hostname,
                dropped.timestamp,
                dropped.fw_rule,
            )
        self.backlog.append(record)
        self.stats.backlog_size = len(self.backlog)

    def _dead_letter(self, result: PersistResult) -> None:
        """Keep a record the store rejected outright; it is not retried."""
        record = result.record
        self.dead_letters.append(record)
        self.stats.dead_lettered += 1
        logger.warning(
            "Store rejected record host=%s ts=%s rule=%s src=%s dst=%s: %s",
            record.hostname,
            record.timestamp,
            record.fw_rule,
            record.src,
            record.dst,
            result.error,
        )

    def replay_backlog(self) -> List[PersistResult]:
        """Persist backlog records from the head.

        Stops at the first record the store cannot take right now; records it
        rejects outright are dead-lettered and replay moves on to the next one.
        """
        results: List[PersistResult] = []
        while self.backlog:
            result = self.persister.persist(self.backlog[0])
            results.append(result)
            if result.ok:
                self.backlog.popleft()
                self.stats.records_saved += 1
                self.stats.replayed += 1
                continue
            self.stats.persist_errors += 1
            if result.retryable:
                break
            self.backlog.popleft()
            self._dead_letter(result)
        self.stats.backlog_size = len(self.backlog)
        if results and not self.backlog:
            logger.info("Replay backlog drained (%d record(s))", len(results))
        return results
