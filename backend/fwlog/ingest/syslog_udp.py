from __future__ import annotations

import asyncio
import logging
from datetime import tzinfo
from typing import Callable, Optional

from ..errors import EnvelopeDecodeError
from .rfc3164 import Envelope, decode_rfc3164
from .stats import IngestStats, ingest_stats

logger = logging.getLogger("fwlog.syslog")


EnvelopeHandler = Callable[[Envelope], bool]


class SyslogProtocol(asyncio.DatagramProtocol):
    """Splits datagrams into lines, decodes each into an Envelope and hands it to handler.

    The handler must not block; it returns False when the envelope was not accepted.
    """

    def __init__(
        self,
        handler: EnvelopeHandler,
        stats: IngestStats = ingest_stats,
        zone: Optional[tzinfo] = None,
    ) -> None:
        self.handler = handler
        self.stats = stats
        self.zone = zone

    def datagram_received(self, data: bytes, addr) -> None:  # type: ignore[override]
        self.stats.udp_packets += 1
        self.stats.udp_bytes += len(data)
        client = f"{addr[0]}:{addr[1]}"
        text = data.decode(errors="replace")
        for line in text.splitlines():
            if not line.strip():
                continue
            self.stats.lines_received += 1
            try:
                envelope = decode_rfc3164(line, client, zone=self.zone)
            except EnvelopeDecodeError as exc:
                self.stats.decode_errors += 1
                logger.debug("Dropping undecodable syslog line from %s: %s", client, exc)
                continue
            self.handler(envelope)
        self.stats.touch()

    def error_received(self, exc: Exception) -> None:  # type: ignore[override]
        logger.error("Syslog UDP error: %s", exc)


async def run_syslog_udp_server(
    host: str,
    port: int,
    shutdown_event: asyncio.Event,
    handler: EnvelopeHandler,
    stats: IngestStats = ingest_stats,
    zone: Optional[tzinfo] = None,
) -> None:
    """Run the UDP syslog receiver until shutdown_event is set.

    `zone` is the zone whose wall-clock stamps lines that carry no header timestamp.
    """

    loop = asyncio.get_running_loop()

    transport, _ = await loop.create_datagram_endpoint(
        lambda: SyslogProtocol(handler, stats, zone),
        local_addr=(host, port),
    )
    logger.info("Listening for syslog on udp://%s:%s", host, port)

    try:
        await shutdown_event.wait()
    finally:
        transport.close()
