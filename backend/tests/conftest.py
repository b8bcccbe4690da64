from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from fwlog.ingest.rfc3164 import Envelope
from fwlog.storage.db import init_engine_and_sessionmaker
from fwlog.storage.persister import RecordPersister

SAMPLE_ACCEPT = (
    "[RULE-A] IN=eth0 OUT= MAC=00:11:22:33:44:55 SRC=10.0.0.1 DST=10.0.0.2 PROTO=TCP SPT=1234 DPT=80"
)
SAMPLE_ICMP_DROP = (
    "[FW-D] IN=eth1 OUT=eth0 MAC=aa:bb:cc:dd:ee:ff SRC=192.168.1.5 DST=8.8.8.8 PROTO=ICMP"
)


@pytest.fixture
def persister(tmp_path: Path):
    """File-backed SQLite store with the Logs table created."""
    engine, SessionLocal = init_engine_and_sessionmaker(f"sqlite:///{tmp_path / 'fwlog.db'}")
    persister = RecordPersister(engine, SessionLocal, retry_attempts=1, retry_base_sleep=0)
    persister.create_schema()
    yield persister
    persister.dispose()


@pytest.fixture
def session_factory(persister):
    return persister.session_factory


def make_envelope(content: str, **overrides) -> Envelope:
    values = dict(
        timestamp=datetime(2026, 2, 10, 17, 37, 13, 250000, tzinfo=timezone.utc),
        hostname="gw1",
        client="192.0.2.10:514",
        priority=4,
        severity=4,
        tls_peer="",
        tag="kernel",
        facility=0,
        content=content,
    )
    values.update(overrides)
    return Envelope(**values)
