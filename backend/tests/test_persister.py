"""Tests for the Logs table persister: schema, identity, read-back and failure results."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import create_engine, select, text
from sqlalchemy.orm import sessionmaker

from conftest import SAMPLE_ACCEPT, SAMPLE_ICMP_DROP, make_envelope
from fwlog.errors import ConnectivityError, PersistenceError
from fwlog.ingest.extract import build_parsed_event, extract_fields
from fwlog.ingest.pipeline import build_record
from fwlog.storage.models import LogRecord
from fwlog.storage.persister import RecordPersister

ZONE = ZoneInfo("Europe/Stockholm")

# Insert order of the Logs columns, identity excluded.
LOG_COLUMNS = (
    "Timestamp",
    "hostname",
    "client",
    "priority",
    "severity",
    "tls_peer",
    "tag",
    "facility",
    "fw_rule",
    "action",
    "interface_in",
    "interface_out",
    "mac",
    "src",
    "dst",
    "proto",
    "spt",
    "dpt",
)


def _record(content: str) -> LogRecord:
    env = make_envelope(content)
    event = build_parsed_event(extract_fields(content))
    return build_record(env, event, env.timestamp.replace(tzinfo=ZONE))


def test_logs_table_column_order():
    names = [c.name for c in LogRecord.__table__.columns]
    assert names[0] == "id"
    assert tuple(names[1:]) == LOG_COLUMNS
    assert LogRecord.__table__.c.spt.nullable
    assert LogRecord.__table__.c.dpt.nullable


def test_persist_returns_identity_and_reads_back(persister, session_factory):
    record = _record(SAMPLE_ACCEPT)
    result = persister.persist(record)

    assert result.ok
    assert result.error is None
    assert isinstance(result.record_id, int)

    with session_factory() as session:
        row = session.get(LogRecord, result.record_id)
        assert row.timestamp.replace(tzinfo=None) == datetime(2026, 2, 10, 17, 37, 13, 250000)
        assert row.hostname == "gw1"
        assert row.client == "192.0.2.10:514"
        assert (row.priority, row.severity, row.facility) == (4, 4, 0)
        assert row.tls_peer == ""
        assert row.tag == "kernel"
        assert row.fw_rule == "RULE-A"
        assert row.action == "ACCEPT"
        assert row.interface_in == "eth0"
        assert row.interface_out == ""
        assert row.mac == "00:11:22:33:44:55"
        assert row.src == "10.0.0.1"
        assert row.dst == "10.0.0.2"
        assert row.proto == "TCP"
        assert row.spt == 1234
        assert row.dpt == 80


def test_persist_icmp_stores_null_ports(persister, session_factory):
    result = persister.persist(_record(SAMPLE_ICMP_DROP))
    assert result.ok
    with session_factory() as session:
        row = session.get(LogRecord, result.record_id)
        assert row.action == "DROP"
        assert row.spt is None
        assert row.dpt is None


def test_identities_increase(persister, session_factory):
    ids = [persister.persist(_record(SAMPLE_ACCEPT)).record_id for _ in range(5)]
    assert ids == sorted(ids)
    assert len(set(ids)) == 5
    with session_factory() as session:
        assert session.execute(select(LogRecord.id).order_by(LogRecord.id)).scalars().all() == ids


def test_unreachable_store_raises_connectivity_error(tmp_path: Path):
    url = f"sqlite:///{tmp_path / 'missing-dir' / 'x.db'}"
    engine = create_engine(url, future=True)
    persister = RecordPersister(engine, sessionmaker(bind=engine), retry_attempts=1, retry_base_sleep=0)
    with pytest.raises(ConnectivityError):
        persister.check_connectivity()


def test_unreachable_store_returns_failed_result(tmp_path: Path):
    url = f"sqlite:///{tmp_path / 'missing-dir' / 'x.db'}"
    engine = create_engine(url, future=True)
    persister = RecordPersister(engine, sessionmaker(bind=engine), retry_attempts=2, retry_base_sleep=0)
    record = _record(SAMPLE_ACCEPT)

    result = persister.persist(record)

    assert not result.ok
    assert result.record is record
    assert result.record_id is None
    assert isinstance(result.error, ConnectivityError)
    assert result.retryable


def test_missing_table_returns_persistence_error(tmp_path: Path):
    engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}", future=True)
    persister = RecordPersister(engine, sessionmaker(bind=engine), retry_attempts=1, retry_base_sleep=0)

    result = persister.persist(_record(SAMPLE_ACCEPT))

    assert not result.ok
    assert isinstance(result.error, PersistenceError)


def test_long_rule_and_mac_are_stored_whole(persister, session_factory):
    rule = "WAN_LOCAL-" + "x" * 300 + "-D"
    mac = ":".join(["aa"] * 120)
    content = f"[{rule}] IN=eth0 OUT= MAC={mac} SRC=10.0.0.1 DST=10.0.0.2 PROTO=UDP SPT=53 DPT=5353"

    result = persister.persist(_record(content))

    assert result.ok
    with session_factory() as session:
        row = session.get(LogRecord, result.record_id)
        assert row.fw_rule == rule
        assert row.mac == mac
        assert row.action == "DROP"


def test_rejected_row_is_not_retryable(persister):
    with persister.engine.begin() as conn:
        conn.execute(
            text(
                'CREATE TRIGGER reject_bad BEFORE INSERT ON "Logs" '
                "WHEN NEW.fw_rule = 'BAD-D' "
                "BEGIN SELECT RAISE(ABORT, 'rule not allowed'); END"
            )
        )

    result = persister.persist(_record(SAMPLE_ACCEPT.replace("RULE-A", "BAD-D")))

    assert not result.ok
    assert isinstance(result.error, PersistenceError)
    assert not result.retryable
