from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class LogRecord(Base):
    """One parsed packet-filter line. Append-only: rows are never updated or deleted."""

    __tablename__ = "Logs"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )

    # Syslog envelope
    timestamp: Mapped[datetime] = mapped_column("Timestamp", DateTime(timezone=True), index=True)
    hostname: Mapped[str] = mapped_column(String(255))
    client: Mapped[str] = mapped_column(String(255))
    priority: Mapped[int] = mapped_column(Integer)
    severity: Mapped[int] = mapped_column(Integer)
    tls_peer: Mapped[str] = mapped_column(String(255))
    tag: Mapped[str] = mapped_column(String(255))
    facility: Mapped[int] = mapped_column(Integer)

    # Packet-filter fields
    fw_rule: Mapped[str] = mapped_column(Text)
    action: Mapped[str] = mapped_column(String(16), index=True)
    interface_in: Mapped[str] = mapped_column(String(64))
    interface_out: Mapped[str] = mapped_column(String(64))
    mac: Mapped[str] = mapped_column(Text)
    src: Mapped[str] = mapped_column(String(64), index=True)
    dst: Mapped[str] = mapped_column(String(64), index=True)
    proto: Mapped[str] = mapped_column(String(16))
    spt: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    dpt: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

