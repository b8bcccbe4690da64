"""Exception types shared by the ingest pipeline and storage layer."""

from __future__ import annotations


class FwlogError(Exception):
    pass


class ZoneLoadError(FwlogError):
    """Local zone data could not be loaded. Fatal at startup."""


class EnvelopeDecodeError(FwlogError):
    """A syslog datagram line could not be decoded into an envelope."""


class StoreError(FwlogError):
    pass


class ConnectivityError(StoreError):
    """The store did not answer the liveness check."""


class PersistenceError(StoreError):
    """Insert, commit or identity read failed for a single record."""
