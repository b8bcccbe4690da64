from __future__ import annotations

from fastapi import APIRouter

from ..ingest.stats import ingest_stats

router = APIRouter(tags=["ingest"])


@router.get("/stats")
def get_stats_snapshot():
    """Short ingest counters."""
    return ingest_stats.snapshot()


@router.get("/ingest/stats")
def get_ingest_stats():
    """Full ingest counters, uptime and replay backlog size."""
    return ingest_stats.to_dict()


@router.post("/ingest/stats/reset")
def reset_ingest_stats():
    ingest_stats.reset()
    return {"ok": True}
