from __future__ import annotations

from typing import Tuple

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker


def init_engine_and_sessionmaker(database_url: str) -> Tuple[Engine, sessionmaker]:
    """Initialise SQLAlchemy engine and sessionmaker."""
    engine = create_engine(database_url, future=True, pool_pre_ping=True)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    return engine, SessionLocal
