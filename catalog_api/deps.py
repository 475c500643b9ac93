# catalog_api/deps.py
from typing import Generator, Optional

from fastapi import Depends
from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine

from catalog_api.config import DATABASE_URL

# Single engine for the process, created on first use
_engine: Optional[Engine] = None


def get_engine() -> Engine:
    """FastAPI dependency returning the process-wide engine."""
    global _engine
    if _engine is None:
        _engine = create_engine(
            DATABASE_URL,
            future=True,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
        )
    return _engine


def get_conn(engine: Engine = Depends(get_engine)) -> Generator[Connection, None, None]:
    """
    FastAPI dependency that yields a SQLAlchemy Connection.
    IMPORTANT: Do NOT decorate with @contextmanager.
    """
    conn = engine.connect()
    try:
        yield conn
    finally:
        conn.close()
