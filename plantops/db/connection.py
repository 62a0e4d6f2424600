# ============================================================
# Core DB connection
# ============================================================
import math
from typing import Any, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, Session

from plantops.config import settings
from plantops.domain.approval.models import Base


def driver_timeout_args(url: str, timeout: float) -> dict[str, Any]:
    """Driver connect args that bound connecting and every statement by `timeout`."""
    backend = make_url(url).get_backend_name()
    seconds = max(1, math.ceil(timeout))
    if backend == "sqlite":
        # `timeout` bounds how long a writer waits on the database lock.
        return {"check_same_thread": False, "timeout": timeout}
    if backend == "postgresql":
        return {
            "connect_timeout": seconds,
            "options": f"-c statement_timeout={int(timeout * 1000)} -c lock_timeout={int(timeout * 1000)}",
        }
    if backend in ("mysql", "mariadb"):
        return {"connect_timeout": seconds, "read_timeout": seconds, "write_timeout": seconds}
    return {}


def build_engine(url: str, timeout: float | None = None) -> Engine:
    """Create an engine whose calls give up after `timeout` seconds."""
    timeout = timeout or settings.storage_timeout_seconds
    connect_args = driver_timeout_args(url, timeout)
    if make_url(url).get_backend_name() == "sqlite":
        return create_engine(url, connect_args=connect_args)
    return create_engine(
        url,
        connect_args=connect_args,
        pool_pre_ping=True,
        pool_timeout=timeout,
    )


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine | None = None) -> None:
    """Create tables"""
    Base.metadata.create_all(bind=bind or engine)


def get_db() -> Iterator[Session]:
    """Dependency to provide DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
