# airodental/database.py
from __future__ import annotations
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from .config import settings, Settings

Base = declarative_base()


def build_engine(cfg: Settings = settings, url: str | None = None) -> Engine:
    """
    Engine for the configured database. Every connection carries a timeout so
    no persistence call blocks indefinitely.
    """
    database_url = url or cfg.DATABASE_URL
    if not database_url:
        raise RuntimeError("DATABASE_URL is not configured (check your .env).")

    if database_url.startswith("sqlite"):
        # Local SQLite file (or in-memory for tests)
        return create_engine(
            database_url,
            connect_args={
                "check_same_thread": False,  # FastAPI serves sync routes from a threadpool
                "timeout": cfg.DB_STATEMENT_TIMEOUT_MS / 1000,
            },
            pool_pre_ping=True,
            future=True,
        )

    # Postgres (production)
    return create_engine(
        database_url,
        pool_size=cfg.DB_POOL_SIZE,
        max_overflow=cfg.DB_MAX_OVERFLOW,
        pool_timeout=cfg.DB_POOL_TIMEOUT,
        pool_recycle=cfg.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        connect_args={"options": f"-c statement_timeout={cfg.DB_STATEMENT_TIMEOUT_MS}"},
        future=True,
    )


engine = build_engine()

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)


def init_db(bind: Engine | None = None) -> None:
    """
    Create missing tables. Models are imported first so the metadata knows
    about every table.
    """
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)


def get_db() -> Iterator[Session]:
    """Request-scoped session; always closed, whatever the route did."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
