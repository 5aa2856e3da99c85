from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from agri_auction.core.config import get_settings

settings = get_settings()

DATABASE_URL = settings.database_url


def build_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        # API threadpool and scheduler thread share the engine; writers wait on the file lock
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(
        url,
        pool_pre_ping=True,
        future=True,
        connect_args=connect_args,
    )


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
