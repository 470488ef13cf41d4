from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from app.config import settings


def normalize_url(raw_url: str) -> str:
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql://", 1)
    return raw_url


def make_engine(url: str | None = None) -> Engine:
    db_url = normalize_url(url or settings.database_url)
    if db_url in ("sqlite://", "sqlite:///:memory:"):
        # Single shared connection so every checkout sees the same in-memory database
        return create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(db_url, pool_pre_ping=True)
