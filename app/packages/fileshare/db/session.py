"""Database engine and session factory configuration."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.packages.fileshare.core.config import get_settings

settings = get_settings()


def build_engine(url: str, *, echo: bool = False):
    """Create an engine; SQLite gets a busy timeout so concurrent writers queue instead of failing."""
    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False, "timeout": 30})
    # ``pool_pre_ping`` keeps the connection pool healthy.
    return create_engine(url, pool_pre_ping=True, echo=echo)


engine = build_engine(settings.sql_database_url, echo=settings.database_echo)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
