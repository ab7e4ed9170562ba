# ring_history/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy with SQLite by default. All models are auto-imported here
so create_tables() creates every table in one call.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from ring_history.config import settings


def make_engine(url: str, **kwargs):
    """Build an engine; SQLite connections are shared with the crawler task thread."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True, echo=False, **kwargs)


engine = make_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency — yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """
    Creates all DB tables on startup. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from ring_history.models.crawl_state import CrawlStateRecord      # noqa
    from ring_history.models.cloud_event import CloudEventRecord      # noqa
    from ring_history.models.cloud_video import CloudVideoRecord      # noqa
    from ring_history.models.device_history import DeviceHistoryRecord  # noqa

    Base.metadata.create_all(bind=bind or engine)
