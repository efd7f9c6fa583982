"""
Database setup for the places store.
Provides SQLAlchemy engine/session utilities (SQLite unless configured otherwise).
"""
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from settings import settings


DB_PATH = Path(__file__).resolve().parent / "places.db"
DATABASE_URL = settings.PLACES_DATABASE_URL or f"sqlite:///{DB_PATH}"

Base = declarative_base()


def make_engine(url: str = DATABASE_URL):
    """Create an engine; SQLite connections are shared with worker threads."""
    connect_args = {}
    if url.startswith("sqlite"):
        # check_same_thread=False allows queries from asyncio.to_thread workers
        connect_args = {"check_same_thread": False}
    return create_engine(url, connect_args=connect_args, echo=settings.PLACES_LOG_SQL)


engine = make_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db(bind=None) -> None:
    """Create tables if they don't exist."""
    from repositories import models  # noqa: F401  Ensures models are registered

    Base.metadata.create_all(bind=bind or engine)


def get_session():
    """FastAPI dependency-style session generator."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
