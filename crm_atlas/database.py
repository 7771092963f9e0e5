"""
Database engine, session factory and unit-of-work helper.

SQLite (sqlite:///local.db) unless DATABASE_URL points at Postgres. Schema is
owned by Alembic; nothing here creates tables.
"""
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from crm_atlas.config import DATABASE_URL


class Base(DeclarativeBase):
    pass


def _normalise_url(raw_url):
    # Hosted Postgres URLs use postgres:// but SQLAlchemy 2.x requires postgresql://
    return raw_url.replace('postgres://', 'postgresql://', 1)


def build_engine(raw_url):
    url = _normalise_url(raw_url)
    if url.startswith('sqlite'):
        return create_engine(url, connect_args={'check_same_thread': False})
    return create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine)


def get_session():
    """Return a new DB session. Callers own commit/rollback/close."""
    return SessionLocal()


@contextmanager
def session_scope():
    """One unit of work: commit on success, roll back and re-raise on error."""
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
