"""
SQLAlchemy database connection and session management.

This module provides:
- Engine construction from DATABASE_URL (SQLite locally, any SQLAlchemy URL in production)
- Session factory for dependency injection
- A transactional session scope shared by the service layer

Usage:
     from database import SessionLocal, session_scope

     with session_scope(SessionLocal) as db:
          states = db.query(LedgerState).all()
"""
import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

import config

logger = logging.getLogger(__name__)


def build_engine(url: str, echo: bool = False) -> Engine:
     """
     Create an engine for the given URL.

     SQLite gets its own connect args; pooled settings only apply to server databases.
     """
     if url.startswith("sqlite"):
          return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
     return create_engine(
          url,
          poolclass=QueuePool,
          pool_size=5,
          max_overflow=10,
          pool_timeout=30,
          pool_recycle=1800,  # Recycle connections after 30 minutes
          echo=echo,
     )


def build_session_factory(bind: Engine) -> sessionmaker:
     """
     Session factory used across the app.

     expire_on_commit is off so records returned from a committed
     transaction stay readable after the session closes.
     """
     return sessionmaker(
          bind=bind,
          autoflush=False,
          expire_on_commit=False,
     )


engine = build_engine(config.DATABASE_URL, echo=config.SQL_ECHO)
SessionLocal = build_session_factory(engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
     """
     Run a unit of work: commit on success, roll back on any error, always close.

     Yields:
          Session: SQLAlchemy database session
     """
     session = factory()
     try:
          yield session
          session.commit()
     except Exception:
          session.rollback()
          raise
     finally:
          session.close()


def init_db(bind: Optional[Engine] = None) -> None:
     """
     Initialize database tables.

     Creates all tables defined in the models if they don't exist.
     For production, use Alembic migrations instead.
     """
     from models import Base
     Base.metadata.create_all(bind=bind or engine)


def check_connection(bind: Optional[Engine] = None) -> bool:
     """
     Test database connectivity.

     Returns:
          bool: True if connection successful, False otherwise
     """
     try:
          with (bind or engine).connect() as conn:
               conn.execute(text("SELECT 1"))
          return True
     except Exception as e:
          logger.error(f"Database connection failed: {e}")
          return False
