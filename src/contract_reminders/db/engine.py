"""
Database engine and session management
PostgreSQL in production; SQLite accepted for local development and tests
"""
import logging
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from ..config import config

logger = logging.getLogger(__name__)


def create_database_engine(database_url: str) -> Engine:
    """
    Create the SQLAlchemy engine for the given URL
    
    Args:
        database_url: SQLAlchemy connection string
    
    Returns:
        Configured Engine instance
    """
    if database_url.startswith("sqlite"):
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # Single shared connection so every session sees the same in-memory database
            db_engine = create_engine(
                database_url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            db_engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
            )
        logger.info("Database engine created for SQLite (local development only)")
        return db_engine
    
    db_engine = create_engine(
        database_url,
        pool_pre_ping=True,  # Detect dead connections before use
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_recycle=config.DB_POOL_RECYCLE,
        pool_timeout=config.DB_POOL_TIMEOUT,
        echo=False,
        connect_args={
            "connect_timeout": 10,
            "keepalives": 1,
            "keepalives_idle": 60,
            "keepalives_interval": 10,
            "keepalives_count": 3,
            "application_name": "contract_reminders",
        },
    )
        
    logger.info("Database engine created for PostgreSQL")
    return db_engine


engine = create_database_engine(config.DATABASE_URL or "sqlite://")

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency yielding a database session
    
    The session is always closed after the request, rolled back on error.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
