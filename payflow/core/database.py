"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Test database support (SQLite or a dedicated server database)
- Table definitions for the checkout flow
"""
from typing import Optional
from contextlib import contextmanager
from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, Boolean, JSON, Text, Numeric, Index, UniqueConstraint, CheckConstraint, text
from sqlalchemy.pool import QueuePool, NullPool
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func, true
import logging
import os

from payflow.core.config import settings

logger = logging.getLogger("payflow")

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Global engine and session factory
_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    return os.getenv("DATABASE_URL") or settings.DATABASE_URL


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    if url.startswith("sqlite"):
        # SQLite serialises writers itself; a fresh connection per session
        # keeps concurrent verifications on separate transactions.
        _engine = create_engine(
            url,
            poolclass=NullPool,
            connect_args={"check_same_thread": False, "timeout": 30},
            echo=False,
        )
    else:
        _engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
            echo=False,  # Set to True for SQL query logging
        )

    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine
    )

    return _engine


def get_engine():
    """Get the current SQLAlchemy engine."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.

    Usage:
        with get_db_session() as session:
            session.execute(...)
            session.commit()
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables():
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    engine = get_engine()
    metadata.create_all(bind=engine)


def drop_all_tables():
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    engine = get_engine()
    metadata.drop_all(bind=engine)


def reset_database():
    """
    Reset the database by dropping and recreating all tables.

    WARNING: This is destructive! Only use in tests.
    """
    drop_all_tables()
    create_all_tables()


def check_connection() -> bool:
    """
    Check if database connection is available.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database connection check failed: {e}")
        return False


# Plan catalog
plans = Table(
    'plans',
    metadata,
    Column('plan_id', String(50), primary_key=True),
    Column('name', Text, nullable=False),
    Column('price', Numeric(12, 2), nullable=False),
    Column('currency', String(3), nullable=False),
    Column('interval', String(20), nullable=False, server_default='month'),
    Column('features', JSON, nullable=False),
    Column('is_active', Boolean, nullable=False, server_default=true()),
    Column('sort_order', Integer, nullable=False, server_default='0'),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    CheckConstraint('price >= 0', name='ck_plans_price_non_negative'),
)

# Server-side copy of every issued checkout (authoritative over callback params)
payment_intents = Table(
    'payment_intents',
    metadata,
    Column('reference', String(100), primary_key=True),
    Column('provider', String(20), nullable=False),
    Column('plan_id', String(50), nullable=False),
    Column('user_id', String(100), nullable=False),
    Column('email', String(255), nullable=True),
    Column('amount', Numeric(12, 2), nullable=False),
    Column('currency', String(3), nullable=False),
    Column('provider_session_id', String(255), nullable=True),
    Column('status', String(20), nullable=False, server_default='pending'),  # pending, fulfilled, flagged, expired
    Column('review_reason', Text, nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('expires_at', DateTime(timezone=True), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    Index('idx_payment_intents_user_created', 'user_id', 'created_at'),
    Index('idx_payment_intents_status_expires', 'status', 'expires_at'),
)

# Payment records (one per reference, never mutated)
payment_records = Table(
    'payment_records',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('reference', String(100), nullable=False),
    Column('user_id', String(100), nullable=False),
    Column('provider', String(20), nullable=False),
    Column('plan_id', String(50), nullable=False),
    Column('amount', Numeric(12, 2), nullable=False),
    Column('currency', String(3), nullable=False),
    Column('status', String(20), nullable=False),  # success, failed
    Column('provider_transaction_id', String(255), nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    # Serialization point for concurrent verifications of one reference
    UniqueConstraint('reference', name='uq_payment_records_reference'),
    CheckConstraint("status IN ('success', 'failed')", name='ck_payment_records_status'),
    Index('idx_payment_records_user_created', 'user_id', 'created_at'),
)

# User plan state (one row per user)
user_plans = Table(
    'user_plans',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('plan_id', String(50), nullable=False),
    Column('status', String(20), nullable=False, server_default='active'),  # active, suspended
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_user_plans_plan_id', 'plan_id'),
)
