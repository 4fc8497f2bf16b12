"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Test database support
- Table definitions for the entitlement system of record
"""
from typing import Optional
from contextlib import contextmanager
import logging
import os

from sqlalchemy import (
    create_engine,
    event,
    MetaData,
    Table,
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    Numeric,
    Text,
    Index,
    ForeignKey,
    UniqueConstraint,
    text,
)
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.sql import func

from tangabiz.core.config import settings


logger = logging.getLogger(__name__)

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Connection execution option: the transaction only reads (deferred BEGIN on SQLite)
READ_ONLY_OPTION = "tangabiz_read_only"

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

    return settings.DATABASE_URL


def _install_sqlite_locking(engine) -> None:
    """Serialize SQLite writers with BEGIN IMMEDIATE.

    pysqlite's own deferred BEGIN lets two readers both hold SHARED locks and
    then deadlock when they upgrade; taking the write lock up front makes a
    second transaction wait on the busy timeout instead.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        if conn.get_execution_options().get(READ_ONLY_OPTION):
            conn.exec_driver_sql("BEGIN")
        else:
            conn.exec_driver_sql("BEGIN IMMEDIATE")


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

    if _engine is not None:
        _engine.dispose()

    timeout = settings.DB_LOCK_TIMEOUT_SECONDS
    if make_url(url).get_backend_name() == "sqlite":
        _engine = create_engine(
            url,
            connect_args={"timeout": timeout, "check_same_thread": False},
            echo=False,
        )
        _install_sqlite_locking(_engine)
    else:
        _engine = create_engine(
            url,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
            pool_pre_ping=True,
            connect_args={"options": f"-c statement_timeout={int(timeout * 1000)}"},
            echo=False,  # Set to True for SQL query logging
        )

    # Create session factory
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
def get_read_session():
    """
    Session for lookups that must not queue behind writers.

    On SQLite the transaction starts deferred instead of taking the write
    lock. Nothing is committed.
    """
    with get_engine().connect() as connection:
        connection.execution_options(**{READ_ONLY_OPTION: True})
        session = Session(bind=connection)
        try:
            yield session
        finally:
            session.close()


def dispose_engine() -> None:
    """Close pooled connections and forget the engine (tests, shutdown)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.

    Commits on clean exit, rolls back on any exception.

    Usage:
        with get_db_session() as session:
            session.execute(...)
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
        logger.warning("Database connection check failed: %s", e)
        return False


# Organizations: tenant root, plan state and the per-org quota lock row
organizations = Table(
    'organizations',
    metadata,
    Column('id', String(64), primary_key=True),
    Column('name', Text, nullable=False),
    Column('plan', String(32), nullable=True),  # NULL until a paid plan is resolved
    Column('plan_started_at', DateTime(timezone=True), nullable=True),
    Column('subscription_status', String(32), nullable=True),
    Column('subscription_id', String(64), nullable=True),  # provider subscription backing the plan
    Column('quota_version', Integer, nullable=False, server_default='0'),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    UniqueConstraint('subscription_id', name='uq_organizations_subscription'),
)

# Memberships: one role per (organization, user)
members = Table(
    'members',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('organization_id', String(64), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
    Column('user_id', String(100), nullable=False),
    Column('role', String(16), nullable=False),
    Column('is_owner', Boolean, nullable=False, server_default='0'),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    UniqueConstraint('organization_id', 'user_id', name='uq_members_org_user'),
    Index('idx_members_org', 'organization_id'),
)

products = Table(
    'products',
    metadata,
    Column('id', String(64), primary_key=True),
    Column('organization_id', String(64), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
    Column('name', Text, nullable=False),
    Column('price', Numeric(12, 2), nullable=False),
    Column('is_active', Boolean, nullable=False, server_default='1'),
    Column('created_by', String(100), nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_products_org_active', 'organization_id', 'is_active'),
)

customers = Table(
    'customers',
    metadata,
    Column('id', String(64), primary_key=True),
    Column('organization_id', String(64), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
    Column('name', Text, nullable=False),
    Column('email', String(255), nullable=True),
    Column('phone', String(50), nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_customers_org', 'organization_id'),
)

sales = Table(
    'sales',
    metadata,
    Column('id', String(64), primary_key=True),
    Column('organization_id', String(64), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
    Column('created_by', String(100), nullable=False),
    Column('customer_id', String(64), ForeignKey('customers.id', ondelete='SET NULL'), nullable=True),
    Column('total', Numeric(12, 2), nullable=False),
    Column('payment_method', String(32), nullable=False, server_default='CASH'),
    Column('created_at', DateTime(timezone=True), nullable=False),
    # Monthly quota counts filter on (organization_id, created_at)
    Index('idx_sales_org_created', 'organization_id', 'created_at'),
)
