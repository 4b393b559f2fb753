"""
Database Configuration
======================

This module provides:
1. build_engine() - SQLAlchemy engine (connection pool) for a database URL
2. build_session_factory() - session factory bound to that engine
3. Base - declarative base for models

Nothing is connected at import time. The application factory builds the
engine from settings on startup and disposes it on shutdown, so tests can
point the whole app at an in-memory SQLite database.

Key Concepts:
- Engine: The "pool" of database connections
- Session: A "conversation" with the database (one request = one session)
- Base: Parent class for all database models
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# ============================================================================
# SQLAlchemy ENGINE
# ============================================================================
# - pool_pre_ping=True
#   Tests connections before using them, so a restarted database does not
#   surface as "connection lost" errors
#
# - SQLite (tests, local runs) needs check_same_thread=False because the
#   TestClient and scheduler threads share connections; an in-memory
#   database must also use a single StaticPool connection or every new
#   connection would see an empty database.


def build_engine(database_url: str, echo: bool = False) -> Engine:
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_engine(database_url, pool_pre_ping=True, echo=echo)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ============================================================================
# SESSION FACTORY
# ============================================================================
# - autocommit=False
#   Changes aren't saved until you call session.commit(); the checkout uses
#   this to make order creation and stock decrement a single transaction
#
# - autoflush=False
#   SQLAlchemy won't automatically sync in-memory changes to DB
#
# - expire_on_commit=False
#   Objects returned from a service stay readable after its commit, so the
#   route can serialise them without another round trip


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


# ============================================================================
# DECLARATIVE BASE
# ============================================================================
# All database models inherit from this Base class.
# Base.metadata.create_all(bind=engine) creates every table at startup.

Base = declarative_base()


def create_tables(engine: Engine) -> None:
    # Import models so they are registered on Base.metadata
    from fishstore import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
