"""
wakeme/DB/session.py
======================================
Database Session Configuration Module
======================================

Creates the SQLAlchemy engine and the ``SessionLocal`` factory used by the
REST routes, the repository persistence gateway and Alembic.

Usage Example:
-------------
    from wakeme.DB.session import SessionLocal

    with SessionLocal() as db:
        trips = db.query(Trip).all()

Session Configuration:
---------------------
- autocommit=False: Transactions must be explicitly committed
- autoflush=False: Changes are not flushed before queries
- SQLite URLs disable the same-thread check, because the persistence
  dispatcher writes from a worker thread
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from wakeme.Core.config import settings


# ============================================================
# DATABASE ENGINE CONFIGURATION
# ============================================================
_connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    _connect_args["check_same_thread"] = False

engine = create_engine(settings.DATABASE_URL, connect_args=_connect_args)


# ============================================================
# SESSION FACTORY CONFIGURATION
# ============================================================
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)
