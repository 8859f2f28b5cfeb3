"""
wakeme/DB/base_class.py
=================================
SQLAlchemy Base Model Definition
=================================

Declarative base shared by every ORM model of the trip alarm service.
Table names default to the lowercase class name; models that need a plural
table name override ``__tablename__`` explicitly.

Note:
    Models must inherit from this Base to be registered in ``Base.metadata``
    and be discovered by Alembic.
"""

from sqlalchemy.orm import DeclarativeBase, declared_attr


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models in the application."""

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return cls.__name__.lower()
