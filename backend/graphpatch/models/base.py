"""Base model for SQLAlchemy models.

The mapped tables belong to the automation engine; this service never
creates or migrates them outside of tests.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


__all__ = ["Base"]
