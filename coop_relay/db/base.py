"""SQLAlchemy base models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for declarative SQLAlchemy models."""
