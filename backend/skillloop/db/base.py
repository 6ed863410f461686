"""SQLAlchemy Declarative Base — shared base class for all ORM models.

Invariants:
    - Every table in models/ and in the Alembic migrations hangs off Base.metadata
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SkillLoop ORM models."""
    pass
