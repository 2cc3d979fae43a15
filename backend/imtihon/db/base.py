"""Database base class.

Models register themselves on ``Base.metadata`` when ``imtihon.models`` is
imported; import that package before calling ``create_all``.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass
