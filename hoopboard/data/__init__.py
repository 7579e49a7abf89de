"""Database access for scoreboards, teams and quarters.

Every write commits its own session and converts SQLAlchemy failures into
``PersistenceError`` after rolling the session back.
"""

from .gateway import LocalGateway

__all__ = ['LocalGateway']
