from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from hoopboard import db
from hoopboard.errors import PersistenceError, ShareCodeConflict

UNIQUE_VIOLATION = '23505'


def _is_share_code_conflict(exc: IntegrityError) -> bool:
    """True when the unique index on scoreboard.share_code rejected a write."""
    orig = exc.orig
    sqlstate = getattr(orig, 'pgcode', None) or getattr(orig, 'sqlstate', None)
    if sqlstate is not None:
        diag = getattr(orig, 'diag', None)
        constraint = getattr(diag, 'constraint_name', None) or ''
        return sqlstate == UNIQUE_VIOLATION and 'share_code' in constraint
    # SQLite reports no SQLSTATE: "UNIQUE constraint failed: scoreboard.share_code"
    message = str(orig)
    return 'UNIQUE' in message and 'scoreboard.share_code' in message


def commit(context: str) -> None:
    """Commit the session, rolling back and raising PersistenceError on failure."""
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if _is_share_code_conflict(exc):
            raise ShareCodeConflict(f"{context}: share code already in use") from exc
        current_app.logger.error(f"[db-error] {context}: {exc.orig}")
        raise PersistenceError(f"{context}: {exc.orig}") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[db-error] {context}: {exc}")
        raise PersistenceError(f"{context}: {exc}") from exc


@contextmanager
def reading(context: str):
    """Wrap a read so database errors surface as PersistenceError."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[db-error] {context}: {exc}")
        raise PersistenceError(f"{context}: {exc}") from exc
