"""
Translation of SQLAlchemy failures into the portal's error taxonomy.

Unique violations become Conflict so callers can tell a lost race from a
broken backend. Other integrity violations (a foreign key pointing at a row
that has since been deleted, a failed check) become NotFound when the caller
names the missing reference, and PersistenceFailure otherwise. Everything
else is a PersistenceFailure. The session is always rolled back before the
error propagates.
"""
import logging
from contextlib import contextmanager
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from portal.errors import Conflict, NotFound, PersistenceFailure

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


def _sqlstate(exc: IntegrityError) -> Optional[str]:
    # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
    return getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)


def is_unique_violation(exc: IntegrityError) -> bool:
    code = _sqlstate(exc)
    if code is not None:
        return code == UNIQUE_VIOLATION
    return "UNIQUE constraint failed" in str(exc.orig)


def is_foreign_key_violation(exc: IntegrityError) -> bool:
    code = _sqlstate(exc)
    if code is not None:
        return code == FOREIGN_KEY_VIOLATION
    return "FOREIGN KEY constraint failed" in str(exc.orig)


@contextmanager
def persisting(db: Session, conflict: str, failure: str, missing: Optional[str] = None):
    try:
        yield db
    except IntegrityError as exc:
        db.rollback()
        if is_unique_violation(exc):
            logger.info("Unique violation: %s", exc.orig)
            raise Conflict(conflict) from exc
        if missing and is_foreign_key_violation(exc):
            logger.warning("Foreign key violation: %s", exc.orig)
            raise NotFound(missing) from exc
        logger.exception("Integrity violation: %s", failure)
        raise PersistenceFailure(failure) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Database error: %s", failure)
        raise PersistenceFailure(failure) from exc


@contextmanager
def reading(db: Session, failure: str):
    try:
        yield db
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Database error: %s", failure)
        raise PersistenceFailure(failure) from exc


def commit(db: Session, conflict: str, failure: str, missing: Optional[str] = None):
    with persisting(db, conflict, failure, missing):
        db.commit()
