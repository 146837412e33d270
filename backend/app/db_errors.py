"""Helpers for working with database/SQLAlchemy errors."""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

_UNIQUE_VIOLATION_SQLSTATES = {"23505"}
# serialization_failure, deadlock_detected
_RETRYABLE_SQLSTATES = {"40001", "40P01"}


def _sqlstate(exc: SQLAlchemyError) -> str | None:
    orig = getattr(exc, "orig", None)
    if orig is None:
        return None
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_unique_violation(exc: SQLAlchemyError, constraint: str | None = None) -> bool:
    """Return ``True`` if ``exc`` was raised by a unique constraint.

    Parameters
    ----------
    exc:
        The SQLAlchemy exception to inspect.
    constraint:
        Optional substring (a constraint or column name such as ``"sport.name"``)
        that must be present in the original database error message.
    """

    orig = getattr(exc, "orig", None)
    if orig is None:
        return False

    message = str(orig).lower()
    if constraint and constraint.lower() not in message:
        return False

    if _sqlstate(exc) in _UNIQUE_VIOLATION_SQLSTATES:
        return True

    return "unique constraint" in message or "duplicate key" in message


def is_serialization_failure(exc: SQLAlchemyError) -> bool:
    """Return ``True`` if the database aborted the transaction to keep it serializable."""

    if _sqlstate(exc) in _RETRYABLE_SQLSTATES:
        return True

    orig = getattr(exc, "orig", None)
    if orig is None:
        return False

    message = str(orig).lower()
    return "could not serialize access" in message or "deadlock detected" in message
