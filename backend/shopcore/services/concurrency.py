# Overview: Transaction boundary helpers; every multi-row write goes through run_in_transaction.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..validation import ConstraintViolation


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_in_transaction(func):
    """
    Execute func() as one all-or-nothing unit of work.

    Commits when func returns, rolls back on any exception and re-raises.
    There is no retry: callers resubmit with the same request token instead.
    Store integrity failures surface as ConstraintViolation.
    """
    try:
        result = func()
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        current_app.logger.warning("Transaction rolled back on constraint violation: %s", exc.orig)
        raise ConstraintViolation(str(exc.orig)) from exc
    except (ValueError, LookupError):
        # Business errors (validation, not found): expected, caller reports them
        db.session.rollback()
        raise
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Transaction rolled back")
        raise
    return result
