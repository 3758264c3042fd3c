# Overview: Service-layer concurrency helpers; row locks and race-safe get-or-create.

from __future__ import annotations

from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError

from ..extensions import db

T = TypeVar("T")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def get_or_create_under_race(lookup: Callable[[], T | None], create: Callable[[], T]) -> T:
    """
    Idempotent get-or-create guarded by a unique constraint.

    create() must add the row and commit. When a concurrent writer wins the
    race the commit raises IntegrityError; the session is rolled back and the
    row that now exists is returned instead. The IntegrityError propagates
    only if the row still cannot be found.
    """
    existing = lookup()
    if existing is not None:
        return existing

    try:
        return create()
    except IntegrityError:
        db.session.rollback()
        existing = lookup()
        if existing is None:
            raise
        return existing
