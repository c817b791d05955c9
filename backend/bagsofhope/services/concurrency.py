# Overview: Transaction boundaries and row locking shared by the lifecycle services.

from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrentUpdateError, PersistenceError

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the version_id_col
    compare-and-swap on bags and batches is what serializes writers.
    """
    return query.with_for_update()


@contextmanager
def unit_of_work(session, *, commit: bool = True):
    """
    One atomic unit against the store.

    commit=True: commit on success, roll back on any exception.
    commit=False: only flush; the enclosing unit owns commit/rollback. This is
    how composite operations (complete_pick, batch cascades) pull ledger and
    status writes into a single transaction.

    Store failures are translated, never swallowed:
    - StaleDataError -> ConcurrentUpdateError
    - other SQLAlchemyError -> PersistenceError
    No retry happens here; retrying is the caller's decision.
    """
    try:
        yield session
        if commit:
            session.commit()
        else:
            session.flush()
    except StaleDataError as exc:
        if commit:
            session.rollback()
        logger.warning("Concurrent update detected: %s", exc)
        raise ConcurrentUpdateError("Record was modified concurrently; reload and try again") from exc
    except SQLAlchemyError as exc:
        if commit:
            session.rollback()
        logger.error("Store failure: %s", exc)
        raise PersistenceError(f"Store failure: {exc}") from exc
    except Exception:
        if commit:
            session.rollback()
        raise
