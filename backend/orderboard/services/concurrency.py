# Overview: Row locking and transaction helpers shared by the order store procedures.

from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import RemoteWriteError


logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Lock the selected rows for the rest of the transaction.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; PostgreSQL honors it.
    """
    return query.with_for_update()


@contextmanager
def write_transaction(action: str):
    """
    One store write: commit when the block finishes, roll back on any error.

    Database failures are re-raised as RemoteWriteError; domain errors
    raised inside the block propagate unchanged. Nothing is retried.
    """
    try:
        yield db.session
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("%s failed", action)
        raise RemoteWriteError(
            f"{action} failed",
            details={"reason": exc.__class__.__name__},
        ) from exc
    except Exception:
        db.session.rollback()
        raise
