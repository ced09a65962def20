# Overview: Transaction, locking and retry helpers shared by every mutating service.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

_AFTER_COMMIT_KEY = "eventpay.after_commit"


def lock_for_update(query):
    """
    Apply row-level locking for check-then-act operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE. There the version_id columns
    on the locked rows provide the guarantee: a concurrent writer that read
    a stale version fails with StaleDataError and is retried.
    """
    return query.with_for_update()


def after_commit(callback) -> None:
    """
    Queue a side effect to run once the current transaction commits.

    Queued callbacks are dropped if the transaction rolls back.
    """
    db.session.info.setdefault(_AFTER_COMMIT_KEY, []).append(callback)


def _drain_after_commit() -> list:
    return db.session.info.pop(_AFTER_COMMIT_KEY, [])


def run_in_transaction(func, *, attempts: int | None = None, backoff_base: float = 0.05):
    """
    Run func as one atomic unit of work and commit it.

    - Any exception rolls the whole unit back.
    - OperationalError (locks, deadlocks) and StaleDataError (optimistic
      version conflicts) are retried with exponential backoff; func is
      re-run from scratch so every check sees the committed state.
    - After-commit callbacks fire only after a successful commit. A failing
      callback is logged and never undoes the committed change.
    """
    if attempts is None:
        attempts = current_app.config.get("TRANSACTION_RETRY_ATTEMPTS", 3)

    for attempt in range(attempts):
        try:
            result = func()
            db.session.commit()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            _drain_after_commit()
            if attempt >= attempts - 1:
                raise
            current_app.logger.info("Retrying transaction after concurrency conflict (attempt %s)", attempt + 1)
            time.sleep(backoff_base * (2 ** attempt))
            continue
        except Exception:
            db.session.rollback()
            _drain_after_commit()
            raise

        for callback in _drain_after_commit():
            try:
                callback()
            except Exception:
                current_app.logger.exception("After-commit side effect failed")
        return result
