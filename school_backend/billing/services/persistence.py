# billing/services/persistence.py

"""
PERSISTENCE BOUNDARY

ledger_operation(...) wraps a public service function so that:
- domain errors (LedgerError) pass through untouched
- raw database failures are logged with the operation context and
  re-raised as PersistenceError

The decorated function opens its own transaction.atomic(using=...) block,
so by the time the error reaches this wrapper the rollback has happened.
"""

from __future__ import annotations

import functools
import logging

from django.db import DatabaseError

from billing.services.exceptions import LedgerError, PersistenceError

_default_logger = logging.getLogger("billing")


def _context(kwargs: dict) -> dict:
    return {k: str(v) for k, v in kwargs.items() if k not in ("using",)}


def ledger_operation(name: str, *, logger: logging.Logger | None = None):
    log = logger or _default_logger

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except LedgerError:
                raise
            except DatabaseError as exc:
                log.exception(
                    "Ledger persistence failure",
                    extra={"operation": name, "params": _context(kwargs)},
                )
                raise PersistenceError(
                    f"{name} failed due to a storage error; no changes were saved.",
                    operation=name,
                ) from exc

        return wrapper

    return decorator
