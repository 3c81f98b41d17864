"""
core.domain.transactions — Helpers for safe state transitions.

Wraps ``transaction.atomic`` and ``select_for_update`` into the two
patterns the workflow engine relies on:

* guards and transitions read the Case row through ``lock_for_update`` so
  two concurrent submissions for the same case serialise on that row;
* operations that are only correct inside the caller's transaction call
  ``require_atomic`` first.

Usage::

    from core.domain.transactions import lock_for_update, require_atomic

    with transaction.atomic():
        require_atomic("my_guard")
        case = lock_for_update(Case, case_id)
        ...
"""

from __future__ import annotations

from typing import Any, TypeVar

from django.db import models, transaction
from django.db.transaction import TransactionManagementError

from core.domain.exceptions import NotFound

M = TypeVar("M", bound=models.Model)


def require_atomic(operation: str) -> None:
    """
    Raise ``TransactionManagementError`` unless an atomic block is open.

    Guards are check-then-act: their check only holds when the subsequent
    insert and transition commit in the same transaction.
    """
    if not transaction.get_connection().in_atomic_block:
        raise TransactionManagementError(
            f"{operation} must run inside transaction.atomic()."
        )


def lock_for_update(model_class: type[M], pk: Any) -> M:
    """
    Acquire a row-level lock on the given model instance.

    Convenience wrapper around ``select_for_update().get(pk=pk)``
    that must be called inside an ``atomic()`` block.  On backends
    without ``SELECT ... FOR UPDATE`` (SQLite) the lock is a no-op and
    the database-wide write lock provides the ordering instead.

    Raises:
        NotFound: If no row with that PK exists (or ``pk`` is malformed).
    """
    try:
        return model_class.objects.select_for_update().get(pk=pk)
    except (model_class.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"{model_class.__name__} with pk={pk} does not exist.")
