"""
Keyed process-local locks.

Check-then-write sequences on a court or an account are serialized by two
layers: these keyed locks (effective on every database backend, including
SQLite which has no row locks) and ``select_for_update`` row locks taken
inside the transaction (effective across processes on PostgreSQL).

Keys are always acquired in sorted order so two operations touching the same
pair of courts or accounts can never deadlock each other. Locks are
re-entrant: after-commit handlers run on the thread that still holds them.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterable, Iterator

from django.db import transaction  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore

from shared.domain.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

_REGISTRY_LOCK = threading.Lock()
_LOCKS: dict[str, threading.RLock] = {}


def court_key(court_id: str) -> str:
    return f"court:{court_id}"


def account_key(account_id: str) -> str:
    return f"account:{account_id}"


def reward_key(reward_id: str) -> str:
    return f"reward:{reward_id}"


def _lock_for(key: str) -> threading.RLock:
    with _REGISTRY_LOCK:
        lock = _LOCKS.get(key)
        if lock is None:
            lock = _LOCKS[key] = threading.RLock()
        return lock


@contextmanager
def keyed_locks(keys: Iterable[str], timeout: float) -> Iterator[list[str]]:
    """
    Hold every lock in ``keys`` for the duration of the block.

    Raises TransientStoreError when a lock cannot be obtained within
    ``timeout`` seconds; locks acquired so far are released first.
    """
    ordered = sorted({key for key in keys if key})
    held: list[threading.RLock] = []
    try:
        for key in ordered:
            lock = _lock_for(key)
            if not lock.acquire(timeout=timeout):
                logger.warning(f"Timed out after {timeout}s waiting for lock {key}")
                raise TransientStoreError(
                    "The resource is busy, please retry",
                    lock=key,
                    timeout_seconds=timeout,
                )
            held.append(lock)
        yield ordered
    finally:
        for lock in reversed(held):
            lock.release()


def lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset
