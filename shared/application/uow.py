"""
Unit of Work Pattern

Manages database transactions and ensures that domain events
are published only after successful transaction commit.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List
import logging

from django.db import DEFAULT_DB_ALIAS, OperationalError, connections, transaction

from shared.domain.base import DomainEvent
from shared.domain.exceptions import TransientStoreError
from shared.infrastructure.locks import keyed_locks
from shared.infrastructure.settings import engine_setting

logger = logging.getLogger(__name__)


class AbstractUnitOfWork(ABC):
    """Abstract Unit of Work pattern"""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.commit()
        else:
            self.rollback()

    @abstractmethod
    def commit(self):
        """Commit the transaction"""
        pass

    @abstractmethod
    def rollback(self):
        """Rollback the transaction"""
        pass

    @abstractmethod
    def add_event(self, event: DomainEvent):
        """Queue an event for publication after commit"""
        pass


class DjangoUnitOfWork(AbstractUnitOfWork):
    """
    Django implementation of Unit of Work

    One instance wraps one logical engine operation:

    1. keyed locks for every court/account the operation touches are taken
       (sorted, bounded by LOCK_TIMEOUT_SECONDS);
    2. ``transaction.atomic()`` is opened, with lock and statement timeouts
       applied on PostgreSQL;
    3. the block performs its check-then-write and queues domain events;
    4. on success the transaction commits and the events are published via
       ``transaction.on_commit``; on failure everything is rolled back and
       the events are discarded.

    Database operational failures (lock timeout, serialization failure,
    deadlock) leave the block as TransientStoreError.

    Usage:
        with DjangoUnitOfWork(lock_keys=[court_key(court.id)]) as uow:
            check_conflict(...)
            booking.save()
            uow.add_event(BookingCreated(...))
        # Events are published after commit
    """

    def __init__(
        self,
        lock_keys: Iterable[str] = (),
        timeout: float | None = None,
        using: str = DEFAULT_DB_ALIAS,
    ):
        self._events: List[DomainEvent] = []
        self._transaction = None
        self._locks = None
        self.lock_keys = list(lock_keys)
        self.timeout = timeout if timeout is not None else float(engine_setting("LOCK_TIMEOUT_SECONDS"))
        self.using = using

    def __enter__(self):
        """Take keyed locks, then start database transaction"""
        self._locks = keyed_locks(self.lock_keys, self.timeout)
        self._locks.__enter__()
        try:
            self._transaction = transaction.atomic(using=self.using)
            self._transaction.__enter__()
            self._apply_timeouts()
        except OperationalError as exc:
            self._release(exc)
            raise TransientStoreError("Could not start transaction", error=str(exc)) from exc
        except BaseException as exc:
            self._release(exc)
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Complete or rollback transaction, then release locks"""
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
            try:
                self._transaction.__exit__(exc_type, exc_val, exc_tb)
            except OperationalError as exc:
                raise TransientStoreError("Transaction could not be committed", error=str(exc)) from exc
        finally:
            self._transaction = None
            self._locks.__exit__(None, None, None)
            self._locks = None

        if exc_type is not None and issubclass(exc_type, OperationalError):
            raise TransientStoreError("Datastore operation failed", error=str(exc_val)) from exc_val
        return False

    def _release(self, exc: BaseException):
        if self._transaction is not None:
            self._transaction.__exit__(type(exc), exc, exc.__traceback__)
            self._transaction = None
        self._locks.__exit__(None, None, None)
        self._locks = None

    def _apply_timeouts(self):
        connection = connections[self.using]
        if connection.vendor != "postgresql":
            return
        lock_timeout_ms = int(self.timeout * 1000)
        statement_timeout_ms = int(engine_setting("STATEMENT_TIMEOUT_MS"))
        with connection.cursor() as cursor:
            cursor.execute("SELECT set_config('lock_timeout', %s, true)", [f"{lock_timeout_ms}ms"])
            cursor.execute("SELECT set_config('statement_timeout', %s, true)", [f"{statement_timeout_ms}ms"])

    def commit(self):
        """
        Commit changes and publish events

        Events are published using Django's transaction.on_commit()
        to ensure they're only sent after database commit succeeds.
        """
        logger.debug(f"Committing transaction with {len(self._events)} events")

        # Copy events before clearing
        events = self._events.copy()
        self._events.clear()

        if events:
            transaction.on_commit(lambda: self._publish_events(events), using=self.using)

    def rollback(self):
        """Rollback changes and discard events"""
        if self._events:
            logger.warning(f"Rolling back transaction, discarding {len(self._events)} events")
        self._events.clear()

    def add_event(self, event: DomainEvent):
        self._events.append(event)

    def _publish_events(self, events: List[DomainEvent]):
        """
        Publish collected events to message bus

        Called after successful transaction commit.
        """
        from shared.application.message_bus import message_bus

        logger.info(f"Publishing {len(events)} domain events after commit")

        try:
            message_bus.publish_events(events)
        except Exception as e:
            logger.error(f"Error publishing events: {e}", exc_info=True)
            # The primary operation is already committed; subscribers are best effort
