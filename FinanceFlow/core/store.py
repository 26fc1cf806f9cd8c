"""Remote store client interface.

A store client offers two things:

- :meth:`RemoteStoreClient.subscribe` returns a :class:`Subscription`, a
  cancellable event source publishing :class:`StoreEvent` values tagged
  ``snapshot``, ``error`` or ``detached``.
- :meth:`RemoteStoreClient.read` performs a one-shot scoped collection read.

Subscriptions are returned unstarted so the single consumer can connect to
:attr:`Subscription.eventReceived` before the first event can arrive.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from PySide6 import QtCore


class StoreEventKind(enum.StrEnum):
    """Kinds of events a subscription can publish."""
    Snapshot = 'snapshot'
    Error = 'error'
    Detached = 'detached'


@dataclass(frozen=True)
class StoreEvent:
    """One event published by a subscription.

    Attributes:
        kind: The event tag.
        message: Error description for ``error`` and ``detached`` events.
        size: Number of documents in a ``snapshot``.
    """
    kind: StoreEventKind
    message: Optional[str] = None
    size: int = 0

    @classmethod
    def snapshot(cls, size: int = 0) -> 'StoreEvent':
        return cls(StoreEventKind.Snapshot, size=size)

    @classmethod
    def error(cls, message: str) -> 'StoreEvent':
        return cls(StoreEventKind.Error, message=message)

    @classmethod
    def detached(cls, message: Optional[str] = None) -> 'StoreEvent':
        return cls(StoreEventKind.Detached, message=message)


@dataclass(frozen=True)
class FieldFilter:
    """A single ``field <op> value`` condition."""
    field: str
    value: Any
    op: str = 'EQUAL'


def owner_filter(owner_field: str, uid: str) -> FieldFilter:
    """Return the filter selecting documents owned by ``uid``."""
    return FieldFilter(owner_field, uid, 'EQUAL')


class Subscription(QtCore.QObject):
    """A live registration of one query against the store.

    Subclasses implement :meth:`_on_start` and :meth:`_on_cancel` and push
    events through :meth:`publish`. Events published while the subscription is
    not active are dropped.

    Signals:
        eventReceived (object): Emitted with each :class:`StoreEvent`.
    """
    eventReceived = QtCore.Signal(object)

    def __init__(self, collection: str, filters: Sequence[FieldFilter] = (),
                 limit: Optional[int] = None, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self.collection = collection
        self.filters = tuple(filters)
        self.limit = limit
        self._active = False
        self._started = False

    @property
    def active(self) -> bool:
        return self._active

    def start(self) -> None:
        """Begin delivering events. A subscription can only be started once."""
        if self._started:
            raise RuntimeError(f'Subscription to "{self.collection}" was already started.')
        self._started = True
        self._active = True
        logging.debug(f'Subscribing to "{self.collection}" (limit={self.limit}).')
        self._on_start()

    def cancel(self) -> bool:
        """Unregister the subscription.

        Returns:
            bool: True if this call released the subscription, False if it was
            already released.
        """
        if not self._active:
            return False
        self._active = False
        logging.debug(f'Unsubscribing from "{self.collection}".')
        self._on_cancel()
        return True

    def publish(self, event: StoreEvent) -> None:
        """Deliver an event to the consumer."""
        if not self._active:
            return
        if event.kind == StoreEventKind.Detached:
            # The store tore the listener down; nothing further will arrive
            self._active = False
            self._on_cancel()
        self.eventReceived.emit(event)

    def _on_start(self) -> None:
        pass

    def _on_cancel(self) -> None:
        pass


class RemoteStoreClient:
    """Base class of realtime-capable document store clients."""

    def subscribe(self, collection: str, filters: Sequence[FieldFilter] = (),
                  limit: Optional[int] = None) -> Subscription:
        """Create an unstarted subscription to a query."""
        raise NotImplementedError

    def read(self, collection: str, filters: Sequence[FieldFilter] = ()) -> List[Dict[str, Any]]:
        """Read every document matching the query.

        Returns:
            A list of records in the store's natural order, each starting with
            its document ``id``.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release any resources held by the client."""
        pass
