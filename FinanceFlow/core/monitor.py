"""Connection status monitoring.

The :class:`ConnectionStatusMonitor` owns one probe subscription per signed-in
identity and folds three independent event sources into a single
:class:`SyncStatus` value:

- identity changes (re-establish or drop the probe),
- probe subscription events (snapshot, error, detached),
- transport reachability (online, offline).

Each probe is tagged with a generation number. Releasing a probe bumps the
generation, so callbacks still queued for a superseded probe are ignored.

Transport ``offline`` takes precedence: while the network is known to be down,
probe events are absorbed and the status stays ``offline`` until the network
comes back.
"""
import datetime
import enum
import functools
import logging
from dataclasses import dataclass, replace
from typing import Dict, Optional

from PySide6 import QtCore

from .identity import Identity
from .store import StoreEvent, StoreEventKind, Subscription, owner_filter

NETWORK_OFFLINE_MESSAGE: str = 'Network is offline.'
LISTENER_DETACHED_MESSAGE: str = 'Store listener detached, possibly offline.'


class SyncState(enum.StrEnum):
    """States of the connection to the remote store."""
    Synced = 'synced'
    Offline = 'offline'
    Syncing = 'syncing'
    Error = 'error'


SYNC_MESSAGE: Dict[SyncState, str] = {
    SyncState.Synced: 'All changes are synced.',
    SyncState.Offline: 'Offline. Changes will sync when the connection is back.',
    SyncState.Syncing: 'Syncing...',
    SyncState.Error: 'Sync error.',
}


@dataclass(frozen=True)
class SyncStatus:
    """Immutable snapshot of the sync state.

    Attributes:
        state: The current state.
        last_sync_time: When the last probe snapshot arrived, if any.
        error_message: Description of the last problem, if any.
    """
    state: SyncState
    last_sync_time: Optional[datetime.datetime] = None
    error_message: Optional[str] = None


def get_message(state: SyncState) -> str:
    """Return the user-facing message for a sync state."""
    return SYNC_MESSAGE.get(state, 'Unknown sync state.')


def _format_elapsed(seconds: float) -> str:
    seconds = int(max(seconds, 0))
    for unit, size in (('day', 86400), ('hour', 3600), ('minute', 60)):
        if seconds >= size:
            n = seconds // size
            return f'{n} {unit}{"" if n == 1 else "s"} ago'
    return f'{seconds} second{"" if seconds == 1 else "s"} ago'


def describe(status: SyncStatus, now: Optional[datetime.datetime] = None) -> str:
    """Produce a one-line description of a status for display.

    Args:
        status: The status to describe.
        now: Reference time for relative timestamps. Defaults to the current time.

    Returns:
        str: e.g. ``'Synced 2 minutes ago'`` or ``'Sync error: permission denied'``.
    """
    if status.state == SyncState.Synced and status.last_sync_time:
        now = now or datetime.datetime.now(datetime.timezone.utc)
        return f'Synced {_format_elapsed((now - status.last_sync_time).total_seconds())}'
    if status.state == SyncState.Error:
        return f'Sync error: {status.error_message or "unknown error"}'
    return get_message(status.state)


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class ConnectionStatusMonitor(QtCore.QObject):
    """Tracks the live state of the connection to the remote store.

    Args:
        context: The application context providing the store client, the
            transport monitor and the settings.
        parent: Optional Qt parent.

    Signals:
        statusChanged (object): Emitted with every new :class:`SyncStatus`.
    """
    statusChanged = QtCore.Signal(object)

    def __init__(self, context, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self._context = context

        self._identity_id: Optional[str] = None
        self._subscription: Optional[Subscription] = None
        self._generation: int = 0
        self._closed: bool = False

        self._status = SyncStatus(SyncState.Offline)

        self._transport = context.transport
        self._transport.online.connect(self.on_transport_online)
        self._transport.offline.connect(self.on_transport_offline)

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def identity_id(self) -> Optional[str]:
        return self._identity_id

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def has_subscription(self) -> bool:
        return self._subscription is not None

    def _set_status(self, status: SyncStatus) -> None:
        if status == self._status:
            return
        logging.debug(f'Sync status: {self._status.state} -> {status.state} ({status.error_message or "no error"})')
        self._status = status
        self.statusChanged.emit(status)

    def _release(self) -> None:
        """Cancel the live probe, if any, and invalidate its pending callbacks."""
        self._generation += 1
        subscription, self._subscription = self._subscription, None
        if subscription is None:
            return
        subscription.eventReceived.disconnect()
        subscription.cancel()

    @QtCore.Slot(object)
    def set_identity(self, identity: Optional[Identity]) -> None:
        """Follow an identity change.

        Args:
            identity: The new identity. ``None`` is treated as signed out.
        """
        if self._closed:
            logging.debug('Monitor is closed, ignoring identity change.')
            return

        uid = identity.id if identity is not None else None
        if uid is not None and uid == self._identity_id and self._subscription is not None:
            return

        self._release()
        self._identity_id = uid

        if uid is None:
            logging.debug('No identity; status monitoring stopped.')
            # Force a notification so consumers see the reset even if already offline
            self._status = SyncStatus(SyncState.Offline)
            self.statusChanged.emit(self._status)
            return

        self._status = SyncStatus(SyncState.Syncing)
        self.statusChanged.emit(self._status)

        self._subscribe(uid)

        if not self._transport.is_online:
            self._set_status(SyncStatus(SyncState.Offline, error_message=NETWORK_OFFLINE_MESSAGE))

    def _subscribe(self, uid: str) -> None:
        config = self._context.settings.get_section('store')
        subscription = self._context.store.subscribe(
            config['probe_collection'],
            (owner_filter(config['owner_field'], uid),),
            limit=1,
        )
        generation = self._generation
        subscription.eventReceived.connect(functools.partial(self._on_store_event, generation))
        self._subscription = subscription
        logging.debug(f'Probe subscription #{generation} registered for "{uid}".')
        subscription.start()

    def _on_store_event(self, generation: int, event: StoreEvent) -> None:
        if generation != self._generation:
            logging.debug(f'Ignoring {event.kind} event from superseded probe #{generation}.')
            return

        if event.kind == StoreEventKind.Detached:
            # The store already tore the listener down
            self._subscription = None
            self._generation += 1
            if not self._transport.is_online:
                return
            self._set_status(replace(
                self._status,
                state=SyncState.Offline,
                error_message=event.message or LISTENER_DETACHED_MESSAGE,
            ))
            return

        if not self._transport.is_online:
            logging.debug(f'Network is offline, absorbing {event.kind} event.')
            return

        if event.kind == StoreEventKind.Snapshot:
            logging.debug(f'Probe snapshot with {event.size} document(s).')
            self._set_status(SyncStatus(SyncState.Synced, last_sync_time=_now()))
        elif event.kind == StoreEventKind.Error:
            logging.warning(f'Store listener error: {event.message}')
            self._set_status(replace(self._status, state=SyncState.Error, error_message=event.message))

    @QtCore.Slot()
    def on_transport_online(self) -> None:
        if self._closed or self._identity_id is None:
            return
        if self._status.state in (SyncState.Offline, SyncState.Error):
            self._set_status(replace(self._status, state=SyncState.Syncing, error_message=None))
        if self._subscription is None:
            logging.debug('Probe was detached, registering a new one.')
            self._subscribe(self._identity_id)

    @QtCore.Slot()
    def on_transport_offline(self) -> None:
        if self._closed or self._identity_id is None:
            return
        self._set_status(replace(self._status, state=SyncState.Offline, error_message=NETWORK_OFFLINE_MESSAGE))

    def close(self) -> None:
        """Release the probe and stop following transport and identity changes."""
        if self._closed:
            return
        self._closed = True
        self._release()
        self._transport.online.disconnect(self.on_transport_online)
        self._transport.offline.disconnect(self.on_transport_offline)
        logging.debug('Connection status monitor closed.')
