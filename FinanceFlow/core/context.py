"""Application context.

:class:`AppContext` is built once at startup and passed to the connection
status monitor and the export pipeline. It owns the collaborators they share:
settings, the store client, the transport monitor, the identity source and the
delivery sink.
"""
import logging
from typing import Optional

from .auth import AuthManager
from .delivery import DeliverySink, FileDeliverySink
from .identity import IdentitySource
from .store import RemoteStoreClient
from .transport import TransportMonitor


class AppContext:
    """Explicitly constructed owner of the core's collaborators.

    Any collaborator left out is created from the settings.

    Args:
        settings: The settings API. Defaults to the application settings.
        store: Remote store client. Defaults to a :class:`FirestoreClient`.
        transport: Reachability source. Defaults to a :class:`TransportMonitor`.
        identity_source: Identity source. Defaults to a new :class:`IdentitySource`.
        sink: Delivery sink. Defaults to a :class:`FileDeliverySink` writing
            to the configured export directory.
    """

    def __init__(self, settings=None, store: Optional[RemoteStoreClient] = None,
                 transport: Optional[TransportMonitor] = None,
                 identity_source: Optional[IdentitySource] = None,
                 sink: Optional[DeliverySink] = None) -> None:
        if settings is None:
            from ..settings import lib
            settings = lib.settings
        self.settings = settings

        self.auth_manager: Optional[AuthManager] = None
        if store is None:
            from .firestore import FirestoreClient
            self.auth_manager = AuthManager(settings)
            store = FirestoreClient(settings, self.auth_manager)
        self.store: RemoteStoreClient = store

        self.transport: TransportMonitor = transport or TransportMonitor()
        self.identity_source: IdentitySource = identity_source or IdentitySource()

        if sink is None:
            sink = FileDeliverySink(settings.get_section('export').get('directory') or None)
        self.sink: DeliverySink = sink

        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        """Start listening for transport changes."""
        if self._open:
            return
        self.transport.start()
        self._open = True
        logging.debug('Application context opened.')

    def close(self) -> None:
        """Stop the transport monitor and release the store client."""
        if not self._open:
            return
        self.transport.stop()
        self.store.close()
        self._open = False
        logging.debug('Application context closed.')

    def __enter__(self) -> 'AppContext':
        self.open()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
