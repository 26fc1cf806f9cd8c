"""Network reachability signals.

Wraps :class:`QtNetwork.QNetworkInformation` so the rest of the core only
sees ``online`` and ``offline`` signals. Reachability is a best-effort hint:
not every platform has a backend, and when none is available the transport is
assumed to be online and never changes.
"""
import logging
from typing import Optional

from PySide6 import QtCore, QtNetwork


class TransportMonitor(QtCore.QObject):
    """Emits ``online``/``offline`` when the machine's reachability changes.

    Signals:
        online (): The network became reachable.
        offline (): The network became unreachable.
    """
    online = QtCore.Signal()
    offline = QtCore.Signal()

    def __init__(self, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self._info: Optional[QtNetwork.QNetworkInformation] = None
        self._online = True

    @property
    def is_online(self) -> bool:
        return self._online

    def start(self) -> bool:
        """Load the platform reachability backend and start listening.

        Returns:
            bool: True if a backend was loaded.
        """
        if self._info is not None:
            return True

        loaded = QtNetwork.QNetworkInformation.loadBackendByFeatures(
            QtNetwork.QNetworkInformation.Feature.Reachability
        )
        info = QtNetwork.QNetworkInformation.instance()
        if not loaded or info is None:
            logging.warning('No network information backend available; assuming the network is online.')
            return False

        self._info = info
        logging.debug(f'Using network information backend "{info.backendName()}".')
        info.reachabilityChanged.connect(self._on_reachability_changed)
        self._online = self._is_reachable(info.reachability())
        return True

    def stop(self) -> None:
        if self._info is None:
            return
        self._info.reachabilityChanged.disconnect(self._on_reachability_changed)
        self._info = None

    @staticmethod
    def _is_reachable(reachability: QtNetwork.QNetworkInformation.Reachability) -> bool:
        # Unknown means the backend cannot tell, which is not evidence of an outage
        return reachability != QtNetwork.QNetworkInformation.Reachability.Disconnected

    @QtCore.Slot(QtNetwork.QNetworkInformation.Reachability)
    def _on_reachability_changed(self, reachability: QtNetwork.QNetworkInformation.Reachability) -> None:
        self.set_online(self._is_reachable(reachability))

    def set_online(self, online: bool) -> None:
        """Record a reachability change and emit the matching signal."""
        if online == self._online:
            return
        self._online = online
        logging.info(f'Network is {"online" if online else "offline"}.')
        if online:
            self.online.emit()
        else:
            self.offline.emit()
