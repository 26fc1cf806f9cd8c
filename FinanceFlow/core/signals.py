"""Application-wide Qt signals for FinanceFlow.

Components that do not own each other communicate through the ``signals``
instance: configuration changes, export lifecycle and user-facing errors.
"""
from PySide6 import QtCore


class Signals(QtCore.QObject):
    """Centralized Qt signals for config, export and error events."""
    configSectionChanged = QtCore.Signal(str)  # Section

    exportStarted = QtCore.Signal()
    exportFinished = QtCore.Signal(str)  # Location of the delivered file

    error = QtCore.Signal(str)


signals = Signals()
