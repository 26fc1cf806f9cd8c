"""Background execution of blocking store calls.

Provides :class:`AsyncWorker`, a ``QThread`` running one blocking function and
reporting the outcome through signals, and :func:`start_asynchronous`, which
runs a function on a worker while spinning a local event loop until it
finishes or times out.
"""
import logging
from typing import Any, Callable, Dict

from PySide6 import QtCore

TOTAL_TIMEOUT: int = 180


class AsyncWorker(QtCore.QThread):
    """
    Generic worker thread for a single blocking function.

    Signals:
        resultReady (object): Emitted with the function's result on success.
        errorOccurred (object): Emitted with the exception on failure.
    """
    resultReady = QtCore.Signal(object)
    errorOccurred = QtCore.Signal(object)

    # Workers are kept alive until they finish, even if their owner is gone
    _running = set()

    def __init__(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        super().__init__()
        self.func = func
        self.args = args
        self.kwargs = kwargs
        self.finished.connect(self._on_finished)

    def launch(self) -> None:
        """Keep a reference to the worker while it runs and start it."""
        AsyncWorker._running.add(self)
        self.start()

    @QtCore.Slot()
    def _on_finished(self) -> None:
        AsyncWorker._running.discard(self)
        self.deleteLater()

    def run(self) -> None:
        try:
            result = self.func(*self.args, **self.kwargs)
        except Exception as ex:
            self.errorOccurred.emit(ex)
            return
        self.resultReady.emit(result)


def interruption_requested() -> bool:
    """Whether the thread running the caller was asked to stop."""
    return QtCore.QThread.currentThread().isInterruptionRequested()


class _Waiter(QtCore.QObject):
    """Collects a worker's outcome on the waiting thread and stops its loop."""

    def __init__(self, loop: QtCore.QEventLoop) -> None:
        super().__init__()
        self.loop = loop
        self.result: Dict[str, Any] = {'data': None, 'error': None, 'done': False}

    @QtCore.Slot(object)
    def on_result(self, data: Any) -> None:
        self.result.update({'data': data, 'done': True})
        self.loop.quit()

    @QtCore.Slot(object)
    def on_error(self, err: Exception) -> None:
        self.result.update({'error': err, 'done': True})
        self.loop.quit()


def start_asynchronous(func: Callable[..., Any], *args: Any, total_timeout: int = TOTAL_TIMEOUT,
                       **kwargs: Any) -> Any:
    """
    Run a blocking function on a worker thread and wait for it.

    The calling thread keeps processing Qt events while it waits, so queued
    signals (status changes, probe results) are still delivered.

    Args:
        func: The blocking function to run.
        *args, **kwargs: Arguments passed to func.
        total_timeout (int): Seconds to wait before giving up.

    Returns:
        The result of the function on success.

    Raises:
        TimeoutError: If the function did not finish in time. The worker is
            asked to stop with ``requestInterruption()`` and waited for first, so
            nothing it does after the timeout reaches the caller.
        Exception: Whatever the function raised.
    """
    worker: AsyncWorker = AsyncWorker(func, *args, **kwargs)
    loop: QtCore.QEventLoop = QtCore.QEventLoop()
    waiter = _Waiter(loop)

    # Queued to this thread, so an early result still waits for loop.exec()
    worker.resultReady.connect(waiter.on_result, QtCore.Qt.QueuedConnection)
    worker.errorOccurred.connect(waiter.on_error, QtCore.Qt.QueuedConnection)

    timer: QtCore.QTimer = QtCore.QTimer()
    timer.setSingleShot(True)
    timer.setInterval(total_timeout * 1000)
    timer.timeout.connect(loop.quit)

    worker.launch()
    timer.start()
    loop.exec()
    timer.stop()

    result = waiter.result
    if not result['done']:
        logging.error(f'{getattr(func, "__name__", func)} did not finish within {total_timeout}s.')
        # A late outcome must not reach the waiter once the caller was told it failed
        worker.resultReady.disconnect(waiter.on_result)
        worker.errorOccurred.disconnect(waiter.on_error)
        worker.requestInterruption()
        worker.wait()
        QtCore.QCoreApplication.removePostedEvents(waiter)
        raise TimeoutError('Operation timed out.')

    if result['error'] is not None:
        raise result['error']
    return result['data']
