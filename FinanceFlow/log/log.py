import collections
import logging
import sys

from PySide6.QtCore import QtMsgType, qInstallMessageHandler

LOG_LEVEL = logging.DEBUG
LOG_FORMAT = '[%(asctime)s] <%(module)s> %(levelname)s:  %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

# The status command can run for days, so the in-memory log is bounded
TANK_CAPACITY = 5000

LEVELS = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}

QT_LEVELS = {
    QtMsgType.QtDebugMsg: logging.DEBUG,
    QtMsgType.QtInfoMsg: logging.INFO,
    QtMsgType.QtWarningMsg: logging.WARNING,
    QtMsgType.QtCriticalMsg: logging.ERROR,
    QtMsgType.QtFatalMsg: logging.CRITICAL,
}


def set_logging_level(level):
    """
    Sets the logging level of the root logger and its handlers.

    Args:
        level (int or str): A standard logging level, e.g. ``logging.INFO``, or its name, e.g. ``'info'``.

    Raises:
        ValueError: If the level is not one of the standard levels.
    """
    if isinstance(level, str):
        if level.upper() not in LEVELS:
            raise ValueError(f'Unknown logging level "{level}". Use one of {", ".join(LEVELS)}.')
        level = LEVELS[level.upper()]
    elif not isinstance(level, int) or isinstance(level, bool):
        raise ValueError('Logging level must be an integer or a level name.')
    elif level not in LEVELS.values():
        raise ValueError('Invalid logging level. Use one of the standard logging levels, e.g., logging.DEBUG.')

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)


def qt_message_handler(mode, context, message):
    """
    Converts Qt messages to standard Python logging.

    Messages of a named Qt category (e.g. ``qt.network.monitor``) are logged
    under ``Qt.<category>``.
    """
    category = getattr(context, 'category', None)
    name = f'Qt.{category}' if category and category != 'default' else 'Qt'

    logging.getLogger(name).log(QT_LEVELS.get(mode, logging.WARNING), message.strip())
    if mode == QtMsgType.QtFatalMsg:
        sys.exit(1)


def setup_logging(enable_stream_handler=True, enable_qt_handler=True, log_level=LOG_LEVEL):
    """
    Configures the root logger and installs Qt message handler.

    Args:
        enable_stream_handler (bool): Log to stdout as well as to the in-memory tank.
        enable_qt_handler (bool): Route Qt's own messages through Python logging.
        log_level (int): Level for the root logger and all installed handlers.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear all handlers to avoid formatting conflicts
    root_logger.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    handlers = [TankHandler()]
    if enable_stream_handler:
        handlers.insert(0, logging.StreamHandler(sys.stdout))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    if enable_qt_handler:
        qInstallMessageHandler(qt_message_handler)


def get_tank():
    """
    Returns the TankHandler installed on the root logger, if any.

    Returns:
        TankHandler or None: The in-memory log handler.
    """
    return next(
        (h for h in logging.getLogger().handlers if isinstance(h, TankHandler)),
        None
    )


class TankHandler(logging.Handler):
    """
    Keeps the most recent formatted log messages in memory.

    The tank backs the error log shown after a failed command: records can be
    filtered by level. Once ``capacity`` is reached the oldest records are
    dropped.

    Attributes:
        tank (collections.deque[tuple[int, str]]): (level, formatted message) pairs, oldest first.
    """

    def __init__(self, capacity=TANK_CAPACITY):
        super().__init__()
        self.tank = collections.deque(maxlen=capacity)

    def emit(self, record):
        try:
            self.tank.append((record.levelno, self.format(record)))
        except Exception:
            self.handleError(record)

    def get_logs(self, level=logging.NOTSET):
        """
        Returns the stored messages with a level >= ``level``, oldest first.

        Args:
            level (int, optional): The minimum logging level. Defaults to logging.NOTSET.

        Returns:
            list[str]: The formatted messages.
        """
        return [msg for lvl, msg in self.tank if lvl >= level]

    def clear_logs(self):
        self.tank.clear()
