"""
FinanceFlow: sync status monitoring and data export for the FinanceFlow budget app.

This package provides:

- :mod:`FinanceFlow.core` – Connection status monitoring, bulk export, and the Firestore store client.
- :mod:`FinanceFlow.settings` – Settings management, including schema validation and config templates.
- :mod:`FinanceFlow.status` – Status codes and the exceptions raised by the core.
- :mod:`FinanceFlow.log` – Logging setup with an in-memory error log.

Use :func:`FinanceFlow.exec_` to run the command line interface.
"""

import argparse
import logging
import sys

from PySide6 import QtCore

# Fail on Python < 3.11
if not (sys.version_info.major == 3 and sys.version_info.minor >= 11):
    raise RuntimeError('FinanceFlow requires Python 3.11 or higher.')

__version__ = '0.1.0'
__license__ = 'GPL-3.0'
__description__ = 'FinanceFlow: sync status monitoring and data export for the FinanceFlow budget app.'

from .log import log

log.setup_logging()


def _parse_args(argv):
    parser = argparse.ArgumentParser(prog='FinanceFlow', description=__description__)
    parser.add_argument('-v', '--verbose', action='store_true', help='Log debug messages.')
    parser.add_argument('--log-level', choices=[k.lower() for k in log.LEVELS], default=None,
                        help='Logging level (default: info, or debug with --verbose).')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('status', help='Follow the sync status of a user.')
    p.add_argument('--uid', required=True, help='Owner id to monitor.')
    p.add_argument('--timeout', type=int, default=0,
                   help='Stop after this many seconds (default: run until interrupted).')

    p = sub.add_parser('export', help='Export all data owned by a user.')
    p.add_argument('--uid', required=True, help='Owner id to export.')
    p.add_argument('--output', default=None, help='Directory to write the export to.')

    sub.add_parser('sign-in', help='Sign in to Google and store the credentials.')
    return parser.parse_args(argv)


def _run_status(app, context, args) -> int:
    from .core.monitor import ConnectionStatusMonitor, describe

    monitor = ConnectionStatusMonitor(context)
    monitor.statusChanged.connect(lambda s: logging.info(f'[{s.state}] {describe(s)}'))
    context.identity_source.identityChanged.connect(monitor.set_identity)
    context.identity_source.set_user(args.uid)

    if args.timeout:
        QtCore.QTimer.singleShot(args.timeout * 1000, app.quit)
    try:
        app.exec()
    finally:
        monitor.close()
    return 0


def _run_export(context, args) -> int:
    from .core.export import BulkExportPipeline
    from .core.identity import Identity
    from .core.worker import start_asynchronous
    from .status import status

    pipeline = BulkExportPipeline(context)
    try:
        result = start_asynchronous(pipeline.export, Identity(id=args.uid))
    except (status.BaseStatusException, TimeoutError) as ex:
        logging.error(f'Export failed: {ex}')
        return 1
    print(result.location)
    return 0


def exec_(argv=None) -> int:
    """Run the FinanceFlow command line interface.

    Args:
        argv: Command line arguments. Defaults to ``sys.argv[1:]``.

    Returns:
        int: The process exit code.
    """
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    log.set_logging_level(args.log_level or (logging.DEBUG if args.verbose else logging.INFO))

    app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication(sys.argv[:1])

    from .core.context import AppContext
    from .core.delivery import FileDeliverySink
    from .status import status

    sink = FileDeliverySink(args.output) if getattr(args, 'output', None) else None
    context = AppContext(sink=sink)

    if args.command == 'sign-in':
        try:
            context.auth_manager.refresh_credentials_interactive()
        except status.BaseStatusException:
            return 1
        logging.info('Signed in.')
        return 0

    with context:
        if args.command == 'status':
            return _run_status(app, context, args)
        return _run_export(context, args)


if __name__ == '__main__':
    sys.exit(exec_())
