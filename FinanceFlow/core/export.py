"""Bulk export of everything a user owns.

The export reads each collection in :data:`EXPORT_COLLECTIONS` filtered by the
owner field, renders the records as CSV sections and hands the complete
artifact to a delivery sink. A failed read aborts the export before anything
is delivered.

Artifact layout, one section per non-empty collection, in fixed order::

    Transactions
    id,amount,description,...
    t1,12.5,Coffee,...

    Accounts
    ...
"""
import base64
import datetime
import io
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd
from PySide6 import QtCore

from .identity import Identity
from .store import owner_filter
from .worker import AsyncWorker, interruption_requested
from ..status import status

EXPORT_COLLECTIONS: Tuple[str, ...] = (
    'transactions',
    'categories',
    'accounts',
    'goals',
    'investments',
    'recurringTransactions',
    'portfolioSnapshots',
    'budgetSettings',
)

EXPORT_MIME_TYPE: str = 'text/csv;charset=utf-8;'
EXPORT_DATE_FORMAT: str = '%Y-%m-%d'


@dataclass(frozen=True)
class ExportResult:
    """Outcome of a delivered export.

    Attributes:
        filename: File name handed to the sink.
        location: Where the sink stored the artifact.
        sections: Collections that contributed a section, in artifact order.
        records: Total number of exported records.
    """
    filename: str
    location: str
    sections: Tuple[str, ...]
    records: int


def render_value(value: Any) -> str:
    """Render a single field value as CSV cell text.

    Args:
        value: A decoded store value.

    Returns:
        str: The cell text.
    """
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return base64.b64encode(value).decode('ascii')
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=render_value, ensure_ascii=False, separators=(',', ':'))
    return str(value)


def section_title(collection: str) -> str:
    """Return the section title for a collection: its name, capitalized."""
    return collection[:1].upper() + collection[1:]


def records_to_section(records: Sequence[Dict[str, Any]], title: str) -> str:
    """Serialize one collection's records as a titled CSV section.

    The column set is taken from the first record. Cells for keys missing in
    later records are left empty and extra keys are dropped.

    Args:
        records: The records, in store order.
        title: The section title line.

    Returns:
        str: The section text, or an empty string when there are no records.
    """
    if not records:
        return ''

    headers: List[str] = list(records[0].keys())
    rows: List[List[str]] = [[render_value(record.get(h)) for h in headers] for record in records]
    df: pd.DataFrame = pd.DataFrame(rows, columns=headers, dtype=str)

    # A row holding one empty cell is written as "" so it is not read back as
    # the blank line that ends a section
    buf = io.StringIO()
    df.to_csv(buf, index=False, lineterminator='\n')
    return f'{title}\n{buf.getvalue()}\n'


def build_artifact(record_sets: Dict[str, Sequence[Dict[str, Any]]]) -> str:
    """Concatenate the sections of every non-empty collection in export order.

    Args:
        record_sets: Records keyed by collection name.

    Returns:
        str: The complete artifact. Empty if every collection is empty.
    """
    return ''.join(
        records_to_section(record_sets.get(collection, ()), section_title(collection))
        for collection in EXPORT_COLLECTIONS
    )


def export_filename(prefix: str, date: Optional[datetime.date] = None) -> str:
    """Return the export file name for a given date (today by default)."""
    date = date or datetime.date.today()
    return f'{prefix}_{date.strftime(EXPORT_DATE_FORMAT)}.csv'


class BulkExportPipeline(QtCore.QObject):
    """Exports all of a user's documents as a single CSV artifact.

    Args:
        context: The application context providing the store client, the
            delivery sink and the settings.
        parent: Optional Qt parent.

    Signals:
        exportFinished (object): Emitted with the :class:`ExportResult` of a
            background export started with :meth:`start`.
        exportFailed (object): Emitted with the exception that aborted a
            background export.
    """
    exportFinished = QtCore.Signal(object)
    exportFailed = QtCore.Signal(object)

    def __init__(self, context, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self._context = context

    @staticmethod
    def _require_identity(identity: Optional[Identity]) -> str:
        if identity is not None and identity.is_present:
            return identity.id
        if identity is not None and identity.loading:
            raise status.IdentityAbsentException('Sign-in is still in progress.')
        raise status.IdentityAbsentException('Cannot export data without a signed-in user.')

    @staticmethod
    def _check_interrupted() -> None:
        if interruption_requested():
            raise status.ExportInterruptedException

    def read_all(self, uid: str) -> Dict[str, List[Dict[str, Any]]]:
        """Read every export collection owned by ``uid``.

        Args:
            uid: The owner id.

        Returns:
            Records keyed by collection, in :data:`EXPORT_COLLECTIONS` order.

        Raises:
            status.StoreReadFailedException: If any read fails.
            status.ExportInterruptedException: If the running worker was asked to stop.
        """
        owner_field: str = self._context.settings.get_section('store')['owner_field']
        filters = (owner_filter(owner_field, uid),)

        record_sets: Dict[str, List[Dict[str, Any]]] = {}
        for collection in EXPORT_COLLECTIONS:
            self._check_interrupted()
            try:
                records = self._context.store.read(collection, filters)
            except Exception as ex:
                raise status.StoreReadFailedException(f'Reading "{collection}" failed: {ex}') from ex
            logging.debug(f'Read {len(records)} record(s) from "{collection}".')
            record_sets[collection] = list(records)
        return record_sets

    def export(self, identity: Optional[Identity], date: Optional[datetime.date] = None) -> ExportResult:
        """Export and deliver all data owned by an identity.

        Blocking; use :meth:`start` to run it in the background.

        Args:
            identity: The owner to export.
            date: Date used in the file name. Defaults to today.

        Returns:
            ExportResult: What was delivered, and where.

        Raises:
            status.IdentityAbsentException: If nobody is signed in.
            status.StoreReadFailedException: If any read fails.
            status.DeliveryFailedException: If the sink cannot store the artifact.
            status.ExportInterruptedException: If the worker running the export was
                asked to stop. Nothing is delivered.
        """
        uid = self._require_identity(identity)

        from .signals import signals
        signals.exportStarted.emit()

        logging.info(f'Exporting data for "{uid}"')
        record_sets = self.read_all(uid)
        content: str = build_artifact(record_sets)

        prefix: str = self._context.settings.get_section('export')['filename_prefix']
        filename: str = export_filename(prefix, date)
        self._check_interrupted()
        location: str = self._context.sink.deliver(filename, content, EXPORT_MIME_TYPE)

        result = ExportResult(
            filename=filename,
            location=location,
            sections=tuple(c for c in EXPORT_COLLECTIONS if record_sets[c]),
            records=sum(len(v) for v in record_sets.values()),
        )
        logging.info(f'Exported {result.records} record(s) in {len(result.sections)} section(s) to "{location}"')
        signals.exportFinished.emit(location)
        return result

    def start(self, identity: Optional[Identity]) -> AsyncWorker:
        """Run :meth:`export` on a worker thread.

        The outcome is reported through :attr:`exportFinished` or
        :attr:`exportFailed`.

        Returns:
            AsyncWorker: The running worker.

        Raises:
            status.IdentityAbsentException: If nobody is signed in. Nothing is started.
        """
        self._require_identity(identity)

        worker = AsyncWorker(self.export, identity)
        worker.resultReady.connect(self.exportFinished)
        worker.errorOccurred.connect(self.exportFailed)
        worker.launch()
        return worker
