"""Delivery sinks for exported artifacts.

A sink turns a generated text artifact into a file the user can retrieve. It
either stores the whole artifact or raises
:class:`~FinanceFlow.status.status.DeliveryFailedException`; a partially
written file is never left behind.
"""
import logging
import os
import pathlib
import tempfile
from typing import Optional

from PySide6 import QtCore

from ..status import status

TEXT_MIME_PREFIXES = ('text/', 'application/json')


def _encoding_from_mime_type(mime_type: str) -> str:
    for part in mime_type.split(';')[1:]:
        key, _, value = part.strip().partition('=')
        if key.lower() == 'charset' and value:
            return value
    return 'utf-8'


class DeliverySink:
    """Base class of delivery sinks."""

    def deliver(self, filename: str, content: str, mime_type: str) -> str:
        """Materialize an artifact.

        Args:
            filename: Suggested file name.
            content: The full artifact.
            mime_type: MIME type of the content, e.g. ``text/csv;charset=utf-8;``.

        Returns:
            str: Where the artifact was delivered.

        Raises:
            status.DeliveryFailedException: If the artifact could not be delivered.
        """
        raise NotImplementedError


class FileDeliverySink(DeliverySink):
    """Writes artifacts into a directory.

    Args:
        directory: Target directory. Defaults to the user's download location.
    """

    def __init__(self, directory: Optional[str] = None) -> None:
        if not directory:
            directory = QtCore.QStandardPaths.writableLocation(QtCore.QStandardPaths.DownloadLocation)
        self.directory = pathlib.Path(directory)

    def deliver(self, filename: str, content: str, mime_type: str) -> str:
        if not mime_type.startswith(TEXT_MIME_PREFIXES):
            raise status.DeliveryFailedException(f'Unsupported content type "{mime_type}".')
        if not filename or pathlib.Path(filename).name != filename:
            raise status.DeliveryFailedException(f'Invalid file name "{filename}".')

        encoding = _encoding_from_mime_type(mime_type)
        path = self.directory / filename
        logging.debug(f'Delivering {len(content)} characters to "{path}"')

        tmp_path = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                    'w', encoding=encoding, newline='', dir=self.directory,
                    prefix=f'.{filename}.', suffix='.tmp', delete=False) as f:
                tmp_path = f.name
                f.write(content)
            os.replace(tmp_path, path)
        except (OSError, LookupError, UnicodeError) as ex:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise status.DeliveryFailedException(f'Could not write "{path}": {ex}') from ex

        logging.info(f'Export saved to "{path}"')
        return str(path)
