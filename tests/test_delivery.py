import os
import pathlib
import tempfile
from unittest.mock import patch

from FinanceFlow.core import delivery
from FinanceFlow.core.delivery import FileDeliverySink
from FinanceFlow.core.export import EXPORT_MIME_TYPE
from FinanceFlow.status import status
from tests.base import BaseTestCase


class TestFileDeliverySink(BaseTestCase):

    def setUp(self):
        super().setUp()
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.directory = pathlib.Path(self._tmp.name) / 'exports'
        self.sink = FileDeliverySink(str(self.directory))

    def test_deliver(self):
        content = 'Transactions\nid,description\nt1,"Café, ""latte"""\n\n'
        location = self.sink.deliver('FinanceFlow_Export_2024-05-01.csv', content, EXPORT_MIME_TYPE)

        path = self.directory / 'FinanceFlow_Export_2024-05-01.csv'
        self.assertEqual(location, str(path))
        self.assertEqual(path.read_bytes(), content.encode('utf-8'))
        self.assertEqual(os.listdir(self.directory), [path.name])

    def test_deliver_empty_artifact(self):
        location = self.sink.deliver('empty.csv', '', EXPORT_MIME_TYPE)
        self.assertEqual(pathlib.Path(location).read_text(encoding='utf-8'), '')

    def test_overwrites_existing_file(self):
        self.sink.deliver('a.csv', 'first', EXPORT_MIME_TYPE)
        self.sink.deliver('a.csv', 'second', EXPORT_MIME_TYPE)
        self.assertEqual((self.directory / 'a.csv').read_text(encoding='utf-8'), 'second')

    def test_rejects_binary_mime_type(self):
        with self.assertRaises(status.DeliveryFailedException):
            self.sink.deliver('a.bin', 'x', 'application/octet-stream')

    def test_rejects_paths(self):
        for filename in ('../escape.csv', 'sub/dir.csv', ''):
            with self.assertRaises(status.DeliveryFailedException):
                self.sink.deliver(filename, 'x', EXPORT_MIME_TYPE)
        self.assertFalse(self.directory.exists())

    def test_unknown_charset(self):
        with self.assertRaises(status.DeliveryFailedException):
            self.sink.deliver('a.csv', 'x', 'text/csv;charset=not-a-codec')
        self.assertEqual(list(self.directory.iterdir()), [])

    def test_failed_write_leaves_nothing_behind(self):
        with patch.object(delivery.os, 'replace', side_effect=PermissionError('denied')):
            with self.assertRaises(status.DeliveryFailedException):
                self.sink.deliver('a.csv', 'content', EXPORT_MIME_TYPE)
        self.assertEqual(list(self.directory.iterdir()), [])

    def test_encoding_from_mime_type(self):
        self.assertEqual(delivery._encoding_from_mime_type(EXPORT_MIME_TYPE), 'utf-8')
        self.assertEqual(delivery._encoding_from_mime_type('text/plain; charset=latin-1'), 'latin-1')
        self.assertEqual(delivery._encoding_from_mime_type('text/plain'), 'utf-8')

    def test_default_directory(self):
        sink = FileDeliverySink()
        self.assertTrue(str(sink.directory))
