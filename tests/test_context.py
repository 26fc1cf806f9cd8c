from unittest.mock import patch

import FinanceFlow
from FinanceFlow.core.context import AppContext
from FinanceFlow.core.delivery import FileDeliverySink
from FinanceFlow.core.firestore import FirestoreClient
from FinanceFlow.settings import lib
from tests.base import BaseTestCase, FakeStore, FakeTransport, MemorySink


class TestAppContext(BaseTestCase):

    def test_defaults(self):
        context = AppContext(transport=FakeTransport())
        try:
            self.assertIs(context.settings, lib.settings)
            self.assertIsInstance(context.store, FirestoreClient)
            self.assertIsNotNone(context.auth_manager)
            self.assertIsInstance(context.sink, FileDeliverySink)
        finally:
            context.store.close()

    def test_export_directory_setting(self):
        config = lib.settings.get_section('export')
        config['directory'] = '/tmp/financeflow-exports'
        lib.settings.set_section('export', config)

        context = AppContext(store=FakeStore(), transport=FakeTransport())
        self.assertEqual(str(context.sink.directory), '/tmp/financeflow-exports')
        self.assertIsNone(context.auth_manager)

    def test_open_close(self):
        store = FakeStore()
        context = self.make_context(store=store)
        self.assertFalse(context.is_open)

        with context:
            self.assertTrue(context.is_open)
        self.assertFalse(context.is_open)
        self.assertTrue(store.closed)

        # Closing twice is a no-op
        store.closed = False
        context.close()
        self.assertFalse(store.closed)


class TestCommandLine(BaseTestCase):

    def test_parse_args(self):
        args = FinanceFlow._parse_args(['export', '--uid', 'u1', '--output', '/tmp/out'])
        self.assertEqual(args.command, 'export')
        self.assertEqual(args.uid, 'u1')
        self.assertEqual(args.output, '/tmp/out')

        args = FinanceFlow._parse_args(['-v', 'status', '--uid', 'u1', '--timeout', '5'])
        self.assertTrue(args.verbose)
        self.assertEqual(args.timeout, 5)

        args = FinanceFlow._parse_args(['--log-level', 'warning', 'sign-in'])
        self.assertEqual(args.log_level, 'warning')

        with self.assertRaises(SystemExit):
            FinanceFlow._parse_args(['export'])

    def test_run_export(self):
        store = FakeStore({'goals': [{'id': 'g1', 'ownerUid': 'u1', 'name': 'Car'}]})
        sink = MemorySink()
        context = self.make_context(store=store, sink=sink)
        args = FinanceFlow._parse_args(['export', '--uid', 'u1'])

        with patch('builtins.print') as mock_print:
            self.assertEqual(FinanceFlow._run_export(context, args), 0)
        self.assertEqual(len(sink.deliveries), 1)
        mock_print.assert_called_once()

    def test_run_export_failure(self):
        store = FakeStore()
        store.fail_on = 'transactions'
        context = self.make_context(store=store)
        args = FinanceFlow._parse_args(['export', '--uid', 'u1'])
        self.assertEqual(FinanceFlow._run_export(context, args), 1)
