import threading
import time

from FinanceFlow.core.worker import AsyncWorker, interruption_requested, start_asynchronous
from tests.base import BaseTestCase


class TestAsyncWorker(BaseTestCase):

    def tearDown(self):
        self.process_events(timeout_ms=5000, until=lambda: not AsyncWorker._running)
        super().tearDown()

    def test_returns_result(self):
        self.assertEqual(start_asynchronous(lambda a, b=0: a + b, 2, b=3), 5)

    def test_runs_off_the_calling_thread(self):
        main = threading.get_ident()
        self.assertNotEqual(start_asynchronous(threading.get_ident), main)

    def test_reraises_errors(self):
        def fail():
            raise KeyError('missing')

        with self.assertRaises(KeyError):
            start_asynchronous(fail)

    def test_timeout(self):
        with self.assertRaises(TimeoutError):
            start_asynchronous(time.sleep, 1.5, total_timeout=1)

        # The late result is dropped and the worker is already done
        self.process_events(timeout_ms=2000, until=lambda: not AsyncWorker._running)
        self.assertEqual(AsyncWorker._running, set())

    def test_timeout_interrupts_worker(self):
        seen = []

        def poll():
            while not interruption_requested():
                time.sleep(0.05)
            seen.append('interrupted')
            return 'late'

        with self.assertRaises(TimeoutError):
            start_asynchronous(poll, total_timeout=1)
        self.assertEqual(seen, ['interrupted'])

    def test_no_interruption_on_calling_thread(self):
        self.assertFalse(interruption_requested())

    def test_worker_signals(self):
        results = []
        worker = AsyncWorker(lambda: 'done')
        worker.resultReady.connect(results.append)
        worker.errorOccurred.connect(results.append)
        worker.launch()
        self.assertIn(worker, AsyncWorker._running)

        self.process_events(timeout_ms=5000, until=lambda: bool(results))
        self.assertEqual(results, ['done'])
