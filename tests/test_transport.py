from unittest.mock import patch

from PySide6.QtNetwork import QNetworkInformation

from FinanceFlow.core.transport import TransportMonitor
from tests.base import BaseTestCase

Reachability = QNetworkInformation.Reachability


class TestTransportMonitor(BaseTestCase):

    def setUp(self):
        super().setUp()
        self.monitor = TransportMonitor()
        self.events = []

        def _online():
            self.events.append('online')

        def _offline():
            self.events.append('offline')

        self.monitor.online.connect(_online)
        self.monitor.offline.connect(_offline)

    def test_starts_online(self):
        self.assertTrue(self.monitor.is_online)

    def test_reachability_mapping(self):
        self.monitor._on_reachability_changed(Reachability.Disconnected)
        self.assertFalse(self.monitor.is_online)

        self.monitor._on_reachability_changed(Reachability.Online)
        self.assertTrue(self.monitor.is_online)

        self.monitor._on_reachability_changed(Reachability.Disconnected)
        self.monitor._on_reachability_changed(Reachability.Unknown)
        self.assertTrue(self.monitor.is_online)

        self.assertEqual(self.events, ['offline', 'online', 'offline', 'online'])

    def test_partial_reachability_counts_as_online(self):
        for reachability in (Reachability.Local, Reachability.Site, Reachability.Online, Reachability.Unknown):
            self.monitor._on_reachability_changed(reachability)
        self.assertTrue(self.monitor.is_online)
        self.assertEqual(self.events, [])

    def test_repeated_state_is_not_signalled(self):
        self.monitor._on_reachability_changed(Reachability.Disconnected)
        self.monitor._on_reachability_changed(Reachability.Disconnected)
        self.assertEqual(self.events, ['offline'])

    def test_no_backend(self):
        with patch('FinanceFlow.core.transport.QtNetwork') as qt_network:
            qt_network.QNetworkInformation.loadBackendByFeatures.return_value = False
            with self.assertLogs(level='WARNING'):
                self.assertFalse(self.monitor.start())
        self.assertTrue(self.monitor.is_online)

    def test_start_reads_initial_reachability(self):
        with patch('FinanceFlow.core.transport.QtNetwork') as qt_network:
            network_information = qt_network.QNetworkInformation
            network_information.loadBackendByFeatures.return_value = True
            info = network_information.instance.return_value
            info.backendName.return_value = 'fake'
            info.reachability.return_value = network_information.Reachability.Disconnected

            self.assertTrue(self.monitor.start())
            self.assertFalse(self.monitor.is_online)
            info.reachabilityChanged.connect.assert_called_once_with(self.monitor._on_reachability_changed)

            # Already started
            self.assertTrue(self.monitor.start())
            network_information.loadBackendByFeatures.assert_called_once()

            self.monitor.stop()
            info.reachabilityChanged.disconnect.assert_called_once_with(self.monitor._on_reachability_changed)
            self.monitor.stop()
            info.reachabilityChanged.disconnect.assert_called_once()
