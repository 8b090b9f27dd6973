# =============================================================================
# tests/unit/test_connection_manager.py
# Unit Tests for ConnectionManager
# =============================================================================

from unittest.mock import MagicMock, patch

import requests

from fitlog.offline.connection_manager import ConnectionManager, ConnectionStatus


class TestConnectionStatus:

    def test_unknown_counts_as_online(self):
        manager = ConnectionManager(probe=lambda: False)

        assert manager.status == ConnectionStatus.UNKNOWN
        assert manager.is_online
        assert not manager.is_offline

    def test_probe_drives_status(self):
        reachable = {"value": False}
        manager = ConnectionManager(probe=lambda: reachable["value"])

        assert manager.check_connection().status == ConnectionStatus.OFFLINE
        assert manager.state.consecutive_failures == 1

        reachable["value"] = True
        manager.check_connection()

        assert manager.is_online
        assert manager.state.consecutive_failures == 0
        assert manager.was_offline

    def test_probe_exception_means_offline(self):
        def probe():
            raise OSError("no route to host")

        manager = ConnectionManager(probe=probe)
        manager.check_connection()

        assert manager.is_offline
        assert manager.state.error_message == "no route to host"

    def test_http_probe(self):
        manager = ConnectionManager("http://api.test/health")

        with patch("fitlog.offline.connection_manager.requests.head") as head:
            head.return_value = MagicMock(ok=True)
            manager.check_connection()
            head.assert_called_once_with("http://api.test/health", timeout=manager.CONNECTION_TIMEOUT)
        assert manager.status == ConnectionStatus.ONLINE

        with patch("fitlog.offline.connection_manager.requests.head") as head:
            head.side_effect = requests.exceptions.ConnectionError("refused")
            manager.check_connection()
        assert manager.is_offline

    def test_no_health_url_is_reachable(self):
        manager = ConnectionManager()

        assert manager.check_connection().status == ConnectionStatus.ONLINE


class TestForcedStates:

    def test_forced_offline_ignores_probe(self, connection):
        connection.force_offline()
        connection.check_connection()

        assert connection.is_offline
        assert connection.state.forced

    def test_force_online_marks_back_online(self, connection):
        connection.force_offline()
        connection.force_online()

        assert connection.is_online
        assert connection.was_offline

    def test_clear_forced_rechecks(self):
        manager = ConnectionManager(probe=lambda: False)
        manager.force_online()

        manager.clear_forced()

        assert manager.is_offline
        assert not manager.state.forced


class TestCallbacks:

    def test_callback_fires_on_transition_only(self, connection):
        callback = MagicMock()
        connection.register_callback(callback)

        connection.check_connection()
        callback.assert_not_called()

        connection.force_offline()
        callback.assert_called_once()
        assert callback.call_args.args[0].status == ConnectionStatus.OFFLINE

    def test_failing_callback_does_not_block_others(self, connection):
        broken = MagicMock(side_effect=RuntimeError("boom"))
        healthy = MagicMock()
        connection.register_callback(broken)
        connection.register_callback(healthy)

        connection.force_offline()

        healthy.assert_called_once()

    def test_unregister(self, connection):
        callback = MagicMock()
        connection.register_callback(callback)
        connection.unregister_callback(callback)

        connection.force_offline()

        callback.assert_not_called()

    def test_status_display(self, offline):
        display = offline.get_status_display()

        assert display["status"] == "offline"
        assert display["is_online"] is False
        assert display["forced"] is True
