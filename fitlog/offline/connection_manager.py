# =============================================================================
# fitlog/offline/connection_manager.py
# Connection Status Detection and Management
# =============================================================================
"""
ConnectionManager - Tracks whether the FitLog API is reachable.

This is the Python stand-in for the browser's navigator.onLine flag plus the
online/offline window events:
- Probes the API health endpoint on demand or from a monitor thread
- Can be forced offline/online (user preference, tests)
- Notifies callbacks on status transitions
- Remembers a recent offline -> online transition for "back online" banners
"""

from __future__ import annotations
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional
import logging

import requests

logger = logging.getLogger(__name__)


class ConnectionStatus(Enum):
    """Connection status states."""
    ONLINE = "online"           # API reachable
    OFFLINE = "offline"         # No connectivity
    CHECKING = "checking"       # Currently checking status
    UNKNOWN = "unknown"         # Initial state


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    consecutive_failures: int = 0
    forced: bool = False
    error_message: Optional[str] = None


class ConnectionManager:
    """
    Online/offline detector for the offline-first data layer.

    UNKNOWN counts as online, the same way a browser reports onLine=true
    until it has evidence otherwise.

    Usage:
        manager = ConnectionManager("http://localhost:3000/health")
        manager.check_connection()
        if manager.is_online:
            ...
    """

    # Configuration
    CHECK_INTERVAL_ONLINE = 30      # Seconds between checks when online
    CHECK_INTERVAL_OFFLINE = 10     # Seconds between checks when offline
    CONNECTION_TIMEOUT = 5          # Timeout for the health probe
    BACK_ONLINE_WINDOW = 5          # Seconds the "back online" flag stays set

    def __init__(
        self,
        health_url: Optional[str] = None,
        probe: Optional[Callable[[], bool]] = None,
    ):
        """
        Args:
            health_url: URL answered by the API when it is up
            probe: Custom reachability check overriding the HTTP probe
        """
        self.health_url = health_url
        self._probe = probe
        self._state = ConnectionState()
        self._callbacks: List[Callable[[ConnectionState], None]] = []
        self._monitor_thread: Optional[threading.Thread] = None
        self._stop_monitoring = threading.Event()
        self._back_online_at: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> ConnectionState:
        """Get current connection state."""
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        """Get current status."""
        return self._state.status

    @property
    def is_online(self) -> bool:
        """False only when the device is known to be offline."""
        return self._state.status != ConnectionStatus.OFFLINE

    @property
    def is_offline(self) -> bool:
        """Check if we're completely offline."""
        return self._state.status == ConnectionStatus.OFFLINE

    @property
    def was_offline(self) -> bool:
        """True for a short window after an offline -> online transition."""
        if self._back_online_at is None:
            return False
        return time.monotonic() - self._back_online_at < self.BACK_ONLINE_WINDOW

    def check_connection(self) -> ConnectionState:
        """
        Perform a connection check and update state.

        Forced states are left untouched until cleared with force_online()
        or clear_forced().

        Returns:
            Updated ConnectionState
        """
        if self._state.forced:
            return self._state

        self._state.last_check = datetime.now()
        reachable = self._check_server()
        self._set_status(ConnectionStatus.ONLINE if reachable else ConnectionStatus.OFFLINE)
        return self._state

    def _check_server(self) -> bool:
        """
        Check that the API answers its health endpoint.

        Returns:
            True if the server is reachable
        """
        if self._probe is not None:
            try:
                return bool(self._probe())
            except Exception as e:
                self._state.error_message = str(e)
                logger.debug(f"Custom probe failed: {e}")
                return False

        if not self.health_url:
            # Nothing to probe - treat as reachable
            return True

        try:
            response = requests.head(self.health_url, timeout=self.CONNECTION_TIMEOUT)
            return response.ok
        except requests.exceptions.RequestException as e:
            self._state.error_message = str(e)
            logger.debug(f"Server reachability check failed: {e}")
            return False

    def _set_status(self, new_status: ConnectionStatus) -> None:
        with self._lock:
            old_status = self._state.status
            self._state.status = new_status

            if new_status == ConnectionStatus.ONLINE:
                self._state.last_online = datetime.now()
                self._state.consecutive_failures = 0
                self._state.error_message = None
                if old_status == ConnectionStatus.OFFLINE:
                    self._back_online_at = time.monotonic()
            elif new_status == ConnectionStatus.OFFLINE:
                self._state.consecutive_failures += 1

        if old_status != new_status:
            logger.info(f"Connection status changed: {old_status.value} -> {new_status.value}")
            self._notify_callbacks()

    def force_offline(self) -> None:
        """Force offline mode (for testing or user preference)."""
        self._state.forced = True
        self._set_status(ConnectionStatus.OFFLINE)
        logger.info("Forced offline mode")

    def force_online(self) -> None:
        """Force online mode; fires the back-online transition if it applies."""
        self._state.forced = True
        self._set_status(ConnectionStatus.ONLINE)
        logger.info("Forced online mode")

    def clear_forced(self) -> ConnectionState:
        """Return to probe-driven status and check immediately."""
        self._state.forced = False
        return self.check_connection()

    def start_monitoring(self) -> None:
        """Start background connection monitoring."""
        if self._monitor_thread is not None and self._monitor_thread.is_alive():
            return

        self._stop_monitoring.clear()
        self._monitor_thread = threading.Thread(
            target=self._monitoring_loop,
            daemon=True,
            name="ConnectionMonitor"
        )
        self._monitor_thread.start()
        logger.debug("Connection monitoring started")

    def stop_monitoring(self) -> None:
        """Stop background connection monitoring."""
        self._stop_monitoring.set()
        if self._monitor_thread:
            self._monitor_thread.join(timeout=5)
        logger.debug("Connection monitoring stopped")

    def _monitoring_loop(self) -> None:
        """Background monitoring loop."""
        while not self._stop_monitoring.is_set():
            interval = (
                self.CHECK_INTERVAL_ONLINE
                if self.is_online
                else self.CHECK_INTERVAL_OFFLINE
            )

            if self._stop_monitoring.wait(timeout=interval):
                break

            try:
                self.check_connection()
            except Exception as e:
                logger.error(f"Error in connection check: {e}")

    def register_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """
        Register a callback for connection status changes.

        Args:
            callback: Function called with ConnectionState when status changes
        """
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        """Notify all registered callbacks of status change."""
        for callback in list(self._callbacks):
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in connection callback: {e}")

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "is_online": self.is_online,
            "was_offline": self.was_offline,
            "forced": self._state.forced,
            "last_check": self._state.last_check.isoformat() if self._state.last_check else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "failures": self._state.consecutive_failures,
            "error": self._state.error_message,
        }
