# =============================================================================
# fitlog/offline/sync_engine.py
# Background replay of the offline queue
# =============================================================================
"""
SyncEngine - Drains the offline queue in the background.

Features:
- Daemon thread draining every `interval` seconds while online
- Immediate drain when the connection comes back
- Wake-up requests from OfflineQueue.enqueue (background sync registration)
- Sync status tracking and event callbacks
"""

from __future__ import annotations
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import logging

from fitlog.errors import ErrorContext
from fitlog.offline.connection_manager import ConnectionManager, ConnectionState, ConnectionStatus
from fitlog.offline.offline_queue import DrainResult, OfflineQueue

logger = logging.getLogger(__name__)


@dataclass
class SyncState:
    """Current sync state."""
    is_syncing: bool = False
    last_sync: Optional[datetime] = None
    last_sync_success: Optional[datetime] = None
    pending_count: int = 0
    failed_count: int = 0
    abandoned_count: int = 0
    total_synced: int = 0


class SyncEngine:
    """
    Background sync for queued offline writes.

    Usage:
        engine = SyncEngine(queue, connection, interval=30)
        engine.start()      # Start background sync
        engine.sync_now()   # Force immediate sync
    """

    SYNC_INTERVAL = 30          # Seconds between sync attempts
    LAST_SYNC_SETTING = "last_sync_success"

    def __init__(
        self,
        queue: OfflineQueue,
        connection: ConnectionManager,
        interval: float = SYNC_INTERVAL,
    ):
        self.queue = queue
        self.connection = connection
        self.interval = interval
        self._state = SyncState()
        self._sync_thread: Optional[threading.Thread] = None
        self._stop_sync = threading.Event()
        self._wake = threading.Event()
        self._callbacks: List[Callable[[SyncState], None]] = []
        self._initialized = False

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_syncing(self) -> bool:
        return self._state.is_syncing

    @property
    def is_running(self) -> bool:
        return self._sync_thread is not None and self._sync_thread.is_alive()

    def initialize(self) -> None:
        """Hook into connection changes and queue enqueues."""
        if self._initialized:
            return

        self.connection.register_callback(self._on_connection_change)
        self.queue.register_background_sync(self.request_sync)

        self._initialized = True
        logger.info("SyncEngine initialized")

    def start(self) -> None:
        """Start background sync thread."""
        if self.is_running:
            return

        self.initialize()
        self._stop_sync.clear()
        self._sync_thread = threading.Thread(
            target=self._sync_loop,
            daemon=True,
            name="SyncEngine"
        )
        self._sync_thread.start()
        logger.info("Sync engine started")

    def stop(self) -> None:
        """Stop background sync thread."""
        self._stop_sync.set()
        self._wake.set()
        if self._sync_thread:
            self._sync_thread.join(timeout=10)
        logger.info("Sync engine stopped")

    def request_sync(self) -> None:
        """Ask the background thread to drain at its next opportunity."""
        self._wake.set()

    def _sync_loop(self) -> None:
        """Background sync loop."""
        while not self._stop_sync.is_set():
            self._wake.wait(timeout=self.interval)
            self._wake.clear()
            if self._stop_sync.is_set():
                break

            if self.connection.is_online:
                try:
                    self._perform_sync()
                except Exception as e:
                    logger.error(f"Sync error: {e}")

    def _on_connection_change(self, state: ConnectionState) -> None:
        """Handle connection status changes."""
        if state.status == ConnectionStatus.ONLINE:
            logger.info("Connection restored, triggering sync")
            self.sync_now()

    def sync_now(self) -> Optional[DrainResult]:
        """
        Drain the queue immediately.

        Returns:
            The drain result, or None when offline or already syncing
        """
        if not self.connection.is_online:
            logger.debug("Cannot sync: offline")
            return None

        return self._perform_sync()

    def _perform_sync(self) -> Optional[DrainResult]:
        if self._state.is_syncing:
            return None

        self._state.is_syncing = True
        self._state.last_sync = datetime.now()
        self._notify_callbacks()

        result: Optional[DrainResult] = None
        try:
            with ErrorContext("Replaying offline queue", recoverable=True):
                result = self.queue.drain()

            if result is not None and not result.skipped:
                self._state.total_synced += result.success
                self._state.failed_count = result.failed
                self._state.abandoned_count += result.abandoned
                if result.failed == 0:
                    self._state.last_sync_success = datetime.now()
                    self.queue.db.set_setting(
                        self.LAST_SYNC_SETTING, self._state.last_sync_success.isoformat()
                    )
            self._state.pending_count = self.queue.count()
            return result

        finally:
            self._state.is_syncing = False
            self._notify_callbacks()

    def register_callback(self, callback: Callable[[SyncState], None]) -> None:
        """Register a callback for sync state changes."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[SyncState], None]) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        """Notify all registered callbacks."""
        for callback in list(self._callbacks):
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in sync callback: {e}")

    def get_status_display(self) -> Dict[str, Any]:
        """Get sync status for UI display."""
        last_success = self._state.last_sync_success
        return {
            "is_syncing": self._state.is_syncing,
            "last_sync": self._state.last_sync.isoformat() if self._state.last_sync else None,
            "last_success": (
                last_success.isoformat() if last_success
                else self.queue.db.get_setting(self.LAST_SYNC_SETTING)
            ),
            "pending_count": self.queue.count(),
            "failed_count": self._state.failed_count,
            "abandoned_count": self._state.abandoned_count,
            "total_synced": self._state.total_synced,
        }
