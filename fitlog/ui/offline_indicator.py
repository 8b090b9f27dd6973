"""
Offline Indicator
Banner showing connectivity and how many writes are waiting to sync
"""
from typing import Optional

import streamlit as st

from fitlog.errors import error_boundary
from fitlog.offline.storage import StorageHandle


def offline_status_message(is_online: bool, was_offline: bool, pending_count: int) -> Optional[str]:
    """
    Banner text for the current connectivity, or None when nothing to show.

    Args:
        is_online: Current connection state
        was_offline: Came back online within the last few seconds
        pending_count: Entries waiting in the offline queue
    """
    if not is_online:
        return "You are offline. Changes will be saved locally."
    if was_offline:
        if pending_count > 0:
            return f"Back online! Syncing {pending_count} pending changes..."
        return "Back online!"
    if pending_count > 0:
        return f"{pending_count} changes pending sync"
    return None


@error_boundary(default_return=None)
def render_offline_indicator(storage: StorageHandle) -> Optional[str]:
    """Draw the banner; returns the message shown."""
    connection = storage.connection
    pending = storage.queue.count()
    message = offline_status_message(connection.is_online, connection.was_offline, pending)
    if message is None:
        return None

    if not connection.is_online:
        st.warning(f"📴 {message}")
    else:
        st.info(f"🔄 {message}" if pending else f"✅ {message}")

    dead_letters = len(storage.queue.get_dead_letters())
    if dead_letters:
        st.caption(f"{dead_letters} changes could not be synced and were set aside.")
    return message
