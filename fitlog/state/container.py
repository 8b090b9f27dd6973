# =============================================================================
# fitlog/state/container.py
# Shared lifecycle for the session-backed state containers
# =============================================================================

from __future__ import annotations
import threading
from typing import Any, MutableMapping, Optional

from fitlog.logging import get_logger
from fitlog.offline.cancellation import CancellationToken
from .session import init_state

logger = get_logger(__name__)


class StateContainer:
    """
    Base for containers that keep records in a session mapping.

    Each fetch runs under a fresh CancellationToken. unmount() cancels the
    current one; a fetch whose token was cancelled must not touch the session.
    """

    prefix: str = ""

    def __init__(self, session: Optional[MutableMapping[str, Any]] = None):
        self.session = init_state(session)
        self._token: Optional[CancellationToken] = None
        self._lock = threading.Lock()
        self.mounted = True

    def _key(self, name: str) -> str:
        return f"{self.prefix}_{name}"

    @property
    def loading(self) -> bool:
        return bool(self.session[self._key("loading")])

    @property
    def error(self) -> Optional[str]:
        return self.session[self._key("error")]

    @property
    def is_initialized(self) -> bool:
        return bool(self.session[self._key("initialized")])

    def _set(self, name: str, value: Any) -> None:
        self.session[self._key(name)] = value

    def _begin(self) -> CancellationToken:
        """Cancel any fetch in flight and start a new one."""
        with self._lock:
            if self._token is not None:
                self._token.cancel("superseded")
            self._token = CancellationToken()
            self.mounted = True
            return self._token

    def _is_current(self, token: CancellationToken) -> bool:
        return not token.cancelled and token is self._token

    def _end(self, token: CancellationToken) -> None:
        """Clear `loading` unless a newer fetch has taken over."""
        with self._lock:
            if token is self._token:
                self._set("loading", False)

    def unmount(self) -> None:
        """Cancel the fetch in flight; its results will be discarded."""
        with self._lock:
            self.mounted = False
            if self._token is not None:
                self._token.cancel("unmounted")
        logger.debug(f"{self.__class__.__name__} unmounted")

    def ensure_loaded(self) -> bool:
        """
        Fetch once per session.

        Returns:
            True if a fetch ran
        """
        if self.is_initialized:
            return False
        self.refresh()
        return True

    def refresh(self) -> Any:
        raise NotImplementedError
