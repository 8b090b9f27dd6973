# =============================================================================
# fitlog/services/base_service.py
# Fetch results and the shared load path of the data services
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from fitlog.errors import FitLogError, OperationCancelledError, handle_error
from fitlog.logging import LogContext, get_logger
from fitlog.offline.cancellation import CancellationToken


@dataclass
class FetchResult:
    """
    Outcome of DataService.get_all.

    Attributes:
        data: Records to display
        from_cache: True when `data` is the cache because the fetch failed
        cached_data: What the cache held before the fetch (None if empty)
        error: Message to show next to cached data
    """
    data: List[Dict[str, Any]]
    from_cache: bool = False
    cached_data: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None


@dataclass
class ServiceResult:
    """
    A load as the state containers see it: records, a failure or a
    cancellation, never an exception.
    """
    fetch: Optional[FetchResult] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    cancelled: bool = False

    def __bool__(self) -> bool:
        return self.fetch is not None

    @property
    def records(self) -> List[Dict[str, Any]]:
        return self.fetch.data if self.fetch is not None else []

    @property
    def cache_notice(self) -> Optional[str]:
        """Message for records served from the cache, else None."""
        if self.fetch is not None and self.fetch.from_cache:
            return self.fetch.error
        return None

    @classmethod
    def loaded(cls, fetch: FetchResult) -> ServiceResult:
        return cls(fetch=fetch)

    @classmethod
    def failed(cls, error: Exception) -> ServiceResult:
        if isinstance(error, FitLogError):
            return cls(error=error.message, error_code=error.code)
        return cls(error=str(error), error_code="EXCEPTION")

    @classmethod
    def was_cancelled(cls, reason: Optional[str]) -> ServiceResult:
        return cls(error=f"Operation cancelled: {reason}", error_code="CANCEL_001", cancelled=True)


class BaseService:
    """Logger plus the load path shared by every data service."""

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def log_operation(self, operation: str) -> LogContext:
        return LogContext(self.logger, operation)

    def run_fetch(
        self,
        operation: str,
        fetch: Callable[..., FetchResult],
        token: Optional[CancellationToken] = None,
    ) -> ServiceResult:
        """
        Run a fetch under a cancellation token and fold the outcome into a
        ServiceResult.

        A token cancelled before the fetch starts skips the fetch entirely.
        Cancellation is reported as such and never logged as a failure.
        """
        if token is not None and token.cancelled:
            self.logger.debug(f"{operation} skipped: {token.reason}")
            return ServiceResult.was_cancelled(token.reason)

        try:
            with self.log_operation(operation):
                try:
                    fetched = fetch(token=token)
                except OperationCancelledError:
                    reason = token.reason if token is not None else None
                    self.logger.debug(f"{operation} cancelled: {reason}")
                    return ServiceResult.was_cancelled(reason)
            return ServiceResult.loaded(fetched)
        except FitLogError as e:
            handle_error(e, show_user_message=False)
            return ServiceResult.failed(e)
        except Exception as e:
            return ServiceResult.failed(e)
