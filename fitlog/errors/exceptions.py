# =============================================================================
# fitlog/errors/exceptions.py
# Custom Exception Hierarchy for FitLog
# =============================================================================

from datetime import datetime
from typing import Optional, Dict, Any


class FitLogError(Exception):
    """
    Base exception for all FitLog errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "NET_001")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "FL_000"
        self.details = details or {}
        self.recoverable = recoverable
        self.timestamp = datetime.now().isoformat()

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "timestamp": self.timestamp,
        }


# =============================================================================
# NETWORK LAYER EXCEPTIONS
# =============================================================================

class APIError(FitLogError):
    """Raised when the REST API answers with a non-2xx status"""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        status_text: Optional[str] = None,
        endpoint: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if status is not None:
            details["status"] = status
        if endpoint:
            details["endpoint"] = endpoint

        super().__init__(
            message=message,
            code="API_001",
            details=details,
            **kwargs,
        )
        self.status = status
        self.status_text = status_text
        self.endpoint = endpoint


class NetworkError(FitLogError):
    """Raised when a request never produced a response (DNS, refused, timeout)"""

    def __init__(
        self,
        message: str,
        original_error: Optional[BaseException] = None,
        endpoint: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if endpoint:
            details["endpoint"] = endpoint
        if original_error is not None:
            details["original_error"] = repr(original_error)

        super().__init__(
            message=message,
            code="NET_001",
            details=details,
            **kwargs,
        )
        self.original_error = original_error
        self.endpoint = endpoint


# =============================================================================
# LOCAL STORAGE EXCEPTIONS
# =============================================================================

class LocalStoreError(FitLogError):
    """Raised when the local SQLite cache cannot be read or written"""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if table:
            details["table"] = table
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            code="STORE_001",
            details=details,
            **kwargs,
        )


class NoDataAvailableError(FitLogError):
    """Raised when the network failed and the local cache is empty"""

    def __init__(
        self,
        message: str = "Failed to load data and no cache available",
        entity: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if entity:
            details["entity"] = entity

        super().__init__(
            message=message,
            code="DATA_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# INPUT EXCEPTIONS
# =============================================================================

class ValidationError(FitLogError):
    """Raised when a payload fails client-side validation"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value

        super().__init__(
            message=message,
            code="VALID_001",
            details=details,
            **kwargs,
        )
        self.field = field
        self.value = value


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(FitLogError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )


# =============================================================================
# CONTROL FLOW EXCEPTIONS
# =============================================================================

class OperationCancelledError(FitLogError):
    """Raised when a fetch is abandoned because its consumer went away"""

    def __init__(self, message: str = "Operation cancelled", **kwargs):
        super().__init__(message=message, code="CANCEL_001", **kwargs)
