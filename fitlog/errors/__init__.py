# =============================================================================
# fitlog/errors/__init__.py
# Centralized Error Handling for FitLog
# =============================================================================

from .exceptions import (
    FitLogError,
    APIError,
    NetworkError,
    LocalStoreError,
    NoDataAvailableError,
    ValidationError,
    ConfigurationError,
    OperationCancelledError,
)

from .handlers import (
    handle_error,
    safe_execute,
    error_boundary,
    get_user_friendly_message,
    ErrorContext,
)

__all__ = [
    # Exceptions
    "FitLogError",
    "APIError",
    "NetworkError",
    "LocalStoreError",
    "NoDataAvailableError",
    "ValidationError",
    "ConfigurationError",
    "OperationCancelledError",
    # Handlers
    "handle_error",
    "safe_execute",
    "error_boundary",
    "get_user_friendly_message",
    "ErrorContext",
]
