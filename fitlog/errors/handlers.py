# =============================================================================
# fitlog/errors/handlers.py
# Error Handling Utilities for FitLog
# =============================================================================

from __future__ import annotations
import functools
import traceback
from typing import Optional, Callable, TypeVar, Any

from fitlog.logging import get_logger
from .exceptions import FitLogError, APIError, NetworkError, ValidationError

logger = get_logger(__name__)

T = TypeVar("T")


STATUS_MESSAGES = {
    400: "Invalid request. Please check your input and try again.",
    401: "You are not authorized. Please sign in and try again.",
    403: "Access denied. You do not have permission to perform this action.",
    404: "The requested resource was not found. Please try again.",
    409: "This action conflicts with existing data. Please refresh and try again.",
    422: "The data provided is invalid. Please check your input.",
    429: "Too many requests. Please wait a moment and try again.",
    500: "Server error. Our team has been notified. Please try again later.",
    502: "Service temporarily unavailable. Please try again in a few moments.",
    503: "Service temporarily unavailable. Please try again in a few moments.",
    504: "Request timed out. Please check your connection and try again.",
}


def get_user_friendly_message(error: BaseException, context: str = "") -> str:
    """
    Convert an error into a message suitable for the UI.

    Args:
        error: The exception to describe
        context: Optional action description ("saving workout")

    Returns:
        User-facing message string
    """
    suffix = f" while {context}" if context else ""

    if isinstance(error, APIError):
        if error.status in STATUS_MESSAGES:
            return STATUS_MESSAGES[error.status]
        return f"An error occurred{suffix}. Please try again."

    if isinstance(error, NetworkError):
        return (
            "Unable to connect to the server. "
            "Please check your internet connection and try again."
        )

    if isinstance(error, ValidationError):
        return error.message

    message = str(error)
    if message:
        lowered = message.lower()
        if "fetch" in lowered or "network" in lowered:
            return "Network error. Please check your internet connection and try again."
        if "timeout" in lowered:
            return "Request timed out. Please try again."
        return f"An error occurred{suffix}. Please try again."

    return "An unexpected error occurred. Please try again."


def handle_error(
    error: Exception,
    show_user_message: bool = True,
    log_error: bool = True,
    user_message: Optional[str] = None,
) -> None:
    """
    Centralized error handling function.

    Args:
        error: The exception to handle
        show_user_message: Whether to display error to user via st.error
        log_error: Whether to log the error
        user_message: Custom message to show user (derived from error if None)
    """
    if isinstance(error, FitLogError):
        message = user_message or error.message
        code = error.code
        details = error.details
        recoverable = error.recoverable
    else:
        message = user_message or str(error)
        code = "UNKNOWN"
        details = {"traceback": traceback.format_exc()}
        recoverable = True

    if log_error:
        logger.error(
            f"[{code}] {message}",
            extra={"details": details},
            exc_info=True,
        )

    if show_user_message:
        import streamlit as st

        friendly = user_message or get_user_friendly_message(error)
        if recoverable:
            st.error(f"Error: {friendly}")
        else:
            st.error(f"Critical Error: {friendly}. Please contact support.")


def safe_execute(
    func: Callable[..., T],
    *args,
    default: Optional[T] = None,
    error_message: Optional[str] = None,
    reraise: bool = False,
    show_user_message: bool = False,
    **kwargs,
) -> Optional[T]:
    """
    Execute a function with automatic error handling.

    Usage:
        count = safe_execute(queue.count, default=0)
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        handle_error(e, show_user_message=show_user_message, user_message=error_message)
        if reraise:
            raise
        return default


class ErrorContext:
    """
    Context manager for error handling with automatic logging.

    Usage:
        with ErrorContext("Replaying offline queue", recoverable=True):
            queue.drain()
    """

    def __init__(
        self,
        operation: str,
        recoverable: bool = True,
        show_user_message: bool = False,
    ):
        self.operation = operation
        self.recoverable = recoverable
        self.show_user_message = show_user_message
        self.error: Optional[BaseException] = None

    def __enter__(self) -> ErrorContext:
        logger.info(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            self.error = exc_val
            if isinstance(exc_val, FitLogError):
                handle_error(exc_val, show_user_message=self.show_user_message)
            else:
                handle_error(
                    exc_val,
                    show_user_message=self.show_user_message,
                    user_message=f"Error during: {self.operation}",
                )

            # Suppress exception if recoverable
            return self.recoverable

        logger.info(f"Completed: {self.operation}")
        return False


def error_boundary(
    default_return: Any = None,
    log: bool = True,
):
    """
    Decorator to wrap functions with error handling.

    Usage:
        @error_boundary(default_return=0)
        def pending_count() -> int:
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., Optional[T]]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Optional[T]:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if log:
                    logger.error(
                        f"Error in {func.__name__}: {e}",
                        exc_info=True,
                    )
                return default_return

        return wrapper

    return decorator
