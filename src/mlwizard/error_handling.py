"""Error taxonomy and user-facing error reporting for mlwizard."""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for better handling."""

    NETWORK = "network"
    FILE_SYSTEM = "file_system"
    VALIDATION = "validation"
    API = "api"
    AUTH = "auth"
    TIMEOUT = "timeout"
    STATE = "state"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Context information for errors."""

    function_name: str
    timestamp: float = field(default_factory=time.time)
    user_action: str = ""
    arguments: dict[str, Any] = field(default_factory=dict)


class WizardError(Exception):
    """Base exception class for mlwizard with enhanced context."""

    default_category = ErrorCategory.UNKNOWN
    default_severity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        category: ErrorCategory | None = None,
        severity: ErrorSeverity | None = None,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.severity = severity or self.default_severity
        self.context = context
        self.original_error = original_error

        # Auto-classify error if not provided
        if self.category == ErrorCategory.UNKNOWN and original_error:
            self.category = self._classify_error(original_error)

    def _classify_error(self, error: Exception) -> ErrorCategory:
        """Automatically classify error based on type and message."""
        error_str = str(error).lower()

        if isinstance(error, httpx.TimeoutException) or isinstance(
            error, TimeoutError
        ):
            return ErrorCategory.TIMEOUT
        elif isinstance(error, httpx.TransportError) or "connection" in error_str:
            return ErrorCategory.NETWORK
        elif isinstance(error, OSError) or "no such file" in error_str:
            return ErrorCategory.FILE_SYSTEM
        elif "unauthorized" in error_str or "authentication" in error_str:
            return ErrorCategory.AUTH
        elif isinstance(error, httpx.HTTPStatusError) or "http" in error_str:
            return ErrorCategory.API
        elif isinstance(error, (ValueError, TypeError)) or "invalid" in error_str:
            return ErrorCategory.VALIDATION
        else:
            return ErrorCategory.UNKNOWN

    def get_user_message(self) -> str:
        """Get user-friendly error message."""
        base_message = self.message

        if self.category == ErrorCategory.NETWORK:
            return (
                f"Network error: {base_message}\n"
                "💡 Check that the training service is reachable and try again."
            )
        elif self.category == ErrorCategory.AUTH:
            return (
                f"Authentication error: {base_message}\n"
                "💡 Set MLWIZARD_API_TOKEN or run `mlwizard config --token`."
            )
        elif self.category == ErrorCategory.API:
            return f"API error: {base_message}"
        elif self.category == ErrorCategory.TIMEOUT:
            return (
                f"Operation timed out: {base_message}\n"
                "💡 The service took too long to answer. Try again later."
            )
        elif self.category == ErrorCategory.VALIDATION:
            return f"Validation error: {base_message}"
        elif self.category == ErrorCategory.FILE_SYSTEM:
            return (
                f"File system error: {base_message}\n"
                "💡 Check that the file exists and is readable."
            )
        elif self.category == ErrorCategory.STATE:
            return f"Not allowed right now: {base_message}"
        else:
            return f"Error: {base_message}"


class ValidationError(WizardError):
    """Raised when client-side validation fails, before any request is sent."""

    default_category = ErrorCategory.VALIDATION
    default_severity = ErrorSeverity.LOW


class ApiError(WizardError):
    """Raised for non-2xx responses and malformed service payloads."""

    default_category = ErrorCategory.API

    def __init__(self, message: str, status_code: int | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        if status_code in (401, 403) and self.category == ErrorCategory.API:
            self.category = ErrorCategory.AUTH


class ExperimentInProgressError(WizardError):
    """Raised when a submission is attempted while training is in flight."""

    default_category = ErrorCategory.STATE
    default_severity = ErrorSeverity.LOW


class StageTransitionError(WizardError):
    """Raised when a dataset session would move backward through its stages."""

    default_category = ErrorCategory.STATE
    default_severity = ErrorSeverity.HIGH


class ErrorHandler:
    """Converts exceptions into logged, user-facing messages."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.error_history: list[WizardError] = []

    def handle(self, error: Exception, context: ErrorContext | None = None) -> str:
        """Log an error, record it, and return the message to show the user."""
        if isinstance(error, WizardError):
            wizard_error = error
            if context and wizard_error.context is None:
                wizard_error.context = context
        else:
            wizard_error = WizardError(
                message=str(error) or type(error).__name__,
                context=context,
                original_error=error,
            )

        self._log_error(wizard_error)
        self.error_history.append(wizard_error)
        return wizard_error.get_user_message()

    def _log_error(self, error: WizardError):
        """Log error with appropriate level."""
        log_message = f"[{error.category.value}] {error.message}"

        if error.context:
            log_message += f" (in {error.context.function_name})"

        if error.severity == ErrorSeverity.CRITICAL:
            self.logger.critical(log_message, exc_info=error.original_error)
        elif error.severity == ErrorSeverity.HIGH:
            self.logger.error(log_message, exc_info=error.original_error)
        elif error.severity == ErrorSeverity.MEDIUM:
            self.logger.warning(log_message)
        else:
            self.logger.info(log_message)

    def get_error_stats(self) -> dict[str, Any]:
        """Get error statistics."""
        if not self.error_history:
            return {"total_errors": 0}

        stats = {
            "total_errors": len(self.error_history),
            "by_category": {},
            "by_severity": {},
        }

        for error in self.error_history:
            category = error.category.value
            severity = error.severity.value

            stats["by_category"][category] = stats["by_category"].get(category, 0) + 1
            stats["by_severity"][severity] = stats["by_severity"].get(severity, 0) + 1

        return stats


# Global error handler instance
error_handler = ErrorHandler()
