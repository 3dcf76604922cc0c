"""
Error reporting for dep-updater.

Every failure that is caught and translated into a domain error (or swallowed
on purpose, as conflict detection does) is reported through the handler here,
so callers get structured logging, redaction of credentials and optional
callbacks in one place.
"""

import logging
import re
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse


class ErrorLevel(Enum):
    """Error severity levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorCategory(Enum):
    """Error categories for classification."""

    PARSING = "PARSING"
    NETWORK = "NETWORK"
    RESOLUTION = "RESOLUTION"
    CREDENTIAL = "CREDENTIAL"
    CONFIGURATION = "CONFIGURATION"
    FILESYSTEM = "FILESYSTEM"


SENSITIVE_PATTERNS = [
    (r'token["\s]*[:=]["\s]*([a-zA-Z0-9_\-+=/.]{8,})', 'token="[REDACTED]"'),
    (r'password["\s]*[:=]["\s]*([^\s"\']+)', 'password="[REDACTED]"'),
    (r"(https?://[^@\s/]+:)[^@\s/]+@", r"\1[REDACTED]@"),
    (r"(https?://)x-access-token:[^@\s]+@", r"\1x-access-token:[REDACTED]@"),
    (r"Authorization:\s*\w+\s+([^\s]+)", "Authorization: [REDACTED]"),
]

SENSITIVE_KEYS = {"token", "password", "secret", "credential", "auth"}


@dataclass
class ErrorContext:
    """Structured error context information."""

    level: ErrorLevel
    category: ErrorCategory
    message: str
    module: str
    function: str
    details: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[BaseException] = None
    traceback_info: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert error context to dictionary for logging."""
        return {
            "level": self.level.value,
            "category": self.category.value,
            "message": self.message,
            "module": self.module,
            "function": self.function,
            "details": self.details,
            "exception_type": type(self.exception).__name__ if self.exception else None,
            "exception_message": str(self.exception) if self.exception else None,
            "traceback": self.traceback_info,
        }


def sanitize_message(message: str) -> str:
    """Remove tokens, passwords and URL credentials from a message."""
    sanitized = message
    for pattern, replacement in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)
    return sanitized


def sanitize_url(url: str) -> str:
    """Strip userinfo from a URL so it can be logged."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return "[REDACTED_URL]"
    if not (parsed.username or parsed.password):
        return url
    netloc = parsed.hostname or "unknown-host"
    if parsed.port:
        netloc += f":{parsed.port}"
    return parsed._replace(netloc=netloc).geturl()


class SecureLogger:
    """Logger wrapper that sanitizes sensitive information."""

    def __init__(self, name: str, level: int = logging.WARNING, mask_sensitive_data: bool = True):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.mask_sensitive_data = mask_sensitive_data

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
            self.logger.addHandler(handler)

    def _sanitize_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        sanitized = {}
        for key, value in data.items():
            if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_dict(value)
            elif isinstance(value, str):
                sanitized[key] = sanitize_message(value)
            else:
                sanitized[key] = value
        return sanitized

    def log_error_context(self, context: ErrorContext) -> None:
        """Log error context with the matching level."""
        details = context.details
        message = context.message
        if self.mask_sensitive_data:
            details = self._sanitize_dict(details)
            message = sanitize_message(message)

        log_data: Dict[str, Any] = {
            "category": context.category.value,
            "module": context.module,
            "function": context.function,
            "details": details,
        }
        if context.exception:
            log_data["exception"] = type(context.exception).__name__

        log_message = f"{message} | {log_data}"
        level = getattr(logging, context.level.value)
        self.logger.log(level, log_message)


ErrorCallback = Callable[[ErrorContext], None]


class ErrorHandler:
    """
    Centralized error handler.

    Provides logging, callbacks and per-category statistics for the
    library components.
    """

    def __init__(
        self,
        logger_name: str = "dep_updater",
        log_level: int = logging.WARNING,
        enable_callbacks: bool = True,
    ):
        self.logger = SecureLogger(logger_name, log_level)
        self.enable_callbacks = enable_callbacks
        self.error_callbacks: Dict[ErrorCategory, List[ErrorCallback]] = {}
        self.global_callbacks: List[ErrorCallback] = []
        self.error_stats: Dict[str, int] = {}

    def register_callback(
        self, callback: ErrorCallback, category: Optional[ErrorCategory] = None
    ) -> None:
        """
        Register an error callback.

        Args:
            callback: Function to call on errors
            category: Error category to filter, None for all errors
        """
        if not self.enable_callbacks:
            return

        if category is None:
            self.global_callbacks.append(callback)
        else:
            self.error_callbacks.setdefault(category, []).append(callback)

    def handle_error(
        self,
        level: ErrorLevel,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        exception: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> ErrorContext:
        """
        Handle an error with structured logging and callbacks.

        Args:
            level: Error severity level
            category: Error category
            message: Error message
            module: Module where error occurred
            function: Function where error occurred
            exception: Optional exception object
            details: Additional error details

        Returns:
            ErrorContext: The created error context
        """
        context = ErrorContext(
            level=level,
            category=category,
            message=message,
            module=module,
            function=function,
            details=details or {},
            exception=exception,
            traceback_info=(
                "".join(traceback.format_exception(type(exception), exception, exception.__traceback__))
                if exception
                else None
            ),
        )

        stat_key = f"{category.value}_{level.value}"
        self.error_stats[stat_key] = self.error_stats.get(stat_key, 0) + 1

        self.logger.log_error_context(context)

        if self.enable_callbacks:
            callbacks = self.error_callbacks.get(category, []) + self.global_callbacks
            for callback in callbacks:
                try:
                    callback(context)
                except Exception as cb_error:
                    # Callback failures are logged, never raised
                    self.logger.logger.error(f"Error in callback: {cb_error}")

        return context

    def warning(
        self, category: ErrorCategory, message: str, module: str, function: str, **kwargs
    ) -> ErrorContext:
        """Handle warning level error."""
        return self.handle_error(ErrorLevel.WARNING, category, message, module, function, **kwargs)

    def error(
        self, category: ErrorCategory, message: str, module: str, function: str, **kwargs
    ) -> ErrorContext:
        """Handle error level error."""
        return self.handle_error(ErrorLevel.ERROR, category, message, module, function, **kwargs)

    def configure(self, log_level: str, mask_sensitive_data: bool = True) -> None:
        """Apply a configured log level name and the masking switch."""
        self.logger.logger.setLevel(getattr(logging, log_level.upper(), logging.WARNING))
        self.logger.mask_sensitive_data = mask_sensitive_data

    def get_error_stats(self) -> Dict[str, int]:
        """Get error statistics."""
        return self.error_stats.copy()

    def reset_stats(self) -> None:
        """Reset error statistics."""
        self.error_stats.clear()


_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance."""
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def setup_error_handling(
    log_level: int = logging.WARNING,
    enable_callbacks: bool = True,
    logger_name: str = "dep_updater",
) -> ErrorHandler:
    """Replace the global error handler with a freshly configured one."""
    global _global_error_handler
    _global_error_handler = ErrorHandler(logger_name, log_level, enable_callbacks)
    return _global_error_handler


def log_parsing_error(
    message: str,
    module: str,
    function: str,
    file_path: Optional[str] = None,
    exception: Optional[BaseException] = None,
) -> ErrorContext:
    """Convenience function for logging parsing errors."""
    details = {}
    if file_path is not None:
        details["file_path"] = file_path

    return get_error_handler().warning(
        ErrorCategory.PARSING, message, module, function,
        details=details, exception=exception,
    )


def log_network_error(
    message: str,
    module: str,
    function: str,
    url: Optional[str] = None,
    status_code: Optional[int] = None,
    exception: Optional[BaseException] = None,
) -> ErrorContext:
    """
    Convenience function for logging network errors.

    Args:
        message: Error message
        module: Module name
        function: Function name
        url: URL that failed (credentials are stripped)
        status_code: HTTP status code
        exception: Optional exception
    """
    details: Dict[str, Any] = {}
    if url is not None:
        details["url"] = sanitize_url(url)
    if status_code is not None:
        details["status_code"] = status_code

    return get_error_handler().error(
        ErrorCategory.NETWORK, message, module, function,
        details=details, exception=exception,
    )


def log_resolution_error(
    message: str,
    module: str,
    function: str,
    dependency_name: Optional[str] = None,
    command: Optional[List[str]] = None,
    exception: Optional[BaseException] = None,
) -> ErrorContext:
    """Convenience function for logging native resolver failures."""
    details: Dict[str, Any] = {}
    if dependency_name is not None:
        details["dependency"] = dependency_name
    if command:
        details["command"] = command[0]

    return get_error_handler().warning(
        ErrorCategory.RESOLUTION, message, module, function,
        details=details, exception=exception,
    )


def log_credential_error(
    message: str,
    module: str,
    function: str,
    credential_type: Optional[str] = None,
    exception: Optional[BaseException] = None,
) -> ErrorContext:
    """Convenience function for logging credential problems."""
    details = {}
    if credential_type is not None:
        details["credential_type"] = credential_type

    return get_error_handler().warning(
        ErrorCategory.CREDENTIAL, message, module, function,
        details=details, exception=exception,
    )
