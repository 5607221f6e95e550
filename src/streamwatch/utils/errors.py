"""
Error handling framework for streamwatch.

This module provides:
- Hierarchical exception classes
- Error context preservation
- Structured error output for logging
- Fixed-delay retry used for adapter calls
"""

from typing import Optional, Dict, Any, Callable, Awaitable, Tuple, Type, TypeVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import asyncio

from .logging import get_logger


logger = get_logger("streamwatch.errors")
T = TypeVar('T')


class ErrorSeverity(Enum):
    """Error severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""
    CONFIGURATION = "configuration"
    NETWORK = "network"
    EXTERNAL_SERVICE = "external_service"
    STATE = "state"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Context information for an error."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    component: Optional[str] = None
    operation: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class StreamwatchError(Exception):
    """Base exception for all streamwatch errors."""

    code: str = "STREAMWATCH_ERROR"
    default_message: str = "An error occurred in streamwatch"
    severity: ErrorSeverity = ErrorSeverity.ERROR
    category: ErrorCategory = ErrorCategory.UNKNOWN
    is_retryable: bool = False

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message or self.default_message
        self.context = context or ErrorContext()
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "is_retryable": self.is_retryable,
            "cause": repr(self.cause) if self.cause else None,
            "context": {
                "timestamp": self.context.timestamp.isoformat(),
                "component": self.context.component,
                "operation": self.context.operation,
                "metadata": self.context.metadata,
            },
        }


class ConfigurationError(StreamwatchError):
    """Configuration errors."""
    code = "CONFIG_ERROR"
    default_message = "Configuration error"
    category = ErrorCategory.CONFIGURATION


# Persistence adapter errors

class AdapterError(StreamwatchError):
    """A message channel call failed for a reason other than a missing message."""
    code = "ADAPTER_ERROR"
    default_message = "Message channel request failed"
    category = ErrorCategory.EXTERNAL_SERVICE
    severity = ErrorSeverity.WARNING
    is_retryable = True

    def __init__(self, message: Optional[str] = None, status: Optional[int] = None, **kwargs):
        self.status = status
        super().__init__(message, **kwargs)


class NotFoundError(AdapterError):
    """The addressed message or channel does not exist."""
    code = "NOT_FOUND"
    default_message = "Message not found"
    is_retryable = False


# Reconciliation state errors

class ReloadRequired(StreamwatchError):
    """In-memory state can no longer be trusted; reload it from the channel."""
    code = "RELOAD_REQUIRED"
    default_message = "Agent state must be reloaded"
    category = ErrorCategory.STATE


class StaleHandleError(ReloadRequired):
    """An edit targeted a message the agent believed to exist."""
    code = "STALE_HANDLE"
    default_message = "Edited message no longer exists"


class AmbiguousCreateError(ReloadRequired):
    """A create failed and it is unknown whether the message was posted."""
    code = "AMBIGUOUS_CREATE"
    default_message = "Message creation outcome unknown"


class MalformedMessageError(StreamwatchError):
    """A managed message could not be decoded back into a stream."""
    code = "MALFORMED_MESSAGE"
    default_message = "Managed message is malformed"
    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.CRITICAL

    def __init__(self, message: Optional[str] = None, message_id: Optional[str] = None, **kwargs):
        self.message_id = message_id
        super().__init__(message, **kwargs)


class TwitchError(StreamwatchError):
    """Fetching live streams failed."""
    code = "TWITCH_ERROR"
    default_message = "Twitch request failed"
    category = ErrorCategory.EXTERNAL_SERVICE
    is_retryable = True

    def __init__(self, message: Optional[str] = None, status: Optional[int] = None, **kwargs):
        self.status = status
        super().__init__(message, **kwargs)


class ErrorRecovery:
    """Error recovery strategies."""

    @staticmethod
    async def retry_fixed(
        func: Callable[[], Awaitable[T]],
        delay: float,
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
        give_up_on: Tuple[Type[BaseException], ...] = (),
        operation: str = "operation",
    ) -> T:
        """
        Retry forever with a constant delay between attempts.

        There is no backoff growth and no attempt cap. Exceptions in
        ``give_up_on`` are raised immediately even if they also match
        ``retry_on``.

        Args:
            func: Coroutine factory to call
            delay: Seconds to wait after a failed attempt
            retry_on: Exceptions to retry on
            give_up_on: Exceptions that abort the retry loop
            operation: Name used in log output
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await func()
            except give_up_on:
                raise
            except retry_on as e:
                logger.warning(
                    "retrying_after_error",
                    operation=operation,
                    attempt=attempt,
                    delay=delay,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await asyncio.sleep(delay)


__all__ = [
    'StreamwatchError',
    'ErrorContext',
    'ErrorSeverity',
    'ErrorCategory',
    'ConfigurationError',
    'AdapterError',
    'NotFoundError',
    'ReloadRequired',
    'StaleHandleError',
    'AmbiguousCreateError',
    'MalformedMessageError',
    'TwitchError',
    'ErrorRecovery',
]
