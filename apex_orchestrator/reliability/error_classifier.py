"""
Error classification for retry decisions.

Maps any exception raised while invoking a capability onto a small set of
categories. Only TIMEOUT, RATE_LIMIT, SERVER_ERROR and NETWORK are
transient; everything else fails the step without a retry.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Set

import httpx


class ErrorCategory(Enum):
    """Standard error categories across all capabilities."""
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    VALIDATION = "validation"
    SERVER_ERROR = "server_error"
    NETWORK = "network"
    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


TRANSIENT_CATEGORIES: Set[ErrorCategory] = {
    ErrorCategory.TIMEOUT,
    ErrorCategory.RATE_LIMIT,
    ErrorCategory.SERVER_ERROR,
    ErrorCategory.NETWORK,
}


@dataclass
class ErrorClassification:
    """Detailed error classification."""
    category: ErrorCategory
    is_retryable: bool
    suggested_delay: Optional[float] = None
    user_message: Optional[str] = None


class ErrorClassifier:
    """Classifies capability errors."""

    # Error patterns for string matching
    ERROR_PATTERNS = {
        'rate_limit': {
            'patterns': ['rate limit', 'too many requests', 'quota exceeded',
                         'throttled', 'try again later'],
            'category': ErrorCategory.RATE_LIMIT,
        },
        'validation': {
            'patterns': ['invalid request', 'bad request', 'validation error',
                         'malformed', 'missing required'],
            'category': ErrorCategory.VALIDATION,
        },
        'server_error': {
            'patterns': ['server error', 'internal error', 'service unavailable',
                         'overloaded'],
            'category': ErrorCategory.SERVER_ERROR,
        },
        'network': {
            'patterns': ['connection error', 'network error', 'connection refused',
                         'connection reset', 'dns resolution'],
            'category': ErrorCategory.NETWORK,
        },
        'timeout': {
            'patterns': ['timeout', 'timed out'],
            'category': ErrorCategory.TIMEOUT,
        },
    }

    RETRYABLE_STATUS_CODES: Set[int] = {408, 429, 500, 502, 503, 504}
    NON_RETRYABLE_STATUS_CODES: Set[int] = {400, 401, 403, 404, 405, 409, 410, 422}

    @classmethod
    def classify_error(cls, error: BaseException) -> ErrorClassification:
        """
        Classify an error.

        Args:
            error: The exception to classify

        Returns:
            ErrorClassification with category and retry flag
        """
        # Errors that already carry a category (the orchestrator taxonomy)
        category = getattr(error, 'category', None)
        if isinstance(category, ErrorCategory):
            return ErrorClassification(
                category=category,
                is_retryable=getattr(error, 'is_retryable', category in TRANSIENT_CATEGORIES),
                suggested_delay=getattr(error, 'retry_after', None),
                user_message=str(error)
            )

        if isinstance(error, asyncio.CancelledError):
            return ErrorClassification(ErrorCategory.CANCELLED, False, user_message="cancelled")

        if isinstance(error, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)):
            return ErrorClassification(ErrorCategory.TIMEOUT, True, user_message="Request timed out")

        if isinstance(error, httpx.NetworkError):
            return ErrorClassification(ErrorCategory.NETWORK, True, user_message="Network connection error")

        status_code = cls._get_status_code(error)
        if status_code is not None:
            return cls._classify_status_code(status_code, error)

        if isinstance(error, (ValueError, TypeError, KeyError)):
            return ErrorClassification(ErrorCategory.VALIDATION, False, user_message=str(error))

        return cls._classify_by_message(error)

    @classmethod
    def is_transient(cls, error: BaseException) -> bool:
        """Quick check if an error is worth retrying."""
        return cls.classify_error(error).is_retryable

    @classmethod
    def _get_status_code(cls, error: BaseException) -> Optional[int]:
        if isinstance(error, httpx.HTTPStatusError):
            return error.response.status_code
        status_code = getattr(error, 'status_code', None)
        if isinstance(status_code, int):
            return status_code
        return None

    @classmethod
    def _classify_status_code(cls, status_code: int, error: BaseException) -> ErrorClassification:
        if status_code == 429:
            return ErrorClassification(
                ErrorCategory.RATE_LIMIT, True,
                suggested_delay=cls._get_retry_after(error),
                user_message="Rate limit exceeded"
            )
        if status_code in (401, 403):
            return ErrorClassification(ErrorCategory.AUTHENTICATION, False, user_message=str(error))
        if status_code == 404:
            return ErrorClassification(ErrorCategory.NOT_FOUND, False, user_message=str(error))
        if status_code in cls.RETRYABLE_STATUS_CODES or status_code >= 500:
            return ErrorClassification(ErrorCategory.SERVER_ERROR, True, user_message=str(error))
        if status_code in cls.NON_RETRYABLE_STATUS_CODES or 400 <= status_code < 500:
            return ErrorClassification(ErrorCategory.VALIDATION, False, user_message=str(error))
        return ErrorClassification(ErrorCategory.UNKNOWN, False, user_message=str(error))

    @classmethod
    def _classify_by_message(cls, error: BaseException) -> ErrorClassification:
        error_msg = str(error).lower()
        for pattern_info in cls.ERROR_PATTERNS.values():
            if any(pattern in error_msg for pattern in pattern_info['patterns']):
                category = pattern_info['category']
                return ErrorClassification(
                    category=category,
                    is_retryable=category in TRANSIENT_CATEGORIES,
                    user_message=str(error)
                )
        return ErrorClassification(ErrorCategory.UNKNOWN, False, user_message=str(error))

    @staticmethod
    def _get_retry_after(error: BaseException) -> Optional[float]:
        """Extract a Retry-After value from an HTTP error if available."""
        response = getattr(error, 'response', None)
        headers = getattr(response, 'headers', None)
        if headers:
            retry_after = headers.get('Retry-After')
            if retry_after:
                try:
                    return float(retry_after)
                except ValueError:
                    pass
        return getattr(error, 'retry_after', None)
