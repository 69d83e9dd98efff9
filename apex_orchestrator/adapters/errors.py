"""
Error mapping utilities for capability adapters.

Converts httpx and backend failures into the capability error taxonomy
so the dispatcher can decide on retries by category alone.
"""

from typing import Any, Dict, Optional

import httpx

from ..orchestration.errors import (
    CapabilityError,
    TransientCapabilityError,
    ValidationError,
)
from ..reliability.error_classifier import ErrorCategory, ErrorClassifier


class ErrorMapper:
    """Maps backend errors to ``CapabilityError`` subclasses."""

    @staticmethod
    def get_retry_after(error: BaseException) -> Optional[float]:
        """
        Extract retry-after value from error if available.

        Args:
            error: The exception to check

        Returns:
            Seconds to wait before retry, or None
        """
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

    @staticmethod
    def map_error(error: BaseException, capability: str) -> CapabilityError:
        """
        Map any adapter-side exception to a CapabilityError.

        Transient categories become ``TransientCapabilityError``;
        validation-type categories become ``ValidationError``; everything
        else is a plain, non-retryable ``CapabilityError``.
        """
        if isinstance(error, CapabilityError):
            if error.capability is None:
                error.capability = capability
            return error

        classification = ErrorClassifier.classify_error(error)
        status_code = None
        if isinstance(error, httpx.HTTPStatusError):
            status_code = error.response.status_code

        message = f"{capability} error: {classification.user_message or error}"
        kwargs: Dict[str, Any] = {
            "capability": capability,
            "status_code": status_code,
            "original_error": error,
            "retry_after": classification.suggested_delay or ErrorMapper.get_retry_after(error),
        }

        if classification.is_retryable:
            return TransientCapabilityError(message, category=classification.category, **kwargs)
        if classification.category in (ErrorCategory.VALIDATION, ErrorCategory.NOT_FOUND):
            return ValidationError(message, **kwargs)

        mapped = CapabilityError(message, **kwargs)
        mapped.category = classification.category
        return mapped

    @staticmethod
    def get_error_classification(error: CapabilityError) -> Dict[str, Any]:
        """Error details for logging."""
        return {
            'capability': error.capability,
            'status_code': error.status_code,
            'is_retryable': error.is_retryable,
            'retry_after': error.retry_after,
            'error_type': type(error.original_error).__name__ if error.original_error else None,
            'category': error.category.value,
        }
