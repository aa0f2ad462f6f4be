"""
Error code definitions for the feedback media pipeline.

Adapter codes describe why a transcription attempt failed; bookkeeping codes
are written by the driver and the stale-job reclaimer themselves.
"""

from enum import Enum
from typing import Optional, Union


class ErrorCode(Enum):
    """Standardized error codes stored in feedback_media.error_code."""

    # Adapter failures (retryable until retries are exhausted)
    MISSING_CREDENTIALS = "missing_credentials"
    EMPTY_TRANSCRIPT = "empty_transcript"
    PROCESSING_ERROR = "processing_error"

    # Pipeline bookkeeping
    PROCESSING_TIMEOUT_REQUEUED = "processing_timeout_requeued"
    MAX_RETRIES_EXCEEDED = "max_retries_exceeded"


# Error categories for policy handling
ERROR_CATEGORIES = {
    'adapter': [
        ErrorCode.MISSING_CREDENTIALS,
        ErrorCode.EMPTY_TRANSCRIPT,
        ErrorCode.PROCESSING_ERROR,
    ],
    'bookkeeping': [
        ErrorCode.PROCESSING_TIMEOUT_REQUEUED,
        ErrorCode.MAX_RETRIES_EXCEEDED,
    ],
}


def get_error_category(error_code: Union[ErrorCode, str]) -> Optional[str]:
    """Get the category for an error code (enum member or stored string)."""
    if isinstance(error_code, str):
        try:
            error_code = ErrorCode(error_code)
        except ValueError:
            return None
    for category, codes in ERROR_CATEGORIES.items():
        if error_code in codes:
            return category
    return None


def is_terminal(error_code: Union[ErrorCode, str, None]) -> bool:
    """Only max_retries_exceeded is a terminal, operator-visible failure."""
    if error_code is None:
        return False
    value = error_code.value if isinstance(error_code, ErrorCode) else error_code
    return value == ErrorCode.MAX_RETRIES_EXCEEDED.value
