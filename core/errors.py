"""
Error Code Definitions and Classification.

Centralized error code management with retry logic and consistent
error responses across all endpoints.

Key Features:
    - Explicit error codes for all failure modes of a regeneration attempt
    - Retry classification (PERMANENT, TRANSIENT, THROTTLING)
    - Helper functions to decide retry and HTTP status
    - Classification of raw generation-service exceptions

Exports:
    ErrorCode: Standardized error codes enum
    ErrorClassification: Error category enum
    is_retryable: Helper to check if error should be retried
    get_error_classification: Classification lookup
    get_http_status_code: HTTP status for an error code
    create_error_response: Standardized error payload
    classify_generation_error: Map a generation-service exception to an ErrorCode
"""

from enum import Enum
from typing import Dict, Any


class ErrorCode(str, Enum):
    """
    Standardized error codes for all application errors.

    These codes are returned in regeneration results and API responses to
    provide explicit error classification for logging, monitoring, and retry logic.
    """

    # ========================================================================
    # VALIDATION ERRORS - CLIENT ERRORS (HTTP 400/401/404)
    # ========================================================================

    # Parameter validation errors (HTTP 400, NOT RETRYABLE)
    VALIDATION_ERROR = "VALIDATION_ERROR"  # Generic parameter validation failed
    INVALID_VIEW_TYPE = "INVALID_VIEW_TYPE"  # Not one of front/back/side/top/bottom
    UNAUTHENTICATED = "UNAUTHENTICATED"  # No user identity on the request

    # Resource not found errors (HTTP 404, NOT RETRYABLE)
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"  # Generic resource not found
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"  # Product id unknown or not owned by user
    REVISION_NOT_FOUND = "REVISION_NOT_FOUND"  # Revision id unknown for product
    VIEW_NOT_IN_REVISION = "VIEW_NOT_IN_REVISION"  # Target view absent from parent batch

    # ========================================================================
    # CREDIT ERRORS (HTTP 402)
    # ========================================================================

    INSUFFICIENT_CREDIT = "INSUFFICIENT_CREDIT"  # Balance cannot cover reservation
    REFUND_FAILED = "REFUND_FAILED"  # Compensating refund could not be applied

    # ========================================================================
    # GENERATION ERRORS (HTTP 400/422/503)
    # ========================================================================

    # Deterministic rejections (NOT RETRYABLE within a tier)
    GENERATION_REJECTED = "GENERATION_REJECTED"  # Safety / content policy block
    INVALID_GENERATION_REQUEST = "INVALID_GENERATION_REQUEST"  # Malformed prompt or image
    NO_IMAGE_RETURNED = "NO_IMAGE_RETURNED"  # Model answered with text only

    # Transient service failures (RETRYABLE)
    GENERATION_SERVICE_ERROR = "GENERATION_SERVICE_ERROR"  # 500 / INTERNAL
    GENERATION_UNAVAILABLE = "GENERATION_UNAVAILABLE"  # 503 / UNAVAILABLE / network
    GENERATION_TIMEOUT = "GENERATION_TIMEOUT"  # Deadline expired
    REFERENCE_FETCH_FAILED = "REFERENCE_FETCH_FAILED"  # Reference or logo image unreachable

    # ========================================================================
    # REVISION STORE ERRORS (HTTP 409/500)
    # ========================================================================

    NO_ACTIVE_REVISION = "NO_ACTIVE_REVISION"  # Product has no active batch
    CORRUPT_REVISION_STATE = "CORRUPT_REVISION_STATE"  # Active batch has no view rows
    PARTIAL_INSERT_FAILURE = "PARTIAL_INSERT_FAILURE"  # Inserted fewer rows than submitted
    REVISION_CONFLICT = "REVISION_CONFLICT"  # Unique (product, revision, view) violated
    REVISION_ALREADY_SEEDED = "REVISION_ALREADY_SEEDED"  # Initial revision exists

    # ========================================================================
    # INFRASTRUCTURE ERRORS (HTTP 500/503, RETRYABLE)
    # ========================================================================

    # Database errors (HTTP 500, RETRYABLE)
    DATABASE_ERROR = "DATABASE_ERROR"  # Database operation failed

    # Storage errors (HTTP 503, RETRYABLE)
    UPLOAD_FAILED = "UPLOAD_FAILED"  # Failed to upload generated view

    # Rate limiting (HTTP 503, THROTTLING)
    THROTTLED = "THROTTLED"  # 429 / RESOURCE_EXHAUSTED

    # ========================================================================
    # GENERIC ERRORS
    # ========================================================================

    UNKNOWN_ERROR = "UNKNOWN_ERROR"  # Unclassified error
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"  # Unexpected exception


class ErrorClassification(str, Enum):
    """
    Error classification for retry logic.

    Determines whether an error should trigger a retry or fail immediately.
    """

    PERMANENT = "PERMANENT"  # Never retry (client error, won't fix itself)
    TRANSIENT = "TRANSIENT"  # Retry with exponential backoff (temporary issue)
    THROTTLING = "THROTTLING"  # Retry with longer delay (rate limiting)


# Error code to classification mapping
_ERROR_CLASSIFICATION: Dict[ErrorCode, ErrorClassification] = {
    # PERMANENT - Never retry (client errors, data-integrity faults)
    ErrorCode.VALIDATION_ERROR: ErrorClassification.PERMANENT,
    ErrorCode.INVALID_VIEW_TYPE: ErrorClassification.PERMANENT,
    ErrorCode.UNAUTHENTICATED: ErrorClassification.PERMANENT,
    ErrorCode.RESOURCE_NOT_FOUND: ErrorClassification.PERMANENT,
    ErrorCode.PRODUCT_NOT_FOUND: ErrorClassification.PERMANENT,
    ErrorCode.REVISION_NOT_FOUND: ErrorClassification.PERMANENT,
    ErrorCode.VIEW_NOT_IN_REVISION: ErrorClassification.PERMANENT,
    ErrorCode.INSUFFICIENT_CREDIT: ErrorClassification.PERMANENT,
    ErrorCode.GENERATION_REJECTED: ErrorClassification.PERMANENT,
    ErrorCode.INVALID_GENERATION_REQUEST: ErrorClassification.PERMANENT,
    ErrorCode.NO_IMAGE_RETURNED: ErrorClassification.PERMANENT,
    ErrorCode.NO_ACTIVE_REVISION: ErrorClassification.PERMANENT,
    ErrorCode.CORRUPT_REVISION_STATE: ErrorClassification.PERMANENT,
    ErrorCode.REVISION_ALREADY_SEEDED: ErrorClassification.PERMANENT,

    # TRANSIENT - Retry with exponential backoff (temporary issues)
    ErrorCode.GENERATION_SERVICE_ERROR: ErrorClassification.TRANSIENT,
    ErrorCode.GENERATION_UNAVAILABLE: ErrorClassification.TRANSIENT,
    ErrorCode.GENERATION_TIMEOUT: ErrorClassification.TRANSIENT,
    ErrorCode.REFERENCE_FETCH_FAILED: ErrorClassification.TRANSIENT,
    ErrorCode.PARTIAL_INSERT_FAILURE: ErrorClassification.TRANSIENT,  # Fresh attempt may succeed
    ErrorCode.REVISION_CONFLICT: ErrorClassification.TRANSIENT,  # Lost a numbering race
    ErrorCode.REFUND_FAILED: ErrorClassification.TRANSIENT,
    ErrorCode.DATABASE_ERROR: ErrorClassification.TRANSIENT,
    ErrorCode.UPLOAD_FAILED: ErrorClassification.TRANSIENT,

    # THROTTLING - Retry with longer delay (rate limiting)
    ErrorCode.THROTTLED: ErrorClassification.THROTTLING,

    # UNKNOWN - Default to transient (retry a few times)
    ErrorCode.UNKNOWN_ERROR: ErrorClassification.TRANSIENT,
    ErrorCode.UNEXPECTED_ERROR: ErrorClassification.TRANSIENT,
}


def is_retryable(error_code: ErrorCode) -> bool:
    """
    Determine if an error code should trigger a retry.

    Args:
        error_code: ErrorCode enum value

    Returns:
        True if error should be retried, False otherwise

    Example:
        >>> is_retryable(ErrorCode.GENERATION_REJECTED)
        False
        >>> is_retryable(ErrorCode.GENERATION_UNAVAILABLE)
        True
    """
    classification = _ERROR_CLASSIFICATION.get(error_code, ErrorClassification.TRANSIENT)
    return classification != ErrorClassification.PERMANENT


def get_error_classification(error_code: ErrorCode) -> ErrorClassification:
    """
    Get the classification for an error code.

    Example:
        >>> get_error_classification(ErrorCode.THROTTLED)
        ErrorClassification.THROTTLING
    """
    return _ERROR_CLASSIFICATION.get(error_code, ErrorClassification.TRANSIENT)


def get_http_status_code(error_code: ErrorCode) -> int:
    """
    Get the appropriate HTTP status code for an error code.

    Args:
        error_code: ErrorCode enum value

    Returns:
        HTTP status code (400, 401, 402, 404, 409, 422, 500, 503)

    Example:
        >>> get_http_status_code(ErrorCode.INSUFFICIENT_CREDIT)
        402
        >>> get_http_status_code(ErrorCode.VALIDATION_ERROR)
        400
    """
    if error_code in {
        ErrorCode.RESOURCE_NOT_FOUND,
        ErrorCode.PRODUCT_NOT_FOUND,
        ErrorCode.REVISION_NOT_FOUND,
        ErrorCode.VIEW_NOT_IN_REVISION,
    }:
        return 404

    if error_code in {
        ErrorCode.VALIDATION_ERROR,
        ErrorCode.INVALID_VIEW_TYPE,
        ErrorCode.INVALID_GENERATION_REQUEST,
    }:
        return 400

    if error_code == ErrorCode.UNAUTHENTICATED:
        return 401

    if error_code == ErrorCode.INSUFFICIENT_CREDIT:
        return 402

    if error_code in {
        ErrorCode.NO_ACTIVE_REVISION,
        ErrorCode.REVISION_CONFLICT,
        ErrorCode.REVISION_ALREADY_SEEDED,
    }:
        return 409

    if error_code in {ErrorCode.GENERATION_REJECTED, ErrorCode.NO_IMAGE_RETURNED}:
        return 422

    # Service unavailable (retryable upstream) → 503
    if error_code in {
        ErrorCode.THROTTLED,
        ErrorCode.GENERATION_UNAVAILABLE,
        ErrorCode.GENERATION_TIMEOUT,
        ErrorCode.GENERATION_SERVICE_ERROR,
    }:
        return 503

    return 500


def create_error_response(
    error_code: ErrorCode,
    message: str,
    **kwargs: Any
) -> Dict[str, Any]:
    """
    Create a standardized error response dictionary.

    Args:
        error_code: ErrorCode enum value
        message: Human-readable error message
        **kwargs: Additional fields to include in response

    Returns:
        Dict with standardized error response structure

    Example:
        >>> create_error_response(
        ...     ErrorCode.INSUFFICIENT_CREDIT,
        ...     "Not enough credits.",
        ...     error_type="InsufficientCredit",
        ...     required=1
        ... )
        {
            "success": False,
            "error": "INSUFFICIENT_CREDIT",
            "error_type": "InsufficientCredit",
            "message": "Not enough credits.",
            "retryable": False,
            "http_status": 402,
            "required": 1
        }
    """
    response = {
        "success": False,
        "error": error_code.value,
        "error_type": kwargs.pop("error_type", "ValidationError"),
        "message": message,
        "retryable": is_retryable(error_code),
        "http_status": get_http_status_code(error_code),
        **kwargs
    }

    return response


# ============================================================================
# GENERATION SERVICE CLASSIFICATION
# ============================================================================

_THROTTLE_MARKERS = ("RESOURCE_EXHAUSTED", "429", "RATE LIMIT", "QUOTA")
_UNAVAILABLE_MARKERS = ("UNAVAILABLE", "503", "SERVICE TEMPORARILY UNAVAILABLE", "CONNECTION")
_INTERNAL_MARKERS = ("INTERNAL", "500")
_TIMEOUT_MARKERS = ("DEADLINE EXPIRED", "DEADLINE_EXCEEDED", "TIMED OUT", "TIMEOUT")
_POLICY_MARKERS = ("SAFETY", "BLOCKED", "PROHIBITED", "POLICY", "BLOCKLIST")
_INVALID_MARKERS = ("INVALID_ARGUMENT", "400", "FAILED_PRECONDITION")
_NO_IMAGE_MARKERS = ("INSTEAD OF AN IMAGE", "NO IMAGE")


def classify_generation_error(exc: BaseException) -> ErrorCode:
    """
    Map an exception raised by the image generation service to an ErrorCode.

    Works on any exception shape: numeric ``code`` attributes (google-genai
    APIError), ``status`` strings (``RESOURCE_EXHAUSTED``) and finally the
    message text. Timeouts are checked first because SDK timeout messages
    frequently also mention the upstream status.

    Example:
        >>> classify_generation_error(RuntimeError("503 UNAVAILABLE"))
        <ErrorCode.GENERATION_UNAVAILABLE: 'GENERATION_UNAVAILABLE'>
    """
    code = getattr(exc, "code", None)
    status = getattr(exc, "status", None) or ""
    text = f"{type(exc).__name__} {status} {exc}".upper()

    if isinstance(exc, TimeoutError) or any(m in text for m in _TIMEOUT_MARKERS):
        return ErrorCode.GENERATION_TIMEOUT
    if code == 429 or any(m in text for m in _THROTTLE_MARKERS):
        return ErrorCode.THROTTLED
    if code == 503 or isinstance(exc, ConnectionError) or any(m in text for m in _UNAVAILABLE_MARKERS):
        return ErrorCode.GENERATION_UNAVAILABLE
    if code == 500 or any(m in text for m in _INTERNAL_MARKERS):
        return ErrorCode.GENERATION_SERVICE_ERROR
    if any(m in text for m in _POLICY_MARKERS):
        return ErrorCode.GENERATION_REJECTED
    if code == 400 or any(m in text for m in _INVALID_MARKERS):
        return ErrorCode.INVALID_GENERATION_REQUEST
    if any(m in text for m in _NO_IMAGE_MARKERS):
        return ErrorCode.NO_IMAGE_RETURNED
    return ErrorCode.UNKNOWN_ERROR
