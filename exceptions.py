"""
Custom Exception Hierarchy

Distinguishes between:
1. Contract Violations (programming bugs that need fixing)
2. Business Logic Failures (expected runtime issues)

This separation ensures bugs are found quickly while the system
remains robust to expected failures. Every BusinessLogicError carries an
ErrorCode so the orchestrator and HTTP layer can report it without
inspecting exception types.
"""

from typing import Any, Optional

from core.errors import ErrorCode


class ContractViolationError(TypeError):
    """
    Raised when component contracts are violated (programming bugs).

    These indicate:
    - Wrong types passed to functions
    - Missing required fields
    - Enum type mismatches
    - Interface contract violations

    These should NEVER be caught and handled - they indicate bugs
    that need to be fixed in the code.

    Examples:
        - Repository receives a plain string instead of a ViewType enum
        - Gateway adapter returns a dict instead of GeneratedImage
    """
    pass


class BusinessLogicError(Exception):
    """
    Base class for expected runtime business logic failures.

    These are normal failures that occur during system operation
    and should be handled gracefully without crashing.

    Subclasses set a default ``error_code``; callers may override it per
    instance. ``operator_alert`` marks data-integrity failures that imply
    a prior bug and should page someone.
    """
    error_code: ErrorCode = ErrorCode.UNEXPECTED_ERROR
    operator_alert: bool = False

    def __init__(self, message: str = "", error_code: Optional[ErrorCode] = None, **details: Any):
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.details = details


class DatabaseError(BusinessLogicError):
    """
    Database operation failures.

    Examples:
        - Connection lost
        - Deadlock detected
        - Query timeout
        - Transaction rollback
    """
    error_code = ErrorCode.DATABASE_ERROR


class ValidationError(BusinessLogicError):
    """
    Business validation failed.

    Note: This is different from ContractViolationError.
    This is for request validation, not type contracts.

    Examples:
        - Empty edit prompt
        - Unknown view type
        - Missing revision id
    """
    error_code = ErrorCode.VALIDATION_ERROR


class ExternalServiceError(BusinessLogicError):
    """
    An external collaborator (generation service, blob storage) failed.

    Examples:
        - Gemini returned 503 after the retry budget
        - Blob upload rejected
    """
    error_code = ErrorCode.UNKNOWN_ERROR


# ============================================================================
# CREDIT LEDGER
# ============================================================================

class InsufficientCredit(BusinessLogicError):
    """
    The user's balance cannot cover the reservation.

    Nothing was debited and generation was never attempted, so no refund
    is owed.
    """
    error_code = ErrorCode.INSUFFICIENT_CREDIT


class RefundFailure(BusinessLogicError):
    """
    A compensating refund could not be applied.

    Examples:
        - Database unavailable while restoring the reservation
        - Reservation already committed
    """
    error_code = ErrorCode.REFUND_FAILED
    operator_alert = True


# ============================================================================
# REGENERATION PIPELINE
# ============================================================================

class ContextResolutionError(BusinessLogicError):
    """
    Product, revision, or reference image could not be resolved.

    Examples:
        - Product id unknown or owned by another user
        - Revision id does not belong to the product
        - Reference image URL unreachable
    """
    error_code = ErrorCode.RESOURCE_NOT_FOUND


class GenerationRejected(ExternalServiceError):
    """
    Generation failed deterministically (policy block, invalid request,
    text-only answer). Not retried within a tier.
    """
    error_code = ErrorCode.GENERATION_REJECTED


class GenerationTransientFailure(ExternalServiceError):
    """
    Generation failed after the retry budget and fallback tier were exhausted.
    """
    error_code = ErrorCode.GENERATION_UNAVAILABLE


class UploadFailure(ExternalServiceError):
    """
    Generated image could not be written to object storage.
    """
    error_code = ErrorCode.UPLOAD_FAILED


# ============================================================================
# REVISION STORE
# ============================================================================

class NoActiveRevision(BusinessLogicError):
    """
    Product has no active batch; an initial revision must be seeded first.
    """
    error_code = ErrorCode.NO_ACTIVE_REVISION
    operator_alert = True


class CorruptRevisionState(BusinessLogicError):
    """
    Revision rows contradict the batch invariants.

    Examples:
        - Parent batch has zero view rows
        - Parent batch rows disagree on revision number
    """
    error_code = ErrorCode.CORRUPT_REVISION_STATE
    operator_alert = True


class PartialInsertFailure(DatabaseError):
    """
    The batch insert returned fewer rows than views submitted.

    Treated as total failure. The surrounding transaction is rolled back,
    and the condition is logged at CRITICAL.
    """
    error_code = ErrorCode.PARTIAL_INSERT_FAILURE
    operator_alert = True


class ConfigurationError(Exception):
    """
    System configuration error.

    These are typically fatal and indicate misconfiguration
    that prevents the system from operating.

    Examples:
        - Missing required environment variables
        - Invalid connection strings
        - Missing GEMINI_API_KEY
    """
    pass
