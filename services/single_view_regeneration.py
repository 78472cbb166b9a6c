# ============================================================================
# SINGLE-VIEW REGENERATION SERVICE
# ============================================================================
# STATUS: Service - Top-level regeneration coordinator
# PURPOSE: Reserve credit, generate one view, commit a new revision batch
# EXPORTS: SingleViewRegenerationService, RegenerationAttempt
# DEPENDENCIES: services.credit_ledger, services.generation_gateway,
#               services.view_upload, infrastructure repositories
# ============================================================================
"""
Single-View Regeneration Service.

State machine (one attempt, linear, one compensation edge):

    START -> RESERVE_CREDIT -> RESOLVE_CONTEXT -> COMPOSE_PROMPT
          -> GENERATE -> UPLOAD -> COMMIT_REVISION -> DONE

    RESOLVE_CONTEXT..COMMIT_REVISION failure -> REFUND_CREDIT -> FAILED
    RESERVE_CREDIT failure                   -> FAILED

Every step after the reservation runs inside CreditLedger.reservation_guard(),
so the refund happens exactly once no matter which step fails. The service
never raises business failures to its caller; each one becomes a
RegenerationResult with success=False and an error code.

The service never retries end to end. Retries live inside the generation
gateway; the editor retries a failed attempt as a brand-new request.
"""

import time
import uuid
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from util_logger import LoggerFactory, ComponentType
from config import AppConfig, get_config
from core.errors import ErrorCode
from core.logic.logo import logo_for_generation
from core.logic.prompts import compose_edit_prompt
from core.logic.transitions import can_regeneration_transition, is_refundable_state
from core.models.enums import RegenerationState
from core.models.generation import GeneratedImage, GenerationRequest
from core.models.revision import CommitRequest, CommitResult
from core.models.results import AIOperationLog, RegenerationRequest, RegenerationResult
from exceptions import (
    BusinessLogicError,
    ContextResolutionError,
    ContractViolationError,
    InsufficientCredit,
    ValidationError,
)
from .credit_ledger import CreditLedger, ReservationGuard
from .generation_gateway import GenerationGateway
from .view_upload import ViewImageUploader

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "SingleViewRegeneration")


class RegenerationAttempt:
    """
    Mutable record of one attempt's progress.

    advance() only follows edges the regeneration state machine allows.
    """

    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        self.state = RegenerationState.START
        self.started = time.monotonic()
        self.guard: Optional[ReservationGuard] = None
        self.generated: Optional[GeneratedImage] = None
        self.commit: Optional[CommitResult] = None
        self.prompt: Optional[str] = None
        self.logo_source: Optional[str] = None

    def advance(self, target: RegenerationState) -> None:
        if not can_regeneration_transition(self.state, target):
            raise ContractViolationError(
                f"Invalid regeneration transition {self.state.value} -> {target.value}"
            )
        self.state = target

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)


class SingleViewRegenerationService:
    """
    Coordinator for regenerateSingleView.

    Usage:
        service = SingleViewRegenerationService()
        result = service.regenerate_single_view(user_id, RegenerationRequest(
            product_id=pid, view_type=ViewType.SIDE,
            revision_id=batch_id, edit_prompt="make it gold",
        ))
        result.to_response()
    """

    def __init__(
        self,
        ledger: Optional[CreditLedger] = None,
        gateway: Optional[GenerationGateway] = None,
        uploader: Optional[ViewImageUploader] = None,
        revision_repo=None,
        product_repo=None,
        ai_log_repo=None,
        config: Optional[AppConfig] = None
    ):
        self.config = config or get_config()
        if revision_repo is None or product_repo is None:
            from infrastructure.factory import RepositoryFactory
            repos = RepositoryFactory.create_repositories()
            revision_repo = revision_repo or repos['revision_repo']
            product_repo = product_repo or repos['product_repo']
            ai_log_repo = ai_log_repo or repos['ai_log_repo']
        self.revision_repo = revision_repo
        self.product_repo = product_repo
        self.ai_log_repo = ai_log_repo
        self.ledger = ledger or CreditLedger()
        self.gateway = gateway or GenerationGateway()
        self.uploader = uploader or ViewImageUploader()

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def regenerate_single_view(
        self,
        user_id: str,
        request: Union[RegenerationRequest, Dict[str, Any]],
        request_id: Optional[str] = None
    ) -> RegenerationResult:
        """
        Regenerate one view of a product and commit the next revision batch.

        Args:
            user_id: Authenticated user
            request: RegenerationRequest or its dict form
            request_id: Correlation id for logs

        Returns:
            RegenerationResult; failures are returned, not raised
        """
        attempt = RegenerationAttempt(operation_id=request_id or str(uuid.uuid4()))

        try:
            request = self._validate(user_id, request)
        except ValidationError as e:
            attempt.advance(RegenerationState.FAILED)
            logger.warning(f"⚠️ Rejected regeneration request: {e.message}")
            return self._failure(attempt, e)

        log = LoggerFactory.create_with_context(
            ComponentType.SERVICE,
            "SingleViewRegeneration",
            request_id=attempt.operation_id,
            user_id=user_id,
            product_id=request.product_id,
            view_type=request.view_type.value,
        )
        log.info(f"🔄 Regenerating {request.view_type.value} view of {request.product_id} from {request.revision_id}")

        try:
            attempt.advance(RegenerationState.RESERVE_CREDIT)
            with self.ledger.reservation_guard(user_id, self.config.single_view_credit_cost) as guard:
                attempt.guard = guard
                self._run_steps(attempt, user_id, request, log)
            attempt.advance(RegenerationState.DONE)

        except InsufficientCredit as e:
            attempt.advance(RegenerationState.FAILED)
            log.warning(f"💳 Insufficient credit for user {user_id}")
            result = self._failure(attempt, e)

        except BusinessLogicError as e:
            self._fail(attempt)
            self._log_failure(log, attempt, e)
            result = self._failure(attempt, e)

        except ContractViolationError:
            raise

        except Exception as e:
            self._fail(attempt)
            log.error(
                f"❌ Unexpected error during {attempt.state.value}: {type(e).__name__}: {e}",
                exc_info=True
            )
            result = self._failure(attempt, e)

        else:
            result = self._success(attempt)
            log.info(
                f"✅ Revision {result.new_revision_number} ({result.new_batch_id}) committed "
                f"using {result.model_used} in {attempt.elapsed_ms}ms"
            )

        self._record_operation(attempt, user_id, request, result)
        return result

    # =========================================================================
    # PIPELINE STEPS
    # =========================================================================

    def _run_steps(self, attempt: RegenerationAttempt, user_id: str, request: RegenerationRequest, log) -> None:
        view = request.view_type

        attempt.advance(RegenerationState.RESOLVE_CONTEXT)
        context = self.product_repo.get_product_context(request.product_id, user_id)
        parent = self.revision_repo.get_revision_batch(request.product_id, request.revision_id)
        if view not in parent.views:
            raise ContextResolutionError(
                f"View {view.value} not found in revision {parent.revision_number}",
                error_code=ErrorCode.VIEW_NOT_IN_REVISION
            )
        reference_url = request.reference_views.get(view) or parent.views[view].image_url
        logo = logo_for_generation(context.logo_candidates, request.edit_prompt)
        attempt.logo_source = logo.source.value if logo else None
        log.debug(
            f"Parent batch {parent.batch_id} (revision {parent.revision_number}), "
            f"logo={attempt.logo_source or 'withheld'}"
        )

        attempt.advance(RegenerationState.COMPOSE_PROMPT)
        attempt.prompt = compose_edit_prompt(view, request.edit_prompt, logo)

        attempt.advance(RegenerationState.GENERATE)
        attempt.generated = self.gateway.generate(GenerationRequest(
            prompt=attempt.prompt,
            reference_image=reference_url,
            logo_image=logo.url if logo else None,
            view_type=view,
        ))

        attempt.advance(RegenerationState.UPLOAD)
        uploaded = self.uploader.upload(request.product_id, attempt.generated.image)

        attempt.advance(RegenerationState.COMMIT_REVISION)
        try:
            attempt.commit = self.revision_repo.commit_revision(CommitRequest(
                product_id=request.product_id,
                user_id=user_id,
                target_view=view,
                new_image_url=uploaded.url,
                edit_prompt=attempt.prompt,
                user_edit_instructions=request.edit_prompt,
                model_used=attempt.generated.model_used,
                parent_revision_id=parent.batch_id,
            ))
        except Exception:
            self.uploader.discard(uploaded)
            raise

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _validate(user_id: str, request: Union[RegenerationRequest, Dict[str, Any]]) -> RegenerationRequest:
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError("Authenticated user is required", error_code=ErrorCode.UNAUTHENTICATED)
        if isinstance(request, RegenerationRequest):
            return request
        try:
            return RegenerationRequest.model_validate(request or {})
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(p) for p in first.get('loc', ())) or "request"
            code = ErrorCode.INVALID_VIEW_TYPE if field == "view_type" else ErrorCode.VALIDATION_ERROR
            raise ValidationError(f"Invalid {field}: {first.get('msg')}", error_code=code) from e

    @staticmethod
    def _fail(attempt: RegenerationAttempt) -> None:
        if is_refundable_state(attempt.state):
            attempt.advance(RegenerationState.REFUND_CREDIT)
        attempt.advance(RegenerationState.FAILED)

    @staticmethod
    def _log_failure(log, attempt: RegenerationAttempt, error: BusinessLogicError) -> None:
        message = f"❌ Regeneration failed ({error.error_code.value}): {error.message or error}"
        dims = {'error_code': error.error_code.value, 'operation_id': attempt.operation_id}
        if error.operator_alert:
            dims['operator_alert'] = True
        log.error(message, extra={'custom_dimensions': dims})

    def _success(self, attempt: RegenerationAttempt) -> RegenerationResult:
        commit = attempt.commit
        target = next(r for r in commit.records if r.id == commit.target_record_id)
        return RegenerationResult(
            success=True,
            new_view_url=target.image_url,
            new_revision_id=commit.target_record_id,
            new_revision_number=commit.revision_number,
            new_batch_id=commit.batch_id,
            credits_used=attempt.guard.amount,
            model_used=attempt.generated.model_used,
            state_reached=attempt.state,
        )

    @staticmethod
    def _failure(attempt: RegenerationAttempt, error: Exception) -> RegenerationResult:
        if isinstance(error, BusinessLogicError):
            code = error.error_code
            message = error.message or str(error)
            alert = error.operator_alert
        else:
            code = ErrorCode.UNEXPECTED_ERROR
            message = "Unexpected error during regeneration"
            alert = False

        # A refund that could not be applied leaves the debit in place
        credits_used = 0
        if attempt.guard is not None and attempt.guard.refund_error is not None:
            credits_used = attempt.guard.amount
            alert = True

        return RegenerationResult(
            success=False,
            error=message,
            error_code=code,
            credits_used=credits_used,
            state_reached=attempt.state,
            operator_alert=alert,
        )

    def _record_operation(
        self,
        attempt: RegenerationAttempt,
        user_id: str,
        request: Union[RegenerationRequest, Dict[str, Any]],
        result: RegenerationResult
    ) -> None:
        """Write the AI operation log row. Failures here never change the result."""
        if not self.config.ai_operation_logging or self.ai_log_repo is None:
            return
        if not isinstance(request, RegenerationRequest) or attempt.guard is None:
            return

        generated = attempt.generated
        entry = AIOperationLog(
            operation_id=attempt.operation_id,
            model=generated.model_used if generated else None,
            status="success" if result.success else "failed",
            duration_ms=attempt.elapsed_ms,
            retry_count=(generated.attempts - 1) if generated else 0,
            fallback_used=generated.fallback_used if generated else False,
            user_id=user_id,
            product_id=request.product_id,
            input={
                'view_type': request.view_type.value,
                'revision_id': request.revision_id,
                'edit_prompt': request.edit_prompt,
                'logo_source': attempt.logo_source,
            },
            output={
                'state_reached': result.state_reached.value,
                'new_batch_id': result.new_batch_id,
                'new_revision_number': result.new_revision_number,
                'new_view_url': result.new_view_url,
            },
            error=result.error,
        )
        try:
            self.ai_log_repo.create(entry)
        except (BusinessLogicError, RuntimeError) as e:
            logger.warning(f"⚠️ Could not write AI operation log {attempt.operation_id}: {e}")


__all__ = ['SingleViewRegenerationService', 'RegenerationAttempt']
