# ============================================================================
# GENERATION GATEWAY
# ============================================================================
# STATUS: Service - Model tier selection, retry and Pro -> Flash fallback
# PURPOSE: Turn one generation request into an image or one typed failure
# EXPORTS: ModelTierPolicy, GenerationGateway, compute_backoff
# DEPENDENCIES: infrastructure.gemini_client, core.errors, config
# ============================================================================
"""
Generation Gateway.

Tier policy (view class -> primary, fallback, retry budget):

    hero   (front, back)            -> Pro,   Flash, budget
    detail (side, top, bottom)      -> Flash, none,  budget

Within a tier, transient errors (5xx, 429, timeouts, network) are retried up
to the budget with exponential backoff. Deterministic failures (policy
block, invalid request, text-only answer) end the tier immediately.

When fallback is enabled and the primary tier fails, the fallback tier runs
once with its own budget. Fallback only ever goes Pro -> Flash. An invalid
request is not sent to the fallback tier since the same request would fail
there too.

The gateway performs no credit or storage side effects.
"""

import random
import time
from typing import Callable, Dict, Optional, Tuple

from util_logger import LoggerFactory, ComponentType
from config import GenerationConfig, get_config
from core.errors import ErrorCode, classify_generation_error, is_retryable
from core.models.enums import ViewClass, ViewType
from core.models.generation import GeneratedImage, GenerationRequest, ImagePayload, TierPlan
from exceptions import (
    BusinessLogicError,
    ContractViolationError,
    GenerationRejected,
    GenerationTransientFailure,
)

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "GenerationGateway")

# Failures that would repeat identically on any model
_NO_FALLBACK_CODES = {ErrorCode.INVALID_GENERATION_REQUEST}


def compute_backoff(
    attempt: int,
    initial: float,
    maximum: float,
    jitter: float,
    rng: Optional[random.Random] = None
) -> float:
    """
    Delay before retry number ``attempt`` (1-based).

    min(initial * 2^(attempt-1), maximum) + uniform(0, jitter)
    """
    base = min(initial * (2 ** (attempt - 1)), maximum)
    if jitter <= 0:
        return base
    return base + (rng or random).uniform(0, jitter)


class ModelTierPolicy:
    """
    View class -> TierPlan lookup table.

    Built from GenerationConfig so model names and budget follow the environment.
    """

    def __init__(self, plans: Dict[ViewClass, TierPlan]):
        missing = set(ViewClass) - set(plans)
        if missing:
            raise ContractViolationError(f"Tier policy missing view classes: {sorted(m.value for m in missing)}")
        self._plans = dict(plans)

    @classmethod
    def from_config(cls, config: GenerationConfig) -> 'ModelTierPolicy':
        return cls({
            ViewClass.HERO: TierPlan(
                primary_model=config.pro_model,
                fallback_model=config.flash_model,
                retry_budget=config.retry_budget,
            ),
            ViewClass.DETAIL: TierPlan(
                primary_model=config.flash_model,
                fallback_model=None,
                retry_budget=config.retry_budget,
            ),
        })

    def plan_for(self, view_type: ViewType) -> TierPlan:
        return self._plans[view_type.view_class]


class GenerationGateway:
    """
    Generation with tier policy, retry and fallback.

    Usage:
        gateway = GenerationGateway()
        result = gateway.generate(GenerationRequest(
            prompt=prompt, reference_image=url, view_type=ViewType.FRONT
        ))
        result.model_used, result.fallback_used
    """

    def __init__(
        self,
        client=None,
        loader=None,
        config: Optional[GenerationConfig] = None,
        policy: Optional[ModelTierPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None
    ):
        self.config = config or get_config().generation
        if client is None or loader is None:
            from infrastructure.factory import RepositoryFactory
            client = client or RepositoryFactory.create_gemini_client()
            loader = loader or RepositoryFactory.create_reference_loader()
        self.client = client
        self.loader = loader
        self.policy = policy or ModelTierPolicy.from_config(self.config)
        self._sleep = sleep
        self._rng = rng or random.Random()

    def resolve_plan(self, request: GenerationRequest) -> TierPlan:
        """
        Effective plan for a request after caller overrides.

        An explicit model replaces the primary; the fallback is kept only when
        it differs from the chosen primary.
        """
        plan = self.policy.plan_for(request.view_type)
        primary = request.model or plan.primary_model
        fallback_enabled = self.config.fallback_enabled if request.fallback_enabled is None else request.fallback_enabled
        fallback = plan.fallback_model if fallback_enabled and plan.fallback_model != primary else None
        return TierPlan(
            primary_model=primary,
            fallback_model=fallback,
            retry_budget=request.retry_budget or plan.retry_budget,
        )

    def generate(self, request: GenerationRequest) -> GeneratedImage:
        """
        Generate one image for one view.

        Raises:
            ContextResolutionError: Reference or logo image could not be loaded
            GenerationRejected: Terminal deterministic failure
            GenerationTransientFailure: Budget and fallback exhausted
        """
        plan = self.resolve_plan(request)
        reference = self.loader.load(request.reference_image)
        logo = self.loader.load(request.logo_image) if request.logo_image else None

        logger.info(
            f"🎨 Generating {request.view_type.value} view: primary={plan.primary_model} "
            f"fallback={plan.fallback_model or 'none'} budget={plan.retry_budget}"
        )

        image, attempts, error = self._run_tier(plan.primary_model, plan.retry_budget, request.prompt, reference, logo)
        if image is not None:
            return GeneratedImage(image=image, model_used=plan.primary_model, fallback_used=False, attempts=attempts)

        code, cause = error
        if plan.fallback_model and code not in _NO_FALLBACK_CODES:
            logger.warning(
                f"⚠️ {plan.primary_model} failed ({code.value}); falling back to {plan.fallback_model}",
                extra={'custom_dimensions': {'error_code': code.value, 'fallback_model': plan.fallback_model}}
            )
            image, fallback_attempts, error = self._run_tier(
                plan.fallback_model, plan.retry_budget, request.prompt, reference, logo
            )
            attempts += fallback_attempts
            if image is not None:
                return GeneratedImage(image=image, model_used=plan.fallback_model, fallback_used=True, attempts=attempts)
            code, cause = error

        raise self._terminal_error(code, cause, attempts)

    def _run_tier(
        self,
        model: str,
        budget: int,
        prompt: str,
        reference: ImagePayload,
        logo: Optional[ImagePayload]
    ) -> Tuple[Optional[ImagePayload], int, Optional[Tuple[ErrorCode, Exception]]]:
        """
        Up to ``budget`` attempts against one model.

        Returns (image, attempts, None) on success or (None, attempts, (code, exc)).
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                image = self.client.generate(model, prompt, reference, logo)
                if attempt > 1:
                    logger.info(f"✅ {model} succeeded on attempt {attempt}/{budget}")
                return image, attempt, None
            except ContractViolationError:
                raise
            except Exception as e:
                code = self._error_code(e)
                if not is_retryable(code):
                    logger.warning(f"🚫 {model} rejected request ({code.value}): {e}")
                    return None, attempt, (code, e)
                if attempt >= budget:
                    logger.warning(f"⚠️ {model} failed after {attempt} attempts ({code.value}): {e}")
                    return None, attempt, (code, e)

                delay = compute_backoff(
                    attempt,
                    self.config.initial_backoff_seconds,
                    self.config.max_backoff_seconds,
                    self.config.jitter_seconds,
                    self._rng,
                )
                logger.debug(f"⏳ {model} attempt {attempt}/{budget} failed ({code.value}); retrying in {delay:.2f}s")
                self._sleep(delay)

    @staticmethod
    def _error_code(exc: Exception) -> ErrorCode:
        if isinstance(exc, BusinessLogicError):
            return exc.error_code
        return classify_generation_error(exc)

    @staticmethod
    def _terminal_error(code: ErrorCode, cause: Exception, attempts: int) -> BusinessLogicError:
        message = f"Image generation failed: {cause}"
        if not is_retryable(code):
            error = GenerationRejected(message, error_code=code, attempts=attempts)
        else:
            error = GenerationTransientFailure(message, error_code=code, attempts=attempts)
        error.__cause__ = cause
        return error


__all__ = ['ModelTierPolicy', 'GenerationGateway', 'compute_backoff']
