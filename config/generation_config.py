"""
Image Generation Configuration.

Model names, retry budget, backoff and timeouts for the Generation Gateway.

Exports:
    GenerationConfig: Gemini image generation configuration
"""

import os
from typing import Optional
from pydantic import BaseModel, Field, model_validator

from .defaults import GenerationDefaults


class GenerationConfig(BaseModel):
    """
    Gemini image generation configuration.

    The Pro model is the primary tier for hero views; the Flash model is the
    primary tier for every other view and the single fallback tier for Pro.
    """

    api_key: Optional[str] = Field(
        default=None,
        repr=False,
        description="Gemini API key (Environment Variable: GEMINI_API_KEY)"
    )

    pro_model: str = Field(
        default=GenerationDefaults.PRO_MODEL,
        description="Higher-capability model for front/back views"
    )

    flash_model: str = Field(
        default=GenerationDefaults.FLASH_MODEL,
        description="Fast, universally available baseline model"
    )

    retry_budget: int = Field(
        default=GenerationDefaults.RETRY_BUDGET,
        ge=1,
        le=10,
        description="Attempts per model tier for transient errors"
    )

    fallback_enabled: bool = Field(
        default=GenerationDefaults.FALLBACK_ENABLED,
        description="Allow one Pro to Flash fallback when the Pro tier fails"
    )

    initial_backoff_seconds: float = Field(
        default=GenerationDefaults.INITIAL_BACKOFF_SECONDS,
        ge=0,
        description="Delay before the second attempt; doubles each attempt"
    )

    max_backoff_seconds: float = Field(
        default=GenerationDefaults.MAX_BACKOFF_SECONDS,
        ge=0,
        description="Cap on the exponential delay"
    )

    jitter_seconds: float = Field(
        default=GenerationDefaults.JITTER_SECONDS,
        ge=0,
        description="Uniform random jitter added to each delay"
    )

    temperature: float = Field(
        default=GenerationDefaults.TEMPERATURE,
        ge=0,
        le=2,
        description="Low temperature keeps edits faithful to the reference image"
    )

    timeout_seconds: int = Field(
        default=GenerationDefaults.TIMEOUT_SECONDS,
        ge=1,
        description="Per-call timeout enforced by the HTTP client"
    )

    reference_fetch_timeout_seconds: int = Field(
        default=GenerationDefaults.REFERENCE_FETCH_TIMEOUT_SECONDS,
        ge=1,
        description="Timeout for downloading reference and logo images"
    )

    @model_validator(mode="after")
    def _backoff_cap_not_below_initial(self):
        if self.max_backoff_seconds < self.initial_backoff_seconds:
            raise ValueError("max_backoff_seconds must be >= initial_backoff_seconds")
        return self

    def debug_dict(self) -> dict:
        """Debug output with masked API key."""
        return {
            "api_key": "***MASKED***" if self.api_key else None,
            "pro_model": self.pro_model,
            "flash_model": self.flash_model,
            "retry_budget": self.retry_budget,
            "fallback_enabled": self.fallback_enabled,
            "timeout_seconds": self.timeout_seconds,
        }

    @classmethod
    def from_environment(cls):
        """Load from environment variables."""
        return cls(
            api_key=os.environ.get("GEMINI_API_KEY"),
            pro_model=os.environ.get("GEMINI_PRO_MODEL", GenerationDefaults.PRO_MODEL),
            flash_model=os.environ.get("GEMINI_FLASH_MODEL", GenerationDefaults.FLASH_MODEL),
            retry_budget=int(os.environ.get("GENERATION_RETRY_BUDGET", str(GenerationDefaults.RETRY_BUDGET))),
            fallback_enabled=os.environ.get(
                "GENERATION_FALLBACK_ENABLED", str(GenerationDefaults.FALLBACK_ENABLED)
            ).lower() == "true",
            initial_backoff_seconds=float(os.environ.get(
                "GENERATION_INITIAL_BACKOFF_SECONDS", str(GenerationDefaults.INITIAL_BACKOFF_SECONDS)
            )),
            max_backoff_seconds=float(os.environ.get(
                "GENERATION_MAX_BACKOFF_SECONDS", str(GenerationDefaults.MAX_BACKOFF_SECONDS)
            )),
            jitter_seconds=float(os.environ.get("GENERATION_JITTER_SECONDS", str(GenerationDefaults.JITTER_SECONDS))),
            temperature=float(os.environ.get("GENERATION_TEMPERATURE", str(GenerationDefaults.TEMPERATURE))),
            timeout_seconds=int(os.environ.get("GENERATION_TIMEOUT_SECONDS", str(GenerationDefaults.TIMEOUT_SECONDS))),
            reference_fetch_timeout_seconds=int(os.environ.get(
                "REFERENCE_FETCH_TIMEOUT_SECONDS", str(GenerationDefaults.REFERENCE_FETCH_TIMEOUT_SECONDS)
            )),
        )
