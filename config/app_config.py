"""
Main Application Configuration.

Composes domain-specific configuration modules:
    - DatabaseConfig (PostgreSQL)
    - StorageConfig (Blob storage for generated views)
    - GenerationConfig (Gemini models, retry and fallback)

Exports:
    AppConfig: Main configuration class

Dependencies:
    pydantic: BaseModel for configuration validation
    config.defaults: Default value constants

Pattern:
    Composition over inheritance - domain configs are composed, not inherited.
"""

import os
from pydantic import BaseModel, Field

from .database_config import DatabaseConfig
from .storage_config import StorageConfig
from .generation_config import GenerationConfig
from .defaults import AppDefaults, CreditDefaults


# ============================================================================
# APPLICATION CONFIGURATION
# ============================================================================

class AppConfig(BaseModel):
    """
    Application configuration - composition of domain configs.

    Each domain config manages its own validation and defaults.
    """

    # ========================================================================
    # Core Application Settings
    # ========================================================================

    debug_mode: bool = Field(
        default=AppDefaults.DEBUG_MODE,
        description="Enable debug mode for verbose diagnostics. "
                    "Features enabled: prompt text in logs, config sources in responses. "
                    "Set DEBUG_MODE=true in environment to enable.",
        examples=[True, False]
    )

    environment: str = Field(
        default=AppDefaults.ENVIRONMENT,
        description="Environment name (dev, qa, prod)",
        examples=["dev", "qa", "prod"]
    )

    log_level: str = Field(
        default=AppDefaults.LOG_LEVEL,
        description="Logging level for application diagnostics",
        examples=["DEBUG", "INFO", "WARNING", "ERROR"]
    )

    # ========================================================================
    # Regeneration Pipeline
    # ========================================================================

    single_view_credit_cost: int = Field(
        default=CreditDefaults.SINGLE_VIEW_COST,
        ge=1,
        description="Credits reserved per single-view regeneration attempt"
    )

    revision_lock_enabled: bool = Field(
        default=AppDefaults.REVISION_LOCK_ENABLED,
        description="Serialize revision commits per product with a transaction-scoped advisory lock. "
                    "When False, concurrent commits race and the last writer's batch stays active."
    )

    ai_operation_logging: bool = Field(
        default=AppDefaults.AI_OPERATION_LOGGING,
        description="Write one ai_operation_logs row per generation attempt"
    )

    revision_history_limit: int = Field(
        default=AppDefaults.REVISION_HISTORY_LIMIT,
        ge=1,
        le=500,
        description="Default number of batches returned by the revision history endpoint"
    )

    # ========================================================================
    # Domain Configs
    # ========================================================================

    database: DatabaseConfig = Field(default_factory=DatabaseConfig.from_environment)
    storage: StorageConfig = Field(default_factory=StorageConfig.from_environment)
    generation: GenerationConfig = Field(default_factory=GenerationConfig.from_environment)

    # ========================================================================
    # Legacy Compatibility Properties
    # ========================================================================

    @property
    def app_schema(self) -> str:
        return self.database.app_schema

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @classmethod
    def from_environment(cls):
        """Load all configs from environment."""
        return cls(
            debug_mode=os.environ.get("DEBUG_MODE", str(AppDefaults.DEBUG_MODE)).lower() == "true",
            environment=os.environ.get("ENVIRONMENT", AppDefaults.ENVIRONMENT),
            log_level=os.environ.get("LOG_LEVEL", AppDefaults.LOG_LEVEL),
            single_view_credit_cost=int(os.environ.get("SINGLE_VIEW_CREDIT_COST", str(CreditDefaults.SINGLE_VIEW_COST))),
            revision_lock_enabled=os.environ.get(
                "REVISION_LOCK_ENABLED", str(AppDefaults.REVISION_LOCK_ENABLED)
            ).lower() == "true",
            ai_operation_logging=os.environ.get(
                "AI_OPERATION_LOGGING", str(AppDefaults.AI_OPERATION_LOGGING)
            ).lower() == "true",
            revision_history_limit=int(os.environ.get(
                "REVISION_HISTORY_LIMIT", str(AppDefaults.REVISION_HISTORY_LIMIT)
            )),

            database=DatabaseConfig.from_environment(),
            storage=StorageConfig.from_environment(),
            generation=GenerationConfig.from_environment(),
        )
