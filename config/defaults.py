"""
Configuration Defaults - Single source of truth for all default values.

FAIL-FAST DESIGN:
Tenant-specific defaults use INTENTIONALLY INVALID placeholder values.
This ensures deployments fail loudly if required environment variables aren't set.

Organization:
    - AzureDefaults: MUST be overridden - uses invalid placeholders (fail-fast)
    - StorageDefaults.DEFAULT_ACCOUNT_NAME: MUST be overridden (fail-fast)
    - All other *Defaults: Safe universal defaults that work for any deployment

Required Environment Variables (will fail if not set):
    POSTGIS_HOST, POSTGIS_DATABASE - PostgreSQL location
    STORAGE_ACCOUNT_NAME - Blob storage account for generated views
    GEMINI_API_KEY - Image generation credentials

Usage:
    from config.defaults import DatabaseDefaults, GenerationDefaults

    # In Pydantic Field definitions:
    port: int = Field(default=DatabaseDefaults.PORT, ...)
"""


# =============================================================================
# AZURE RESOURCE DEFAULTS (MUST override for new tenant)
# =============================================================================

class AzureDefaults:
    """
    Defaults that MUST be overridden for a new Azure tenant deployment.

    These defaults are INTENTIONALLY INVALID to cause loud failures if not overridden.
    """

    # Managed Identity (Admin) - Override: DB_ADMIN_MANAGED_IDENTITY_NAME
    MANAGED_IDENTITY_NAME = "your-managed-identity-name"

    # Token scope for Azure Database for PostgreSQL Entra authentication
    POSTGRES_TOKEN_SCOPE = "https://ossrdbms-aad.database.windows.net/.default"


# =============================================================================
# DATABASE DEFAULTS (Safe for any deployment)
# =============================================================================

class DatabaseDefaults:
    """Database configuration defaults."""

    PORT = 5432
    APP_SCHEMA = "app"
    CONNECTION_TIMEOUT_SECONDS = 30


# =============================================================================
# STORAGE DEFAULTS
# =============================================================================

class StorageDefaults:
    """
    Blob storage defaults for generated view images.

    Uploaded images land at {UPLOADS_CONTAINER}/{UPLOAD_PATH_PREFIX}/{product_id}/{uuid}.{ext}
    """

    DEFAULT_ACCOUNT_NAME = "your-storage-account"
    UPLOADS_CONTAINER = "product-images"
    UPLOAD_PATH_PREFIX = "uploads"
    UPLOAD_PRESET = "original"
    SAS_EXPIRY_HOURS = 1


# =============================================================================
# GENERATION DEFAULTS
# =============================================================================

class GenerationDefaults:
    """
    Image generation service defaults.

    PRO_MODEL serves hero views (front, back); FLASH_MODEL serves every other
    view and is the fallback tier for Pro.
    """

    PRO_MODEL = "gemini-3-pro-image-preview"
    FLASH_MODEL = "gemini-2.5-flash-image-preview"

    RETRY_BUDGET = 5
    FALLBACK_ENABLED = True

    # Backoff: initial * 2^(attempt-1), capped, plus uniform jitter
    INITIAL_BACKOFF_SECONDS = 2.0
    MAX_BACKOFF_SECONDS = 30.0
    JITTER_SECONDS = 1.0

    TEMPERATURE = 0.1
    TIMEOUT_SECONDS = 120
    REFERENCE_FETCH_TIMEOUT_SECONDS = 30


# =============================================================================
# CREDIT DEFAULTS
# =============================================================================

class CreditDefaults:
    """Credit ledger defaults."""

    SINGLE_VIEW_COST = 1

    # Lower sort key is debited first
    PLAN_PRIORITY = {
        "subscription": 0,
        "top_up": 1,
        "one_time": 2,
    }


# =============================================================================
# APPLICATION DEFAULTS
# =============================================================================

class AppDefaults:
    """Application-wide defaults."""

    DEBUG_MODE = False
    ENVIRONMENT = "dev"
    LOG_LEVEL = "INFO"

    REVISION_LOCK_ENABLED = True
    AI_OPERATION_LOGGING = True
    REVISION_HISTORY_LIMIT = 50
