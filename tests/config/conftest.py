"""
Config test fixtures - clean environment via monkeypatch.
"""

import pytest


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all env vars that config modules might read, for isolation."""
    env_vars_to_clear = [
        "POSTGIS_HOST", "POSTGIS_PORT", "POSTGIS_DATABASE", "POSTGIS_USER", "POSTGIS_PASSWORD",
        "APP_SCHEMA", "USE_MANAGED_IDENTITY", "DB_CONNECTION_TIMEOUT",
        "STORAGE_ACCOUNT_NAME", "STORAGE_CONNECTION_STRING", "UPLOADS_CONTAINER",
        "UPLOAD_PATH_PREFIX", "UPLOAD_PRESET",
        "GEMINI_API_KEY", "GEMINI_PRO_MODEL", "GEMINI_FLASH_MODEL",
        "GENERATION_RETRY_BUDGET", "GENERATION_FALLBACK_ENABLED",
        "GENERATION_INITIAL_BACKOFF_SECONDS", "GENERATION_MAX_BACKOFF_SECONDS",
        "GENERATION_JITTER_SECONDS",
        "ENVIRONMENT", "DEBUG_MODE", "SINGLE_VIEW_CREDIT_COST", "REVISION_LOCK_ENABLED",
        "AI_OPERATION_LOGGING", "REVISION_HISTORY_LIMIT",
    ]
    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("POSTGIS_HOST", "db.test")
    monkeypatch.setenv("POSTGIS_DATABASE", "products")
    return monkeypatch
