"""
Configuration Package - Domain-Specific Configuration Modules

This package provides application configuration using a composition-based approach.

Structure:
    config/
    ├── __init__.py              # This file - exports and singleton
    ├── app_config.py            # Main config (composes domain configs)
    ├── database_config.py       # PostgreSQL
    ├── storage_config.py        # Blob storage for generated views
    ├── generation_config.py     # Gemini models, retry, fallback
    └── defaults.py              # Default values

Usage:
    # Singleton pattern (preferred)
    from config import get_config
    config = get_config()
    model = config.generation.pro_model

    # Debug output
    from config import debug_config
    info = debug_config()  # Secrets masked
"""

from typing import Optional

from .database_config import DatabaseConfig
from .storage_config import StorageConfig
from .generation_config import GenerationConfig
from .app_config import AppConfig


# ============================================================================
# SINGLETON PATTERN
# ============================================================================

_config_instance: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get global configuration singleton.

    Returns:
        AppConfig instance loaded from environment
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = AppConfig.from_environment()
    return _config_instance


def reset_config() -> None:
    """Drop the cached instance so the next get_config() re-reads the environment."""
    global _config_instance
    _config_instance = None


def debug_config() -> dict:
    """
    Get sanitized configuration for debugging (masks sensitive values).

    Returns:
        Dictionary with configuration values, secrets masked
    """
    config = get_config()
    return {
        'database': config.database.debug_dict(),
        'storage': config.storage.debug_dict(),
        'generation': config.generation.debug_dict(),
        'debug_mode': config.debug_mode,
        'environment': config.environment,
        'log_level': config.log_level,
        'single_view_credit_cost': config.single_view_credit_cost,
        'revision_lock_enabled': config.revision_lock_enabled,
        'ai_operation_logging': config.ai_operation_logging,
    }


__all__ = [
    'AppConfig',
    'DatabaseConfig',
    'StorageConfig',
    'GenerationConfig',
    'get_config',
    'reset_config',
    'debug_config',
]
