"""
Root conftest.py - sys.path, env vars, shared fixtures.

Sets up the test environment so all production code can be imported
without database connections, Azure credentials or a Gemini key.
"""

import os
import sys

import pytest

# Add project root to sys.path so 'core', 'services', 'config', etc. are importable
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


@pytest.fixture(autouse=True, scope="session")
def set_minimal_env_vars():
    """
    Set minimal environment variables to prevent import crashes.

    DatabaseConfig requires POSTGIS_HOST and POSTGIS_DATABASE. We provide
    safe defaults so get_config() succeeds without Azure infrastructure.
    """
    defaults = {
        "POSTGIS_HOST": "localhost",
        "POSTGIS_DATABASE": "testdb",
        "POSTGIS_USER": "tester",
        "APP_SCHEMA": "app",
        "STORAGE_ACCOUNT_NAME": "teststorage",
        "GEMINI_API_KEY": "test-key",
        "ENVIRONMENT": "dev",
    }
    for key, value in defaults.items():
        os.environ.setdefault(key, value)


@pytest.fixture(autouse=True)
def fresh_config():
    """Drop the cached config singleton around every test."""
    from config import reset_config

    reset_config()
    yield
    reset_config()


@pytest.fixture
def app_config():
    """AppConfig with zero backoff so retry tests never wait."""
    from config import AppConfig, DatabaseConfig, GenerationConfig, StorageConfig

    return AppConfig(
        database=DatabaseConfig(host="localhost", database="testdb", user="tester"),
        storage=StorageConfig(account_name="teststorage"),
        generation=GenerationConfig(
            api_key="test-key",
            pro_model="pro-model",
            flash_model="flash-model",
            retry_budget=3,
            initial_backoff_seconds=0.0,
            max_backoff_seconds=0.0,
            jitter_seconds=0.0,
        ),
    )
