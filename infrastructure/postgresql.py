# ============================================================================
# POSTGRESQL BASE REPOSITORY
# ============================================================================
# STATUS: Infrastructure - PostgreSQL connection and query execution
# PURPOSE: Connection management, managed identity auth, safe query execution
# EXPORTS: PostgreSQLRepository, advisory_lock_key
# DEPENDENCIES: psycopg, azure-identity, config, infrastructure.base
# ============================================================================
"""
PostgreSQL Repository Implementation - Direct Database Access.

Architecture:
    BaseRepository (abstract)
        ↓
    PostgreSQLRepository (this module)
        ↓
    RevisionRepository, CreditRepository, ProductRepository, AIOperationLogRepository

Key Features:
- Direct PostgreSQL access using psycopg3 with dict rows
- SQL composition for injection safety
- Azure Managed Identity (Entra token as password) with password fallback
- One connection per operation; multi-statement work shares a connection
  and commits once
"""

import hashlib
import time
import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from typing import Any, Optional, Tuple
from contextlib import contextmanager

from config import AppConfig, get_config
from config.defaults import AzureDefaults
from exceptions import DatabaseError
from util_logger import LoggerFactory, ComponentType
from .base import BaseRepository

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "PostgreSQLRepository")


def advisory_lock_key(key: str) -> int:
    """
    Stable bigint key for pg_advisory_xact_lock.

    First 15 hex digits of the MD5 keep the value inside signed 64-bit range.
    """
    return int(hashlib.md5(key.encode()).hexdigest()[:15], 16)


class PostgreSQLRepository(BaseRepository):
    """
    PostgreSQL-specific repository base class with connection management.

    Connection Management:
    ---------------------
    - Automatic connection cleanup via context managers
    - SSL/TLS encryption for managed identity connections (sslmode=require)
    - Connection string from config.database
    - Password or managed identity auth

    Thread Safety:
    -------------
    Each operation creates its own connection, so instances are safe to
    share between concurrent invocations.
    """

    def __init__(self, connection_string: Optional[str] = None,
                 schema_name: Optional[str] = None,
                 config: Optional[AppConfig] = None):
        """
        Initialize PostgreSQL repository with configuration.

        Priority for each setting: explicit parameter > provided config >
        global get_config().

        Args:
            connection_string: Explicit libpq connection string
            schema_name: Schema holding the app tables (default config.app_schema)
            config: AppConfig for dependency injection in tests
        """
        super().__init__()

        self.config = config or get_config()
        self.schema_name = schema_name or self.config.app_schema

        if connection_string:
            self.conn_string = connection_string
        else:
            self.conn_string = self._get_connection_string()

        # Non-blocking warning if missing
        self._ensure_schema_exists()

        logger.debug(f"✅ {self.__class__.__name__} initialized with schema: {self.schema_name}")

    def _get_connection_string(self) -> str:
        """
        Build PostgreSQL connection string from configuration.

        Password: host=... port=... dbname=... user=... password=...
        Managed Identity: host=... port=... dbname=... user=identity password=token sslmode=require
        """
        db = self.config.database
        if db.use_managed_identity:
            logger.info("🔐 Using Azure Managed Identity for PostgreSQL authentication")
            return self._build_managed_identity_connection_string()

        logger.debug("📋 Building connection string from config (password-based)")
        return f"{db.connection_string} connect_timeout={db.connection_timeout_seconds}"

    def _build_managed_identity_connection_string(self) -> str:
        """
        Build a connection string using an Entra access token as password.

        Tokens are valid for roughly one hour. Falls back to password auth
        when token acquisition fails and a password is configured.

        Raises:
            RuntimeError: Token acquisition failed and no password available
        """
        from azure.identity import DefaultAzureCredential
        from azure.core.exceptions import ClientAuthenticationError

        db = self.config.database
        try:
            credential = DefaultAzureCredential(
                managed_identity_client_id=db.managed_identity_client_id
            ) if db.managed_identity_client_id else DefaultAzureCredential()

            token_response = credential.get_token(AzureDefaults.POSTGRES_TOKEN_SCOPE)
            token = token_response.token
            logger.debug(
                f"✅ Token acquired (expires in ~{token_response.expires_on - time.time():.0f}s)"
            )

            identity_name = db.effective_identity_name
            base = (
                f"host={db.host} port={db.port} dbname={db.database} "
                f"user={identity_name} "
            )
            logger.debug(
                f"🔗 Managed identity connection string: {base}"
                f"password=***TOKEN({len(token)} chars)*** sslmode=require"
            )
            return (
                f"{base}password={token} sslmode=require "
                f"connect_timeout={db.connection_timeout_seconds}"
            )

        except ClientAuthenticationError as e:
            logger.error(f"❌ Failed to acquire managed identity token: {e}")
            if db.password and db.user:
                logger.warning("⚠️ Falling back to password authentication")
                return (
                    f"host={db.host} port={db.port} dbname={db.database} "
                    f"user={db.user} password={db.password} "
                    f"connect_timeout={db.connection_timeout_seconds}"
                )
            raise RuntimeError(
                "Managed identity token acquisition failed and no password available. "
                "Ensure the Function App identity is enabled and mapped to a PostgreSQL role."
            ) from e

    @contextmanager
    def _get_connection(self):
        """
        Context manager for PostgreSQL database connections.

        Autocommit is OFF: callers commit explicitly. On psycopg errors the
        transaction is rolled back and the error re-raised. The connection
        is always closed.

        Usage:
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(...)
                conn.commit()
        """
        conn = None
        try:
            conn = psycopg.connect(self.conn_string, row_factory=dict_row)
            yield conn

        except psycopg.Error as e:
            logger.error(f"❌ PostgreSQL error: {type(e).__name__}: {e}")
            if conn is not None and not conn.closed:
                conn.rollback()
            raise

        finally:
            if conn is not None:
                conn.close()

    @contextmanager
    def _connect(self, operation: str, **details: Any):
        """
        Connection for a write path whose driver errors surface as DatabaseError.

        Covers what the caller's own handlers cannot: failure to connect,
        and errors raised while closing the connection.

        Args:
            operation: Human-readable operation name for the error message
            **details: Identifiers attached to the DatabaseError

        Raises:
            DatabaseError: Any psycopg error escaping the block
        """
        try:
            with self._get_connection() as conn:
                yield conn
        except psycopg.Error as e:
            raise DatabaseError(f"{operation} failed: {e}", **details) from e

    def _ensure_schema_exists(self) -> None:
        """
        Warn if the target schema is missing.

        Does NOT create the schema; that is SchemaManager's job. Connection
        failures are logged here and surface again on the first real query.
        """
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(
                        sql.SQL("SELECT schema_name FROM information_schema.schemata WHERE schema_name = %s"),
                        (self.schema_name,)
                    )
                    if not cursor.fetchone():
                        logger.warning(
                            f"⚠️ Schema {self.schema_name} does not exist. "
                            f"It should be created by schema deployment."
                        )
        except psycopg.Error as e:
            logger.error(f"❌ Error checking schema existence: {e}")

    def _execute_query(self, query: sql.Composed, params: Optional[Tuple] = None,
                       fetch: Optional[str] = None) -> Optional[Any]:
        """
        Execute a single statement and always commit.

        Args:
            query: Statement built with psycopg.sql composition
            params: Values for %s placeholders
            fetch: None | 'one' | 'all'

        Returns:
            Fetched row(s) when fetch is set, otherwise the affected row count

        Raises:
            TypeError: Query is not sql.Composed
            ValueError: Invalid fetch mode
            RuntimeError: Any database failure (wraps the psycopg error)
        """
        if not isinstance(query, sql.Composed):
            raise TypeError(f"❌ SECURITY: Query must be sql.Composed, got {type(query)}")

        if fetch and fetch not in ('one', 'all'):
            raise ValueError(f"❌ INVALID FETCH MODE: {fetch}")

        try:
            with self._get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, params)
                    if fetch == 'one':
                        result = cursor.fetchone()
                    elif fetch == 'all':
                        result = cursor.fetchall()
                    else:
                        result = cursor.rowcount
                conn.commit()
                return result
        except psycopg.Error as e:
            logger.error(f"❌ QUERY EXECUTION FAILED: {e}")
            logger.error(f"   SQL State: {getattr(e, 'sqlstate', 'unknown')}")
            raise RuntimeError(f"Query execution failed: {e}") from e


__all__ = ['PostgreSQLRepository', 'advisory_lock_key']
