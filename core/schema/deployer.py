# ============================================================================
# POSTGRESQL SCHEMA DEPLOYMENT
# ============================================================================
# STATUS: Core - Schema deployment orchestrator
# PURPOSE: Validate and initialize the app schema with its tables and indexes
# EXPORTS: SchemaManager, SchemaManagerFactory, SchemaManagementError,
#          InsufficientPrivilegesError
# DEPENDENCIES: psycopg, config, util_logger
# ============================================================================
"""
PostgreSQL Schema Deployment.

Ensures the app schema exists with the revision, credit, product and
AI log tables before the service handles traffic.

Critical Features:
    - Schema existence validation with automatic creation
    - Table validation; missing tables trigger the full idempotent DDL
    - Idempotent operations (safe to run multiple times)

Exports:
    SchemaManager: Schema deployment orchestrator
    SchemaManagerFactory: Factory for creating schema managers
    SchemaManagementError: Schema operation error
    InsufficientPrivilegesError: Permission error
"""

import psycopg
from typing import Dict, Any, List, Optional
from psycopg import sql

from util_logger import LoggerFactory, ComponentType
from config import get_config
from .ddl import TABLE_NAMES, build_app_schema_ddl

logger = LoggerFactory.create_logger(ComponentType.SCHEMA, "SchemaManager")


class SchemaManagementError(Exception):
    """Custom exception for schema management failures"""
    pass


class InsufficientPrivilegesError(SchemaManagementError):
    """Raised when user lacks privileges for schema operations"""
    pass


class SchemaManager:
    """
    PostgreSQL schema manager for the app schema.

    Responsibilities:
    1. Validate the schema exists
    2. Create it if missing (with permission checks)
    3. Validate required tables exist
    4. Run the DDL when any table is missing
    """

    def __init__(self, repository=None):
        self.config = get_config()
        self.app_schema = self.config.app_schema

        if repository is None:
            # PostgreSQLRepository is the only place with connection logic
            from infrastructure.postgresql import PostgreSQLRepository
            repository = PostgreSQLRepository()
        self.repository = repository

        logger.info(f"🏗️ SchemaManager initialized for schema: {self.app_schema}")

    def validate_and_initialize_schema(self) -> Dict[str, Any]:
        """
        Validate the schema exists and initialize it if needed.

        Returns:
            Dictionary with validation results and actions taken

        Raises:
            SchemaManagementError: If schema cannot be validated/created
            InsufficientPrivilegesError: If user lacks required permissions
        """
        logger.info(f"🔍 Starting schema validation for: {self.app_schema}")

        results = {
            'schema_name': self.app_schema,
            'schema_exists': False,
            'schema_created': False,
            'tables_exist': False,
            'tables_created': False,
            'missing_tables': [],
            'validation_successful': False,
            'actions_taken': [],
            'warnings': [],
            'errors': []
        }

        try:
            with self.repository._get_connection() as conn:
                schema_exists = self._check_schema_exists(conn)
                results['schema_exists'] = schema_exists

                if not schema_exists:
                    if self._create_schema(conn):
                        results['schema_created'] = True
                        results['actions_taken'].append(f'Created schema: {self.app_schema}')
                    else:
                        raise InsufficientPrivilegesError(
                            f"Schema '{self.app_schema}' does not exist and cannot be created. "
                            "Admin intervention required."
                        )

                missing = self._missing_tables(conn)
                results['missing_tables'] = missing

                if missing:
                    logger.warning(f"⚠️ Missing tables in schema '{self.app_schema}': {missing}")
                    executed = self._execute_ddl(conn)
                    results['tables_created'] = True
                    results['actions_taken'].append(
                        f"Executed {executed} DDL statements for missing tables: {missing}"
                    )
                else:
                    logger.info(f"✅ All required tables exist in schema: {self.app_schema}")

                results['tables_exist'] = True
                results['validation_successful'] = True

        except psycopg.OperationalError as e:
            error_msg = f"Database connection failed: {e}"
            logger.error(f"❌ {error_msg}")
            results['errors'].append(error_msg)
            raise SchemaManagementError(error_msg) from e

        except SchemaManagementError:
            raise

        except psycopg.Error as e:
            error_msg = f"Unexpected schema validation error: {e}"
            logger.error(f"❌ {error_msg}")
            results['errors'].append(error_msg)
            raise SchemaManagementError(error_msg) from e

        logger.info(f"✅ Schema validation completed for: {self.app_schema}")
        return results

    def list_missing_tables(self) -> List[str]:
        """
        Tables not yet present in the app schema (all of them when the schema is missing).

        Raises:
            SchemaManagementError: Database unreachable
        """
        try:
            with self.repository._get_connection() as conn:
                if not self._check_schema_exists(conn):
                    return list(TABLE_NAMES)
                return self._missing_tables(conn)
        except psycopg.Error as e:
            raise SchemaManagementError(f"Schema inspection failed: {e}") from e

    def _check_schema_exists(self, conn: psycopg.Connection) -> bool:
        """Check if the application schema exists."""
        try:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT EXISTS(SELECT 1 FROM information_schema.schemata WHERE schema_name = %s) AS exists",
                    (self.app_schema,)
                )
                return bool(cur.fetchone()['exists'])
        except psycopg.Error as e:
            logger.error(f"❌ Failed to check schema existence: {e}")
            raise SchemaManagementError(f"Schema existence check failed: {e}") from e

    def _create_schema(self, conn: psycopg.Connection) -> bool:
        """
        Attempt to create the application schema.

        Returns:
            True if created, False on insufficient privileges
        """
        try:
            with conn.cursor() as cur:
                cur.execute(
                    sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(self.app_schema))
                )
            conn.commit()
            logger.info(f"✅ Created schema: {self.app_schema}")
            return True

        except psycopg.errors.InsufficientPrivilege as e:
            conn.rollback()
            logger.warning(f"⚠️ Insufficient privileges to create schema '{self.app_schema}': {e}")
            return False

    def _missing_tables(self, conn: psycopg.Connection) -> List[str]:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = %s AND table_name = ANY(%s)
                """,
                (self.app_schema, TABLE_NAMES)
            )
            existing = {row['table_name'] for row in cur.fetchall()}
        return [t for t in TABLE_NAMES if t not in existing]

    def _execute_ddl(self, conn: psycopg.Connection) -> int:
        """Execute the composed DDL in one transaction."""
        statements = build_app_schema_ddl(self.app_schema)
        try:
            with conn.cursor() as cur:
                for stmt in statements:
                    cur.execute(stmt)
            conn.commit()
        except psycopg.errors.InsufficientPrivilege as e:
            conn.rollback()
            raise InsufficientPrivilegesError(
                f"Insufficient privileges to initialize schema '{self.app_schema}': {e}"
            ) from e
        except psycopg.Error as e:
            conn.rollback()
            raise SchemaManagementError(f"DDL execution failed: {e}") from e

        logger.info(f"✅ Executed {len(statements)} statements for: {self.app_schema}")
        return len(statements)


class SchemaManagerFactory:
    """Factory for creating SchemaManager instances."""

    @staticmethod
    def create_schema_manager(repository: Optional[Any] = None) -> SchemaManager:
        """Create SchemaManager instance with current configuration."""
        return SchemaManager(repository=repository)


__all__ = [
    'SchemaManager',
    'SchemaManagerFactory',
    'SchemaManagementError',
    'InsufficientPrivilegesError'
]
