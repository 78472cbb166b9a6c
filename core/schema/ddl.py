# ============================================================================
# APP SCHEMA DDL
# ============================================================================
# STATUS: Core - Table and index definitions for the app schema
# PURPOSE: CREATE ... IF NOT EXISTS statements composed with psycopg.sql
# EXPORTS: TABLE_NAMES, IndexBuilder, build_app_schema_ddl
# DEPENDENCIES: psycopg
# ============================================================================
"""
App Schema DDL.

All statements are idempotent and returned as psycopg.sql.Composed objects.
No string concatenation of identifiers - full SQL composition for injection
safety.

Tables:
    product_multiview_revisions - one row per view per revision batch
    user_credits - credit sources
    credit_reservations - provisional debits and their allocations
    products - product ownership and logo metadata
    brand_profiles - brand logos
    ai_operation_logs - one row per generation attempt

Usage:
    from core.schema.ddl import build_app_schema_ddl

    for stmt in build_app_schema_ddl("app"):
        cursor.execute(stmt)
"""

from typing import List, Optional, Sequence, Union
from psycopg import sql


REVISIONS_TABLE = "product_multiview_revisions"
CREDITS_TABLE = "user_credits"
RESERVATIONS_TABLE = "credit_reservations"
PRODUCTS_TABLE = "products"
BRAND_PROFILES_TABLE = "brand_profiles"
AI_LOGS_TABLE = "ai_operation_logs"

TABLE_NAMES = [
    PRODUCTS_TABLE,
    BRAND_PROFILES_TABLE,
    REVISIONS_TABLE,
    CREDITS_TABLE,
    RESERVATIONS_TABLE,
    AI_LOGS_TABLE,
]


# ============================================================================
# INDEX BUILDER
# ============================================================================

class IndexBuilder:
    """
    Builder for PostgreSQL index DDL statements.

    All methods are static and return sql.Composed objects.

    Example:
        idx = IndexBuilder.btree('app', 'user_credits', ['user_id', 'status'])
        idx = IndexBuilder.unique('app', 'product_multiview_revisions',
                                  ['product_id', 'revision_number', 'view_type'])
    """

    @staticmethod
    def _normalize_columns(columns: Union[str, Sequence[str]]) -> List[str]:
        if isinstance(columns, str):
            return [columns]
        return list(columns)

    @staticmethod
    def _generate_index_name(table: str, columns: List[str], prefix: str = 'idx') -> str:
        return f"{prefix}_{table}_{'_'.join(columns)}"

    @staticmethod
    def btree(
        schema: str,
        table: str,
        columns: Union[str, Sequence[str]],
        name: Optional[str] = None,
        partial_where: Optional[str] = None
    ) -> sql.Composed:
        """
        Create B-tree index.

        partial_where is a static predicate written in this module, never
        user input.
        """
        cols = IndexBuilder._normalize_columns(columns)
        idx_name = name or IndexBuilder._generate_index_name(table, cols)
        stmt = sql.SQL("CREATE INDEX IF NOT EXISTS {} ON {}.{} ({})").format(
            sql.Identifier(idx_name),
            sql.Identifier(schema),
            sql.Identifier(table),
            sql.SQL(", ").join(sql.Identifier(c) for c in cols),
        )
        if partial_where:
            stmt = sql.Composed([stmt, sql.SQL(" WHERE "), sql.SQL(partial_where)])
        return stmt

    @staticmethod
    def unique(
        schema: str,
        table: str,
        columns: Union[str, Sequence[str]],
        name: Optional[str] = None
    ) -> sql.Composed:
        """Create unique B-tree index."""
        cols = IndexBuilder._normalize_columns(columns)
        idx_name = name or IndexBuilder._generate_index_name(table, cols, prefix='uq')
        return sql.SQL("CREATE UNIQUE INDEX IF NOT EXISTS {} ON {}.{} ({})").format(
            sql.Identifier(idx_name),
            sql.Identifier(schema),
            sql.Identifier(table),
            sql.SQL(", ").join(sql.Identifier(c) for c in cols),
        )


# ============================================================================
# TABLES
# ============================================================================

_TABLE_BODIES = {
    PRODUCTS_TABLE: """
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        name TEXT,
        metadata JSONB NOT NULL DEFAULT '{{}}'::jsonb,
        brand_profile_applied BOOLEAN NOT NULL DEFAULT false,
        brand_profile_id TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    """,
    BRAND_PROFILES_TABLE: """
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        name TEXT,
        logo_url TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    """,
    REVISIONS_TABLE: """
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        product_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        revision_number INTEGER NOT NULL CHECK (revision_number >= 0),
        batch_id TEXT NOT NULL,
        view_type TEXT NOT NULL CHECK (view_type IN ('front', 'back', 'side', 'top', 'bottom')),
        image_url TEXT NOT NULL,
        thumbnail_url TEXT,
        edit_prompt TEXT,
        edit_type TEXT NOT NULL DEFAULT 'ai_edit',
        ai_model TEXT,
        is_active BOOLEAN NOT NULL DEFAULT false,
        metadata JSONB NOT NULL DEFAULT '{{}}'::jsonb,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    """,
    CREDITS_TABLE: """
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_id TEXT NOT NULL,
        credits INTEGER NOT NULL DEFAULT 0 CHECK (credits >= 0),
        plan_type TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'active',
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    """,
    RESERVATIONS_TABLE: """
        reservation_id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        amount INTEGER NOT NULL CHECK (amount > 0),
        status TEXT NOT NULL DEFAULT 'reserved'
            CHECK (status IN ('reserved', 'committed', 'refunded')),
        allocations JSONB NOT NULL DEFAULT '[]'::jsonb,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        settled_at TIMESTAMPTZ
    """,
    AI_LOGS_TABLE: """
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        operation_id TEXT NOT NULL,
        function_name TEXT NOT NULL,
        model TEXT,
        provider TEXT,
        operation_type TEXT,
        status TEXT NOT NULL,
        duration_ms INTEGER,
        retry_count INTEGER NOT NULL DEFAULT 0,
        fallback_used BOOLEAN NOT NULL DEFAULT false,
        user_id TEXT,
        product_id TEXT,
        input JSONB NOT NULL DEFAULT '{{}}'::jsonb,
        output JSONB NOT NULL DEFAULT '{{}}'::jsonb,
        error TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    """,
}


def _create_table(schema: str, table: str) -> sql.Composed:
    return sql.SQL("CREATE TABLE IF NOT EXISTS {}.{} (" + _TABLE_BODIES[table] + ")").format(
        sql.Identifier(schema),
        sql.Identifier(table),
    )


def build_app_schema_ddl(schema: str) -> List[sql.Composed]:
    """
    Full, ordered DDL for the app schema.

    Args:
        schema: Target schema name (config.database.app_schema)

    Returns:
        List of statements to execute in order inside one transaction
    """
    statements: List[sql.Composed] = [
        sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(schema)),
    ]
    statements.extend(_create_table(schema, table) for table in TABLE_NAMES)

    statements.extend([
        # One row per (product, revision, view); a lost numbering race fails here
        IndexBuilder.unique(schema, REVISIONS_TABLE, ["product_id", "revision_number", "view_type"]),
        IndexBuilder.btree(schema, REVISIONS_TABLE, ["product_id", "is_active"],
                           partial_where="is_active"),
        IndexBuilder.btree(schema, REVISIONS_TABLE, "batch_id"),
        IndexBuilder.btree(schema, CREDITS_TABLE, ["user_id", "status"]),
        IndexBuilder.btree(schema, RESERVATIONS_TABLE, ["user_id", "status"]),
        IndexBuilder.btree(schema, AI_LOGS_TABLE, "product_id"),
        IndexBuilder.btree(schema, PRODUCTS_TABLE, "user_id"),
    ])
    return statements
