"""
App schema DDL and deployment tests.

Statements are rendered with Composable.as_string() (no connection needed)
and checked for idempotency and the constraints the revision store relies on.
"""

from contextlib import nullcontext
from unittest.mock import MagicMock

import psycopg
import pytest

from core.schema import (
    TABLE_NAMES,
    IndexBuilder,
    InsufficientPrivilegesError,
    SchemaManager,
    build_app_schema_ddl,
)


@pytest.fixture
def rendered():
    return [stmt.as_string() for stmt in build_app_schema_ddl("app")]


# ============================================================================
# DDL
# ============================================================================

class TestBuildAppSchemaDdl:

    def test_schema_first(self, rendered):
        assert rendered[0] == 'CREATE SCHEMA IF NOT EXISTS "app"'

    def test_every_statement_idempotent(self, rendered):
        assert all("IF NOT EXISTS" in stmt for stmt in rendered)

    @pytest.mark.parametrize("table", TABLE_NAMES)
    def test_every_table_created(self, rendered, table):
        assert any(stmt.startswith(f'CREATE TABLE IF NOT EXISTS "app"."{table}"') for stmt in rendered)

    def test_revision_numbering_unique(self, rendered):
        assert (
            'CREATE UNIQUE INDEX IF NOT EXISTS "uq_product_multiview_revisions_product_id_revision_number_view_type" '
            'ON "app"."product_multiview_revisions" ("product_id", "revision_number", "view_type")'
        ) in rendered

    def test_active_index_is_partial(self, rendered):
        active = [s for s in rendered if "product_id_is_active" in s]
        assert len(active) == 1
        assert active[0].endswith(" WHERE is_active")

    def test_view_type_constrained(self, rendered):
        revisions = next(s for s in rendered if '"product_multiview_revisions" (' in s and "CREATE TABLE" in s)
        assert "'front', 'back', 'side', 'top', 'bottom'" in revisions
        assert "'{}'::jsonb" in revisions

    def test_schema_name_is_quoted(self):
        stmt = build_app_schema_ddl('odd"schema')[0].as_string()
        assert stmt == 'CREATE SCHEMA IF NOT EXISTS "odd""schema"'


class TestIndexBuilder:

    def test_single_column_name(self):
        stmt = IndexBuilder.btree("app", "products", "user_id").as_string()
        assert stmt == 'CREATE INDEX IF NOT EXISTS "idx_products_user_id" ON "app"."products" ("user_id")'

    def test_explicit_name(self):
        stmt = IndexBuilder.unique("app", "t", ["a", "b"], name="uq_custom").as_string()
        assert stmt.startswith('CREATE UNIQUE INDEX IF NOT EXISTS "uq_custom"')


# ============================================================================
# DEPLOYER
# ============================================================================

def _manager(cursor):
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    repository = MagicMock()
    repository._get_connection.side_effect = lambda: nullcontext(conn)
    return SchemaManager(repository=repository), conn


class TestSchemaManager:

    def test_all_tables_present(self):
        cursor = MagicMock()
        cursor.fetchone.return_value = {'exists': True}
        cursor.fetchall.return_value = [{'table_name': t} for t in TABLE_NAMES]
        manager, conn = _manager(cursor)

        results = manager.validate_and_initialize_schema()

        assert results['validation_successful'] is True
        assert results['tables_created'] is False
        conn.commit.assert_not_called()

    def test_missing_table_runs_ddl(self):
        cursor = MagicMock()
        cursor.fetchone.return_value = {'exists': True}
        cursor.fetchall.return_value = [{'table_name': t} for t in TABLE_NAMES[:-1]]
        manager, conn = _manager(cursor)

        results = manager.validate_and_initialize_schema()

        assert results['missing_tables'] == [TABLE_NAMES[-1]]
        assert results['tables_created'] is True
        assert cursor.execute.call_count == 2 + len(build_app_schema_ddl("app"))
        conn.commit.assert_called_once()

    def test_missing_schema_listed_as_all_tables(self):
        cursor = MagicMock()
        cursor.fetchone.return_value = {'exists': False}
        manager, _ = _manager(cursor)
        assert manager.list_missing_tables() == list(TABLE_NAMES)

    def test_ddl_privilege_error(self):
        cursor = MagicMock()
        cursor.fetchone.return_value = {'exists': True}
        cursor.fetchall.return_value = []

        def execute(stmt, params=None):
            if not isinstance(stmt, str):
                raise psycopg.errors.InsufficientPrivilege("permission denied for database")

        cursor.execute.side_effect = execute
        manager, conn = _manager(cursor)

        with pytest.raises(InsufficientPrivilegesError):
            manager.validate_and_initialize_schema()
        conn.rollback.assert_called_once()
