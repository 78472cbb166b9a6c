# ============================================================================
# MULTIVIEW REVISION REPOSITORY
# ============================================================================
# STATUS: Infrastructure - Revision batch reads and atomic batch commit
# PURPOSE: Database operations for app.product_multiview_revisions
# EXPORTS: RevisionRepository
# DEPENDENCIES: psycopg, core.models.revision, core.logic.revision_builder
# ============================================================================
"""
Multiview Revision Repository.

Persistence for revision batches. Each regeneration writes a complete new
batch (every view, copied forward except the regenerated one) and retires
the previous active batch.

commit_revision() runs in ONE transaction:
    1. pg_advisory_xact_lock on the product (when REVISION_LOCK_ENABLED)
    2. Confirm the product has an active batch
    3. Load the parent batch (the revision being edited)
    4. next revision = MAX(revision_number) + 1 over full history
    5. Deactivate every active row of the product
    6. Insert the new batch as one multi-row INSERT ... RETURNING *
    7. Row count mismatch -> rollback -> PartialInsertFailure

Deactivation runs before the insert, so inside the transaction there is
never a moment with two different active batches; the rollback on failure
means readers never observe the zero-active window either.

Exports:
    RevisionRepository: Revision batch persistence
"""

import json
import time
from typing import Optional, List, Dict, Any

import psycopg
from psycopg import sql

from util_logger import LoggerFactory, ComponentType, operator_alert
from core.errors import ErrorCode
from core.logic.revision_builder import (
    build_initial_batch,
    build_next_batch,
    group_batch,
    make_batch_id,
    make_initial_batch_id,
    next_revision_number,
)
from core.models.enums import EditType, ViewType
from core.models.revision import (
    CommitRequest,
    CommitResult,
    RevisionBatch,
    RevisionHistoryEntry,
    ViewRecord,
)
from exceptions import (
    ContextResolutionError,
    CorruptRevisionState,
    DatabaseError,
    NoActiveRevision,
    PartialInsertFailure,
    ValidationError,
)
from .postgresql import PostgreSQLRepository, advisory_lock_key

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "RevisionRepository")

_INSERT_COLUMNS = (
    "product_id", "user_id", "revision_number", "batch_id", "view_type",
    "image_url", "thumbnail_url", "edit_prompt", "edit_type", "ai_model",
    "is_active", "metadata",
)


class RevisionRepository(PostgreSQLRepository):
    """
    Repository for revision batches.

    Table: app.product_multiview_revisions
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.table = "product_multiview_revisions"
        self.schema = self.schema_name

    # =========================================================================
    # READ
    # =========================================================================

    def get_revision(self, revision_id: str) -> Optional[ViewRecord]:
        """
        Get one view record by row id.

        Args:
            revision_id: Row id (uuid string)

        Returns:
            ViewRecord if found, None otherwise (also for non-uuid input)
        """
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    sql.SQL("SELECT * FROM {}.{} WHERE id::text = %s").format(
                        sql.Identifier(self.schema),
                        sql.Identifier(self.table)
                    ),
                    (revision_id,)
                )
                row = cur.fetchone()
                return self._row_to_model(row) if row else None

    def get_active_batch(self, product_id: str) -> Optional[RevisionBatch]:
        """
        Get the active batch for a product.

        Returns:
            RevisionBatch, or None when the product has no active rows

        Raises:
            CorruptRevisionState: Active rows span more than one batch
        """
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                rows = self._fetch_active_rows(cur, product_id)
        if not rows:
            return None
        return group_batch(self._row_to_model(r) for r in rows)

    def get_revision_batch(self, product_id: str, revision_ref: str) -> RevisionBatch:
        """
        Batch identified by a row id or batch id, scoped to the product.

        Raises:
            ContextResolutionError: Unknown reference or owned by another product
            CorruptRevisionState: Batch rows are inconsistent
        """
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                return self._load_revision_batch(cur, product_id, revision_ref)

    def get_batch_views(self, product_id: str, batch_id: str) -> List[ViewRecord]:
        """All of the product's view records sharing a batch id, ordered by view."""
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                rows = self._fetch_batch_rows(cur, product_id, batch_id)
        return [self._row_to_model(r) for r in rows]

    def get_max_revision_number(self, product_id: str) -> Optional[int]:
        """Highest revision number ever recorded for the product, or None."""
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                return self._fetch_max_revision(cur, product_id)

    def list_history(self, product_id: str, limit: int = 50) -> List[RevisionHistoryEntry]:
        """
        Revision history grouped by batch, newest first.

        Args:
            product_id: Product identifier
            limit: Maximum number of batches

        Returns:
            List of RevisionHistoryEntry ordered by revision_number descending
        """
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    sql.SQL("""
                        SELECT * FROM {schema}.{table}
                        WHERE product_id = %s
                          AND batch_id IN (
                              SELECT batch_id FROM {schema}.{table}
                              WHERE product_id = %s
                              GROUP BY batch_id
                              ORDER BY MAX(revision_number) DESC
                              LIMIT %s
                          )
                        ORDER BY revision_number DESC, view_type
                    """).format(
                        schema=sql.Identifier(self.schema),
                        table=sql.Identifier(self.table)
                    ),
                    (product_id, product_id, limit)
                )
                rows = cur.fetchall()

        entries: Dict[str, RevisionHistoryEntry] = {}
        for record in (self._row_to_model(r) for r in rows):
            entry = entries.get(record.batch_id)
            if entry is None:
                entry = RevisionHistoryEntry(
                    batch_id=record.batch_id,
                    revision_number=record.revision_number,
                    is_active=record.is_active,
                    created_at=record.created_at,
                )
                entries[record.batch_id] = entry
            entry.views[record.view_type] = record.image_url
            if record.metadata.get("single_view_regeneration"):
                entry.edit_type = record.edit_type
                entry.regenerated_view = record.view_type
                entry.user_edit_instructions = record.metadata.get("user_edit_instructions")
            elif entry.edit_type is None and record.edit_type == EditType.INITIAL:
                entry.edit_type = EditType.INITIAL
        return list(entries.values())

    # =========================================================================
    # CREATE
    # =========================================================================

    def commit_revision(self, request: CommitRequest) -> CommitResult:
        """
        Write the next batch for a single-view regeneration.

        Args:
            request: CommitRequest with the regenerated view and its parent

        Returns:
            CommitResult for the new active batch

        Raises:
            NoActiveRevision: Product has no active batch (never seeded)
            ContextResolutionError: Parent revision missing, foreign, or lacks the view
            CorruptRevisionState: Parent batch rows are inconsistent
            PartialInsertFailure: Insert returned fewer rows than submitted
            DatabaseError: Numbering conflict or other database failure
        """
        with self._error_context("revision commit", request.product_id):
            with self._connect("Revision commit", product_id=request.product_id) as conn:
                try:
                    with conn.cursor() as cur:
                        self._lock_product(cur, request.product_id)

                        active_rows = self._fetch_active_rows(cur, request.product_id)
                        if not active_rows:
                            raise NoActiveRevision(
                                f"Product {request.product_id} has no active revision",
                                product_id=request.product_id
                            )

                        parent = self._resolve_parent(cur, request, active_rows)
                        revision_number = next_revision_number(
                            self._fetch_max_revision(cur, request.product_id)
                        )
                        batch_id = make_batch_id(revision_number, int(time.time() * 1000))
                        records = build_next_batch(parent, request, batch_id, revision_number)

                        deactivated = self._deactivate_active(cur, request.product_id)
                        inserted = self._insert_records(cur, records)
                        self._verify_insert_count(conn, request.product_id, batch_id, records, inserted)

                    conn.commit()

                except psycopg.errors.UniqueViolation as e:
                    conn.rollback()
                    raise DatabaseError(
                        f"Revision numbering conflict for product {request.product_id}",
                        error_code=ErrorCode.REVISION_CONFLICT,
                        product_id=request.product_id
                    ) from e
                except psycopg.Error as e:
                    conn.rollback()
                    raise DatabaseError(f"Revision commit failed: {e}") from e
                except Exception:
                    conn.rollback()
                    raise

        target = next(r for r in inserted if r.view_type == request.target_view)
        logger.info(
            f"✅ Committed revision {revision_number} ({batch_id}) for product {request.product_id}: "
            f"{request.target_view.value} regenerated, {deactivated} rows retired",
            extra={'custom_dimensions': {
                'product_id': request.product_id,
                'batch_id': batch_id,
                'revision_number': revision_number,
                'parent_batch_id': parent.batch_id,
            }}
        )
        return CommitResult(
            batch_id=batch_id,
            revision_number=revision_number,
            target_record_id=target.id,
            parent_batch_id=parent.batch_id,
            parent_revision_number=parent.revision_number,
            records=inserted,
        )

    def seed_initial_revision(
        self,
        product_id: str,
        user_id: str,
        views: Dict[ViewType, str],
        model: Optional[str] = None,
        thumbnails: Optional[Dict[ViewType, str]] = None
    ) -> CommitResult:
        """
        Write revision 0 for a product.

        Raises:
            ValidationError: Product already has revisions
            PartialInsertFailure: Insert returned fewer rows than submitted
        """
        batch_id = make_initial_batch_id(product_id, int(time.time() * 1000))
        records = build_initial_batch(product_id, user_id, views, batch_id, model, thumbnails)

        with self._error_context("initial revision seed", product_id):
            with self._connect("Initial revision seed", product_id=product_id) as conn:
                try:
                    with conn.cursor() as cur:
                        self._lock_product(cur, product_id)
                        if self._fetch_max_revision(cur, product_id) is not None:
                            raise ValidationError(
                                f"Product {product_id} already has revisions",
                                error_code=ErrorCode.REVISION_ALREADY_SEEDED,
                                product_id=product_id
                            )
                        inserted = self._insert_records(cur, records)
                        self._verify_insert_count(conn, product_id, batch_id, records, inserted)
                    conn.commit()
                except psycopg.Error as e:
                    conn.rollback()
                    raise DatabaseError(f"Initial revision seed failed: {e}") from e
                except Exception:
                    conn.rollback()
                    raise

        logger.info(f"✅ Seeded revision 0 ({batch_id}) for product {product_id} with {len(inserted)} views")
        return CommitResult(
            batch_id=batch_id,
            revision_number=0,
            target_record_id=inserted[0].id,
            parent_batch_id=batch_id,
            parent_revision_number=0,
            records=inserted,
        )

    # =========================================================================
    # TRANSACTION STEPS
    # =========================================================================

    def _lock_product(self, cur, product_id: str) -> None:
        """Serialize commits per product for the rest of the transaction."""
        if not self.config.revision_lock_enabled:
            return
        cur.execute(
            sql.SQL("SELECT pg_advisory_xact_lock(%s)"),
            (advisory_lock_key(f"revision|{product_id}"),)
        )

    def _resolve_parent(self, cur, request: CommitRequest, active_rows: List[Dict[str, Any]]) -> RevisionBatch:
        """
        Batch being edited.

        parent_revision_id may be a row id or a batch id. When omitted the
        active batch is the parent.
        """
        if not request.parent_revision_id:
            return group_batch(self._row_to_model(r) for r in active_rows)
        return self._load_revision_batch(cur, request.product_id, request.parent_revision_id)

    def _load_revision_batch(self, cur, product_id: str, parent_ref: str) -> RevisionBatch:
        batch_id = None

        cur.execute(
            sql.SQL("SELECT batch_id, product_id FROM {}.{} WHERE id::text = %s").format(
                sql.Identifier(self.schema),
                sql.Identifier(self.table)
            ),
            (parent_ref,)
        )
        row = cur.fetchone()
        if row is not None:
            if row['product_id'] != product_id:
                raise ContextResolutionError(
                    f"Revision {parent_ref} does not belong to product {product_id}",
                    error_code=ErrorCode.REVISION_NOT_FOUND
                )
            batch_id = row['batch_id']
        else:
            batch_id = parent_ref

        rows = self._fetch_batch_rows(cur, product_id, batch_id)
        if not rows:
            raise ContextResolutionError(
                f"Revision {parent_ref} not found for product {product_id}",
                error_code=ErrorCode.REVISION_NOT_FOUND
            )
        return group_batch(self._row_to_model(r) for r in rows)

    def _deactivate_active(self, cur, product_id: str) -> int:
        cur.execute(
            sql.SQL("""
                UPDATE {}.{}
                SET is_active = false
                WHERE product_id = %s AND is_active = true
            """).format(
                sql.Identifier(self.schema),
                sql.Identifier(self.table)
            ),
            (product_id,)
        )
        return cur.rowcount

    def _insert_records(self, cur, records: List[ViewRecord]) -> List[ViewRecord]:
        """Insert the whole batch as one statement and return the stored rows."""
        row_placeholder = sql.SQL("({})").format(
            sql.SQL(", ").join(sql.Placeholder() for _ in _INSERT_COLUMNS)
        )
        params: List[Any] = []
        for record in records:
            params.extend([
                record.product_id,
                record.user_id,
                record.revision_number,
                record.batch_id,
                record.view_type.value,
                record.image_url,
                record.thumbnail_url,
                record.edit_prompt,
                record.edit_type.value,
                record.ai_model,
                record.is_active,
                json.dumps(record.metadata),
            ])

        cur.execute(
            sql.SQL("INSERT INTO {}.{} ({}) VALUES {} RETURNING *").format(
                sql.Identifier(self.schema),
                sql.Identifier(self.table),
                sql.SQL(", ").join(sql.Identifier(c) for c in _INSERT_COLUMNS),
                sql.SQL(", ").join(row_placeholder for _ in records)
            ),
            params
        )
        return [self._row_to_model(r) for r in cur.fetchall()]

    def _verify_insert_count(self, conn, product_id: str, batch_id: str,
                             submitted: List[ViewRecord], inserted: List[ViewRecord]) -> None:
        """A short insert is a total failure; undo the deactivation with it."""
        if len(inserted) == len(submitted):
            return
        conn.rollback()
        logger.critical(
            f"🚨 Partial insert for product {product_id} batch {batch_id}: "
            f"{len(inserted)}/{len(submitted)} rows; transaction rolled back",
            extra=operator_alert(
                product_id=product_id,
                batch_id=batch_id,
                submitted=len(submitted),
                inserted=len(inserted),
            )
        )
        raise PartialInsertFailure(
            f"Inserted {len(inserted)} of {len(submitted)} view records",
            product_id=product_id,
            batch_id=batch_id
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _fetch_active_rows(self, cur, product_id: str) -> List[Dict[str, Any]]:
        cur.execute(
            sql.SQL("""
                SELECT * FROM {}.{}
                WHERE product_id = %s AND is_active = true
                ORDER BY view_type
            """).format(
                sql.Identifier(self.schema),
                sql.Identifier(self.table)
            ),
            (product_id,)
        )
        rows = cur.fetchall()
        batch_ids = {r['batch_id'] for r in rows}
        if len(batch_ids) > 1:
            raise CorruptRevisionState(
                f"Product {product_id} has {len(batch_ids)} active batches",
                product_id=product_id,
                batch_ids=sorted(batch_ids)
            )
        return rows

    def _fetch_batch_rows(self, cur, product_id: str, batch_id: str) -> List[Dict[str, Any]]:
        cur.execute(
            sql.SQL("SELECT * FROM {}.{} WHERE product_id = %s AND batch_id = %s ORDER BY view_type").format(
                sql.Identifier(self.schema),
                sql.Identifier(self.table)
            ),
            (product_id, batch_id)
        )
        return cur.fetchall()

    def _fetch_max_revision(self, cur, product_id: str) -> Optional[int]:
        cur.execute(
            sql.SQL("""
                SELECT MAX(revision_number) AS max_revision
                FROM {}.{}
                WHERE product_id = %s
            """).format(
                sql.Identifier(self.schema),
                sql.Identifier(self.table)
            ),
            (product_id,)
        )
        row = cur.fetchone()
        return row['max_revision'] if row else None

    def _row_to_model(self, row: Dict[str, Any]) -> ViewRecord:
        """Convert database row to ViewRecord."""
        metadata = row.get('metadata') or {}
        if isinstance(metadata, str):
            metadata = json.loads(metadata)
        return ViewRecord(
            id=str(row['id']) if row.get('id') is not None else None,
            product_id=row['product_id'],
            user_id=row['user_id'],
            revision_number=row['revision_number'],
            batch_id=row['batch_id'],
            view_type=row['view_type'],
            image_url=row['image_url'],
            thumbnail_url=row.get('thumbnail_url'),
            edit_prompt=row.get('edit_prompt'),
            edit_type=row.get('edit_type') or EditType.AI_EDIT,
            ai_model=row.get('ai_model'),
            is_active=row['is_active'],
            metadata=metadata,
            created_at=row.get('created_at'),
        )


__all__ = ['RevisionRepository']
