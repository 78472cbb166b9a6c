"""
In-memory collaborators for service tests.

Each fake honours the same contract as its PostgreSQL / Azure / Gemini
counterpart and is safe to share between threads, so the concurrency tests
exercise the real service code against it.
"""

import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from azure.core.exceptions import ServiceRequestError

from core.errors import ErrorCode
from core.logic.revision_builder import (
    build_initial_batch,
    build_next_batch,
    group_batch,
    make_batch_id,
    make_initial_batch_id,
    next_revision_number,
)
from core.models.credit import CreditAllocation, CreditReservation
from core.models.enums import EditType, ReservationStatus
from core.models.generation import ImagePayload
from core.models.product import ProductContext
from core.models.revision import CommitRequest, CommitResult, RevisionHistoryEntry, ViewRecord
from exceptions import (
    ContextResolutionError,
    InsufficientCredit,
    NoActiveRevision,
    PartialInsertFailure,
    ValidationError,
)
from infrastructure.blob import IBlobRepository


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


# ============================================================================
# CREDIT LEDGER
# ============================================================================

class FakeCreditRepository:
    """Balances per user; reservations settle at most once."""

    def __init__(self, balances: Optional[Dict[str, int]] = None):
        self._lock = threading.Lock()
        self.balances: Dict[str, int] = dict(balances or {})
        self.reservations: Dict[str, CreditReservation] = {}
        self.refund_error: Optional[Exception] = None
        self.commit_error: Optional[Exception] = None
        self.refund_calls = 0
        self.commit_calls = 0

    def reserve(self, user_id: str, amount: int) -> CreditReservation:
        with self._lock:
            available = self.balances.get(user_id, 0)
            if available < amount:
                raise InsufficientCredit(
                    "Not enough credits.", user_id=user_id, required=amount, available=available
                )
            self.balances[user_id] = available - amount
            reservation = CreditReservation(
                reservation_id=f"res_{uuid.uuid4().hex}",
                user_id=user_id,
                amount=amount,
                allocations=[CreditAllocation(credit_id=f"credit-{user_id}", deducted=amount)],
            )
            self.reservations[reservation.reservation_id] = reservation
            return reservation

    def refund(self, reservation: CreditReservation) -> bool:
        with self._lock:
            self.refund_calls += 1
            if self.refund_error is not None:
                raise self.refund_error
            stored = self.reservations[reservation.reservation_id]
            if stored.is_settled:
                return False
            stored.status = ReservationStatus.REFUNDED
            self.balances[stored.user_id] = self.balances.get(stored.user_id, 0) + stored.amount
            return True

    def commit(self, reservation: CreditReservation) -> bool:
        with self._lock:
            self.commit_calls += 1
            if self.commit_error is not None:
                raise self.commit_error
            stored = self.reservations[reservation.reservation_id]
            if stored.is_settled:
                return False
            stored.status = ReservationStatus.COMMITTED
            return True

    def get_balance(self, user_id: str) -> int:
        return self.balances.get(user_id, 0)

    def statuses(self) -> List[ReservationStatus]:
        return [r.status for r in self.reservations.values()]


# ============================================================================
# REVISION STORE
# ============================================================================

class FakeRevisionRepository:
    """
    Revision rows in a list, committed under one lock.

    commit_revision() follows the same steps as the PostgreSQL repository:
    parent lookup, max+1 numbering, deactivate, insert, all or nothing.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.rows: List[ViewRecord] = []
        self.fail_insert = False
        self.commit_calls = 0

    def add_batch(self, records: List[Dict[str, Any]]) -> List[ViewRecord]:
        stored = [ViewRecord(**r) for r in records]
        with self._lock:
            self.rows.extend(stored)
        return stored

    def active_rows(self, product_id: str) -> List[ViewRecord]:
        return [r for r in self.rows if r.product_id == product_id and r.is_active]

    def get_active_batch(self, product_id: str):
        rows = self.active_rows(product_id)
        return group_batch(rows) if rows else None

    def get_revision_batch(self, product_id: str, revision_ref: str):
        with self._lock:
            return self._load(product_id, revision_ref)

    def _load(self, product_id: str, ref: str):
        by_id = next((r for r in self.rows if r.id == ref), None)
        if by_id is not None and by_id.product_id != product_id:
            raise ContextResolutionError(
                f"Revision {ref} does not belong to product {product_id}",
                error_code=ErrorCode.REVISION_NOT_FOUND
            )
        batch_id = by_id.batch_id if by_id is not None else ref
        rows = [r for r in self.rows if r.batch_id == batch_id and r.product_id == product_id]
        if not rows:
            raise ContextResolutionError(
                f"Revision {ref} not found for product {product_id}",
                error_code=ErrorCode.REVISION_NOT_FOUND
            )
        return group_batch(rows)

    def commit_revision(self, request: CommitRequest) -> CommitResult:
        with self._lock:
            self.commit_calls += 1
            active = self.active_rows(request.product_id)
            if not active:
                raise NoActiveRevision(f"Product {request.product_id} has no active revision")
            if request.parent_revision_id:
                parent = self._load(request.product_id, request.parent_revision_id)
            else:
                parent = group_batch(active)

            numbers = [r.revision_number for r in self.rows if r.product_id == request.product_id]
            revision_number = next_revision_number(max(numbers) if numbers else None)
            batch_id = make_batch_id(revision_number, int(time.time() * 1000))
            records = build_next_batch(parent, request, batch_id, revision_number)
            if self.fail_insert:
                raise PartialInsertFailure(
                    f"Inserted 0 of {len(records)} view records", batch_id=batch_id
                )

            self.rows = [
                r.model_copy(update={'is_active': False}) if r.product_id == request.product_id else r
                for r in self.rows
            ]
            inserted = self._store(records)

        target = next(r for r in inserted if r.view_type == request.target_view)
        return CommitResult(
            batch_id=batch_id,
            revision_number=revision_number,
            target_record_id=target.id,
            parent_batch_id=parent.batch_id,
            parent_revision_number=parent.revision_number,
            records=inserted,
        )

    def seed_initial_revision(self, product_id, user_id, views, model=None, thumbnails=None) -> CommitResult:
        with self._lock:
            if any(r.product_id == product_id for r in self.rows):
                raise ValidationError(
                    f"Product {product_id} already has revisions",
                    error_code=ErrorCode.REVISION_ALREADY_SEEDED
                )
            batch_id = make_initial_batch_id(product_id, int(time.time() * 1000))
            inserted = self._store(build_initial_batch(product_id, user_id, views, batch_id, model, thumbnails))
        return CommitResult(
            batch_id=batch_id,
            revision_number=0,
            target_record_id=inserted[0].id,
            parent_batch_id=batch_id,
            parent_revision_number=0,
            records=inserted,
        )

    def list_history(self, product_id: str, limit: int = 50) -> List[RevisionHistoryEntry]:
        batches: Dict[str, List[ViewRecord]] = {}
        for row in self.rows:
            if row.product_id == product_id:
                batches.setdefault(row.batch_id, []).append(row)
        ordered = sorted(batches.values(), key=lambda rows: rows[0].revision_number, reverse=True)
        entries = []
        for rows in ordered[:limit]:
            entry = RevisionHistoryEntry(
                batch_id=rows[0].batch_id,
                revision_number=rows[0].revision_number,
                is_active=rows[0].is_active,
                views={r.view_type: r.image_url for r in rows},
            )
            edited = next((r for r in rows if r.metadata.get("single_view_regeneration")), None)
            if edited is not None:
                entry.edit_type = EditType.AI_EDIT
                entry.regenerated_view = edited.view_type
                entry.user_edit_instructions = edited.metadata.get("user_edit_instructions")
            entries.append(entry)
        return entries

    def _store(self, records: List[ViewRecord]) -> List[ViewRecord]:
        now = datetime.now(timezone.utc)
        stored = [r.model_copy(update={'id': str(uuid.uuid4()), 'created_at': now}) for r in records]
        self.rows.extend(stored)
        return stored


# ============================================================================
# PRODUCTS
# ============================================================================

class FakeProductRepository:
    """Products keyed by id; a foreign owner looks like a missing product."""

    def __init__(self, *contexts: Dict[str, Any]):
        self.products: Dict[str, ProductContext] = {}
        for context in contexts:
            self.add(context)

    def add(self, context: Dict[str, Any]) -> ProductContext:
        product = ProductContext(**context)
        self.products[product.product_id] = product
        return product

    def get_product_context(self, product_id: str, user_id: str) -> ProductContext:
        product = self.products.get(product_id)
        if product is None or product.user_id != user_id:
            raise ContextResolutionError(
                f"Product {product_id} not found",
                error_code=ErrorCode.PRODUCT_NOT_FOUND
            )
        return product


# ============================================================================
# GENERATION
# ============================================================================

class FakeGeminiClient:
    """
    Scripted model client.

    ``outcomes`` maps a model name to a list consumed one call at a time;
    an Exception entry is raised, anything else returns PNG bytes. When a
    model's list runs out every further call succeeds.
    """

    def __init__(self, outcomes: Optional[Dict[str, List[Any]]] = None,
                 barrier: Optional[threading.Barrier] = None):
        self._lock = threading.Lock()
        self.outcomes = {model: list(steps) for model, steps in (outcomes or {}).items()}
        self.calls: List[Dict[str, Any]] = []
        self.barrier = barrier

    def generate(self, model: str, prompt: str, reference: ImagePayload,
                 logo: Optional[ImagePayload] = None) -> ImagePayload:
        with self._lock:
            self.calls.append({'model': model, 'prompt': prompt, 'reference': reference, 'logo': logo})
            steps = self.outcomes.get(model) or []
            step = steps.pop(0) if steps else None
        if self.barrier is not None:
            self.barrier.wait(timeout=5)
        if isinstance(step, Exception):
            raise step
        return ImagePayload(data=PNG_BYTES + model.encode(), mime_type="image/png")

    def models_called(self) -> List[str]:
        return [c['model'] for c in self.calls]


class FakeReferenceLoader:
    """Returns deterministic bytes per URL and records what was loaded."""

    def __init__(self, error: Optional[Exception] = None):
        self.loaded: List[str] = []
        self.error = error

    def load(self, url: str) -> ImagePayload:
        if self.error is not None:
            raise self.error
        self.loaded.append(url)
        return ImagePayload(data=url.encode(), mime_type="image/png")


# ============================================================================
# STORAGE / LOGGING
# ============================================================================

class FakeBlobRepository(IBlobRepository):
    """In-memory blob container; refuses to overwrite when asked not to."""

    def __init__(self, fail: bool = False):
        self._lock = threading.Lock()
        self.blobs: Dict[str, Dict[str, Any]] = {}
        self.fail = fail
        self.fail_delete = False
        self.delete_error: Optional[Exception] = None

    def write_blob(self, container, blob_path, data, overwrite=True,
                   content_type="application/octet-stream", metadata=None):
        if self.fail:
            raise ServiceRequestError("storage unreachable")
        key = f"{container}/{blob_path}"
        with self._lock:
            if key in self.blobs and not overwrite:
                raise ValueError(f"Blob already exists: {key}")
            self.blobs[key] = {'data': data, 'content_type': content_type, 'metadata': metadata or {}}
        return {
            'url': f"https://blob.test/{key}",
            'container': container,
            'blob_path': blob_path,
            'size': len(data),
            'etag': f'"{uuid.uuid4().hex[:8]}"',
        }

    def delete_blob(self, container, blob_path):
        if self.fail_delete:
            raise ServiceRequestError("storage unreachable")
        if self.delete_error is not None:
            raise self.delete_error
        return self.blobs.pop(f"{container}/{blob_path}", None) is not None


class FakeAILogRepository:
    """Collects AI operation log entries."""

    def __init__(self, fail: bool = False):
        self.entries = []
        self.fail = fail

    def create(self, entry) -> None:
        if self.fail:
            raise RuntimeError("Query execution failed: connection reset")
        self.entries.append(entry)
