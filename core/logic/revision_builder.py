"""
Revision Batch Building Logic.

Pure functions that turn a parent batch plus one regenerated view into the
full record set of the next batch. The repository owns reads, locking and
writes; everything here is deterministic given its inputs.

Exports:
    make_batch_id: Batch id for a single-view edit
    make_initial_batch_id: Batch id for revision 0
    next_revision_number: Max-ever revision + 1
    group_batch: Validate rows of one batch into a RevisionBatch
    build_next_batch: Copy untouched views, swap in the regenerated one
    build_initial_batch: Records for revision 0
"""

from typing import Dict, Iterable, List, Optional

from exceptions import ContextResolutionError, CorruptRevisionState
from ..errors import ErrorCode
from ..models.enums import EditType, ViewType
from ..models.revision import CommitRequest, RevisionBatch, ViewRecord


# Keys describing the edit that produced a record; never inherited by copies
_EDIT_SPECIFIC_KEYS = ("regenerated_view", "user_edit_instructions")


def make_batch_id(revision_number: int, now_ms: int) -> str:
    """Batch id for a single-view edit: single_view_edit_{revision}_{epoch_ms}."""
    return f"single_view_edit_{revision_number}_{now_ms}"


def make_initial_batch_id(product_id: str, now_ms: int) -> str:
    """Batch id for revision 0: initial_{product_id}_{epoch_ms}."""
    return f"initial_{product_id}_{now_ms}"


def next_revision_number(max_revision_number: Optional[int]) -> int:
    """
    Next revision number from the maximum ever recorded for the product.

    Computed from full history, not from the parent batch, so editing an
    older batch never reuses a number.
    """
    if max_revision_number is None:
        return 0
    return max_revision_number + 1


def group_batch(records: Iterable[ViewRecord]) -> RevisionBatch:
    """
    Validate the rows of one batch and group them by view.

    Raises:
        CorruptRevisionState: No rows, or rows disagree on batch id,
            revision number, active flag, or repeat a view type
    """
    rows = list(records)
    if not rows:
        raise CorruptRevisionState("Revision batch has no view records")

    first = rows[0]
    views: Dict[ViewType, ViewRecord] = {}
    for row in rows:
        if (row.batch_id, row.revision_number, row.is_active) != (first.batch_id, first.revision_number, first.is_active):
            raise CorruptRevisionState(
                f"Batch {first.batch_id} has inconsistent rows "
                f"(revision {row.revision_number} vs {first.revision_number}, "
                f"active {row.is_active} vs {first.is_active})",
                batch_id=first.batch_id
            )
        if row.view_type in views:
            raise CorruptRevisionState(
                f"Batch {first.batch_id} has duplicate {row.view_type.value} view",
                batch_id=first.batch_id
            )
        views[row.view_type] = row

    return RevisionBatch(
        batch_id=first.batch_id,
        product_id=first.product_id,
        user_id=first.user_id,
        revision_number=first.revision_number,
        is_active=first.is_active,
        created_at=min((r.created_at for r in rows if r.created_at), default=None),
        views=views,
    )


def build_next_batch(
    parent: RevisionBatch,
    request: CommitRequest,
    batch_id: str,
    revision_number: int
) -> List[ViewRecord]:
    """
    Build the full record set of the next batch.

    The target view gets the new image, prompt and model. Every other view
    is copied verbatim from the parent. All records are tagged with the
    parent batch and revision for lineage.

    Args:
        parent: Batch being edited
        request: Commit request carrying the regenerated view
        batch_id: New batch id
        revision_number: New revision number

    Returns:
        One ViewRecord per parent view, in parent view order, all active

    Raises:
        ContextResolutionError: Target view absent from the parent batch
    """
    if request.target_view not in parent.views:
        raise ContextResolutionError(
            f"View {request.target_view.value} not found in revision {parent.revision_number}",
            error_code=ErrorCode.VIEW_NOT_IN_REVISION
        )

    lineage = {
        "parent_revision_number": parent.revision_number,
        "parent_batch_id": parent.batch_id,
    }

    records: List[ViewRecord] = []
    for view_type in parent.view_types:
        prior = parent.views[view_type]
        inherited = {k: v for k, v in prior.metadata.items() if k not in _EDIT_SPECIFIC_KEYS}

        if view_type == request.target_view:
            records.append(ViewRecord(
                product_id=request.product_id,
                user_id=request.user_id,
                revision_number=revision_number,
                batch_id=batch_id,
                view_type=view_type,
                image_url=request.new_image_url,
                thumbnail_url=request.new_thumbnail_url or request.new_image_url,
                edit_prompt=request.edit_prompt,
                edit_type=EditType.AI_EDIT,
                ai_model=request.model_used,
                is_active=True,
                metadata={
                    **inherited,
                    "single_view_regeneration": True,
                    "regenerated_view": view_type.value,
                    "user_edit_instructions": request.user_edit_instructions,
                    **lineage,
                },
            ))
        else:
            records.append(ViewRecord(
                product_id=request.product_id,
                user_id=request.user_id,
                revision_number=revision_number,
                batch_id=batch_id,
                view_type=view_type,
                image_url=prior.image_url,
                thumbnail_url=prior.thumbnail_url,
                edit_prompt=prior.edit_prompt,
                edit_type=prior.edit_type,
                ai_model=prior.ai_model,
                is_active=True,
                metadata={
                    **inherited,
                    "single_view_regeneration": False,
                    **lineage,
                },
            ))

    return records


def build_initial_batch(
    product_id: str,
    user_id: str,
    views: Dict[ViewType, str],
    batch_id: str,
    model: Optional[str] = None,
    thumbnails: Optional[Dict[ViewType, str]] = None
) -> List[ViewRecord]:
    """Records for revision 0, one per supplied view, all active."""
    thumbnails = thumbnails or {}
    return [
        ViewRecord(
            product_id=product_id,
            user_id=user_id,
            revision_number=0,
            batch_id=batch_id,
            view_type=view_type,
            image_url=url,
            thumbnail_url=thumbnails.get(view_type, url),
            edit_prompt=None,
            edit_type=EditType.INITIAL,
            ai_model=model,
            is_active=True,
            metadata={"initial_generation": True},
        )
        for view_type, url in sorted(views.items(), key=lambda item: list(ViewType).index(item[0]))
    ]
