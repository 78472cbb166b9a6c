# ============================================================================
# MULTIVIEW REVISION MODELS
# ============================================================================
# STATUS: Core - revision batch versioning
# PURPOSE: View records, batches, and commit request/result contracts
# EXPORTS: ViewRecord, RevisionBatch, CommitRequest, CommitResult, RevisionHistoryEntry
# DEPENDENCIES: pydantic
# ============================================================================
"""
Multiview Revision Models.

A revision batch is the set of view records written together by one commit.
All records of a batch share batch_id, revision_number and is_active.

Table: app.product_multiview_revisions
Primary Key: id (uuid, one row per view per batch)
Unique: (product_id, revision_number, view_type)
"""

from datetime import datetime
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field, ConfigDict

from .enums import ViewType, EditType


class ViewRecord(BaseModel):
    """
    One row per view within a batch.

    Fields:
        - id: Row identifier (assigned by the database on insert)
        - product_id, user_id: Ownership
        - revision_number, batch_id, is_active: Batch membership
        - view_type: front / back / side / top / bottom
        - image_url, thumbnail_url: Generated image locations
        - edit_prompt, edit_type, ai_model: How the image was produced
        - metadata: Lineage (parent batch / revision) and regeneration flags
    """
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)

    id: Optional[str] = Field(default=None, description="Row id (uuid)")
    product_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    revision_number: int = Field(..., ge=0)
    batch_id: str = Field(..., min_length=1)
    view_type: ViewType
    image_url: str = Field(..., min_length=1)
    thumbnail_url: Optional[str] = None
    edit_prompt: Optional[str] = None
    edit_type: EditType = EditType.AI_EDIT
    ai_model: Optional[str] = None
    is_active: bool = True
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class RevisionBatch(BaseModel):
    """
    A group of ViewRecords sharing one batch_id.

    Built by core.logic.revision_builder.group_batch(), which enforces that
    every record agrees on revision number and active flag.
    """
    batch_id: str
    product_id: str
    user_id: str
    revision_number: int
    is_active: bool
    created_at: Optional[datetime] = None
    views: Dict[ViewType, ViewRecord]

    @property
    def view_types(self) -> List[ViewType]:
        return sorted(self.views.keys(), key=lambda v: list(ViewType).index(v))


class CommitRequest(BaseModel):
    """
    Input to RevisionRepository.commit_revision().

    parent_revision_id is the revision the user was editing: either a row id
    from a previous batch or a batch_id. When None the active batch is the parent.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    product_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    target_view: ViewType
    new_image_url: str = Field(..., min_length=1)
    new_thumbnail_url: Optional[str] = None
    edit_prompt: str = Field(..., min_length=1, description="Composed prompt sent to the model")
    user_edit_instructions: str = Field(..., min_length=1, description="Raw text the user typed")
    model_used: str = Field(..., min_length=1)
    parent_revision_id: Optional[str] = None


class CommitResult(BaseModel):
    """Outcome of a successful commit_revision()."""
    batch_id: str
    revision_number: int
    target_record_id: str
    parent_batch_id: str
    parent_revision_number: int
    records: List[ViewRecord]


class RevisionHistoryEntry(BaseModel):
    """One batch in the revision history listing."""
    batch_id: str
    revision_number: int
    is_active: bool
    created_at: Optional[datetime] = None
    edit_type: Optional[EditType] = None
    regenerated_view: Optional[ViewType] = None
    user_edit_instructions: Optional[str] = None
    views: Dict[ViewType, str] = Field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batchId": self.batch_id,
            "revisionNumber": self.revision_number,
            "isActive": self.is_active,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "editType": self.edit_type.value if self.edit_type else None,
            "regeneratedView": self.regenerated_view.value if self.regenerated_view else None,
            "userEditInstructions": self.user_edit_instructions,
            "views": {view.value: url for view, url in self.views.items()},
        }
