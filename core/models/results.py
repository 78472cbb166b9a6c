"""
Regeneration Request and Result Data Models.

Represents the exposed regenerateSingleView contract and the records the
pipeline produces along the way. No business logic - pure data structures.

Exports:
    RegenerationRequest: Input to the single-view regeneration orchestrator
    RegenerationResult: Structured outcome (never an exception)
    UploadedImage: Location of an uploaded generated view
    AIOperationLog: One row of app.ai_operation_logs
    InitialRevisionRequest: Input for seeding revision 0
"""

from datetime import datetime
from typing import Dict, Any, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from core.errors import ErrorCode, get_http_status_code
from .enums import ViewType, RegenerationState


class RegenerationRequest(BaseModel):
    """
    Input to regenerate_single_view().

    reference_views maps view type to the image the user currently sees for
    that view; the entry for view_type becomes the generation reference.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    product_id: str = Field(..., min_length=1)
    view_type: ViewType
    revision_id: str = Field(..., min_length=1, description="Row id or batch id being edited")
    edit_prompt: str = Field(..., min_length=1, description="User's free-text edit instruction")
    reference_views: Dict[ViewType, str] = Field(default_factory=dict)

    @field_validator('reference_views', mode='before')
    @classmethod
    def drop_empty_references(cls, v):
        if not v:
            return {}
        return {k: u for k, u in v.items() if isinstance(u, str) and u.strip()}


class RegenerationResult(BaseModel):
    """
    Structured outcome of one regeneration attempt.

    Success carries the new view URL and revision identifiers; failure
    carries an error message and code. credits_used is 1 on success and 0
    on every failure path.
    """
    success: bool
    new_view_url: Optional[str] = None
    new_revision_id: Optional[str] = None
    new_revision_number: Optional[int] = None
    new_batch_id: Optional[str] = None
    credits_used: int = 0
    model_used: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    state_reached: RegenerationState = RegenerationState.START
    operator_alert: bool = False

    @property
    def http_status(self) -> int:
        if self.success:
            return 200
        return get_http_status_code(self.error_code or ErrorCode.UNEXPECTED_ERROR)

    def to_response(self) -> Dict[str, Any]:
        """camelCase payload for the editor."""
        if self.success:
            return {
                "success": True,
                "newViewUrl": self.new_view_url,
                "newRevisionId": self.new_revision_id,
                "newRevisionNumber": self.new_revision_number,
                "newBatchId": self.new_batch_id,
                "creditsUsed": self.credits_used,
                "modelUsed": self.model_used,
            }
        return {
            "success": False,
            "error": self.error,
            "errorCode": self.error_code.value if self.error_code else None,
            "creditsUsed": self.credits_used,
        }


class UploadedImage(BaseModel):
    """Location of an uploaded generated view."""
    url: str
    blob_path: str
    container: str
    size: int = 0
    etag: Optional[str] = None


class AIOperationLog(BaseModel):
    """
    One row of app.ai_operation_logs.

    Written once per regeneration attempt for cost and quality analysis.
    """
    operation_id: str
    function_name: str = "regenerate_single_view"
    model: Optional[str] = None
    provider: str = "google"
    operation_type: str = "image_generation"
    status: str = "success"
    duration_ms: int = 0
    retry_count: int = 0
    fallback_used: bool = False
    user_id: Optional[str] = None
    product_id: Optional[str] = None
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    created_at: Optional[datetime] = None


class InitialRevisionRequest(BaseModel):
    """Input for seeding revision 0 of a product."""
    model_config = ConfigDict(str_strip_whitespace=True)

    product_id: str = Field(..., min_length=1)
    views: Dict[ViewType, str] = Field(..., min_length=1)
    model: Optional[str] = None
    thumbnails: Dict[ViewType, str] = Field(default_factory=dict)
