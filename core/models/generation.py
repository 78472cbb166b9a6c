"""
Generation Gateway Models.

Exports:
    ImagePayload: Raw image bytes with mime type
    GenerationRequest: Input to the Generation Gateway
    GeneratedImage: Successful gateway output
    TierPlan: Primary / fallback model and retry budget for one view class
"""

from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from .enums import ViewType


class ImagePayload(BaseModel):
    """Image bytes ready to be sent to or received from the model."""
    data: bytes
    mime_type: str = "image/png"

    @property
    def extension(self) -> str:
        subtype = self.mime_type.split("/")[-1].lower()
        return "jpg" if subtype == "jpeg" else subtype


class GenerationRequest(BaseModel):
    """
    One call to the Generation Gateway.

    reference_image and logo_image are URLs (http(s) or data:). model
    overrides the tier policy's primary model; retry_budget and
    fallback_enabled override config.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    prompt: str = Field(..., min_length=1)
    reference_image: str = Field(..., min_length=1)
    logo_image: Optional[str] = None
    view_type: ViewType
    model: Optional[str] = None
    fallback_enabled: Optional[bool] = None
    retry_budget: Optional[int] = Field(default=None, ge=1)


class GeneratedImage(BaseModel):
    """Successful gateway output."""
    image: ImagePayload
    model_used: str
    fallback_used: bool = False
    attempts: int = Field(default=1, ge=1)


class TierPlan(BaseModel):
    """Primary / fallback model and retry budget for one view class."""
    model_config = ConfigDict(frozen=True)

    primary_model: str
    fallback_model: Optional[str] = None
    retry_budget: int = Field(..., ge=1)
