"""
Product Context Models.

Read-only view of a product and its brand profile as needed by the
regeneration pipeline: who owns it and which logos are available.

Exports:
    LogoCandidates: The three candidate logo sources
    ResolvedLogo: The single effective logo and its source
    ProductContext: Product ownership plus logo candidates
"""

from typing import Optional
from pydantic import BaseModel

from .enums import LogoSource


class LogoCandidates(BaseModel):
    """
    Candidate logo sources, in priority order.

    chat_uploaded_logo only counts when chat_image_tool_type is "logo"; an
    image uploaded in chat for another purpose (reference photo, texture) is
    not a logo.
    """
    chat_uploaded_logo: Optional[str] = None
    chat_image_tool_type: Optional[str] = None
    product_logo: Optional[str] = None
    brand_profile_logo: Optional[str] = None


class ResolvedLogo(BaseModel):
    """The effective logo for one invocation."""
    url: str
    source: LogoSource


class ProductContext(BaseModel):
    """Product ownership and logo candidates."""
    product_id: str
    user_id: str
    brand_profile_id: Optional[str] = None
    logo_candidates: LogoCandidates = LogoCandidates()
