"""
Logo Resolution Logic.

Chooses the single effective logo for a regeneration from three candidate
sources, and decides whether the logo may be forwarded to the model.

Resolution order (first valid wins, no merging):
    1. Logo uploaded in the current chat turn, tagged with tool type "logo"
    2. The product's persisted default logo
    3. The logo of the brand profile applied to the product

Gating:
    The resolved logo is only sent to the model when the user's edit
    instruction mentions logo / brand / emblem / mark. Otherwise it is
    withheld so the model cannot add branding nobody asked for.

Exports:
    LOGO_REFERENCE_PATTERN: Case-insensitive substring pattern used for gating
    is_valid_logo: Candidate value check
    resolve_logo: Pick the effective logo
    mentions_logo: Gating predicate over the edit instruction
    logo_for_generation: resolve_logo() filtered through mentions_logo()
"""

import re
from typing import Optional, Any

from ..models.enums import LogoSource
from ..models.product import LogoCandidates, ResolvedLogo


LOGO_REFERENCE_PATTERN = re.compile(r"logo|brand|emblem|mark", re.IGNORECASE)

LOGO_TOOL_TYPE = "logo"


def is_valid_logo(value: Any) -> bool:
    """A candidate counts only when it is a non-blank string."""
    return isinstance(value, str) and bool(value.strip())


def resolve_logo(candidates: LogoCandidates) -> Optional[ResolvedLogo]:
    """
    Pick the effective logo from the candidate sources.

    Args:
        candidates: LogoCandidates for the product

    Returns:
        ResolvedLogo, or None when no source holds a valid logo

    Example:
        >>> resolve_logo(LogoCandidates(product_logo="https://x/p.png",
        ...                             brand_profile_logo="https://x/b.png")).source
        <LogoSource.PRODUCT_METADATA: 'product_metadata'>
    """
    chat_is_logo = (candidates.chat_image_tool_type or "").strip().lower() == LOGO_TOOL_TYPE
    if chat_is_logo and is_valid_logo(candidates.chat_uploaded_logo):
        return ResolvedLogo(url=candidates.chat_uploaded_logo.strip(), source=LogoSource.CHAT_UPLOAD)

    if is_valid_logo(candidates.product_logo):
        return ResolvedLogo(url=candidates.product_logo.strip(), source=LogoSource.PRODUCT_METADATA)

    if is_valid_logo(candidates.brand_profile_logo):
        return ResolvedLogo(url=candidates.brand_profile_logo.strip(), source=LogoSource.BRAND_PROFILE)

    return None


def mentions_logo(edit_instructions: str) -> bool:
    """
    Check whether the edit instruction refers to a logo.

    Plain substring match, so "trademark" and "branding" count.
    """
    return bool(LOGO_REFERENCE_PATTERN.search(edit_instructions or ""))


def logo_for_generation(candidates: LogoCandidates, edit_instructions: str) -> Optional[ResolvedLogo]:
    """
    Effective logo to forward to the model, or None.

    Returns None whenever the instruction does not mention a logo, even if
    one resolves.
    """
    if not mentions_logo(edit_instructions):
        return None
    return resolve_logo(candidates)
