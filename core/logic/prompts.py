"""
Edit Prompt Composition.

Builds the natural-language instruction for regenerating exactly one view.
The prompt anchors generation on the reference image, applies only the
literal edit, and enumerates what must stay identical. A preserved attribute
is dropped from the list when the edit itself targets it, so "make the
background black" is not contradicted by "keep the background white".

Pure functions, no I/O.

Exports:
    PRESERVED_ATTRIBUTES: Attribute label -> keywords that mark it as targeted
    preserved_attributes: Attributes to preserve for a given instruction
    compose_edit_prompt: Build the prompt text
"""

from typing import Dict, List, Optional, Tuple

from exceptions import ContractViolationError
from ..models.enums import ViewType
from ..models.product import ResolvedLogo


PRESERVED_ATTRIBUTES: Dict[str, Tuple[str, ...]] = {
    "Product shape and proportions": ("shape", "proportion", "size", "taller", "shorter", "wider", "narrower", "thinner", "thicker"),
    "Lighting direction and intensity": ("light", "shadow", "brightness", "darker", "brighter"),
    "Camera angle and perspective": ("angle", "perspective", "camera", "rotate", "zoom"),
    "Background (white, centered)": ("background", "backdrop", "scene"),
    "Product positioning": ("position", "center", "move", "placement"),
    "Any existing logos, text, or branding": ("logo", "brand", "emblem", "mark", "text", "label", "lettering"),
}

# Always preserved; no edit instruction can target these
_FIXED_PRESERVED: List[str] = [
    "All elements not mentioned in the edit instructions",
    "Level of detail and realism",
]

_LOGO_CONTEXT = "Logo context: A logo is provided and should be included as requested."


def preserved_attributes(edit_instructions: str) -> List[str]:
    """
    Attributes the model must keep identical to the reference.

    Args:
        edit_instructions: User's edit text

    Returns:
        Ordered list of attribute labels, excluding those the edit targets
    """
    lowered = edit_instructions.lower()
    preserved = [
        label for label, keywords in PRESERVED_ATTRIBUTES.items()
        if not any(keyword in lowered for keyword in keywords)
    ]
    return preserved + _FIXED_PRESERVED


def compose_edit_prompt(
    view_type: ViewType,
    edit_instructions: str,
    logo: Optional[ResolvedLogo] = None
) -> str:
    """
    Build the edit prompt for one view.

    Args:
        view_type: View being regenerated
        edit_instructions: User's edit text (must be non-blank)
        logo: Logo being forwarded to the model, already gated

    Returns:
        Prompt text

    Raises:
        ContractViolationError: Blank instruction (callers validate first)
    """
    if not isinstance(view_type, ViewType):
        raise ContractViolationError(f"view_type must be ViewType, got {type(view_type).__name__}")
    if not isinstance(edit_instructions, str) or not edit_instructions.strip():
        raise ContractViolationError("edit_instructions must be a non-empty string")

    instructions = edit_instructions.strip()
    view = view_type.value
    preserve_lines = "\n".join(f"- {label}" for label in preserved_attributes(instructions))

    sections = [
        "You are editing an existing product image. You have a reference image that shows the current state.",
        f'TASK: Modify the {view} view by making ONLY the following change:\n"{instructions}"',
        "CRITICAL RULES - FOLLOW STRICTLY:\n"
        "1. START with the reference image provided - this is your base\n"
        "2. Make ONLY the specific modification requested in the edit instructions above\n"
        "3. DO NOT add any new elements (logos, text, patterns, decorations) unless explicitly requested\n"
        "4. DO NOT change colors, materials, shapes, or features that were not mentioned in the edit instructions\n"
        "5. Keep the exact same product design, proportions, lighting, and composition as the reference, "
        "except where the edit instructions say otherwise\n"
        "6. If asked to change one specific element, change ONLY that element and keep everything else "
        "EXACTLY as shown in the reference image",
        f"WHAT TO PRESERVE (keep identical to reference):\n{preserve_lines}",
    ]

    if logo is not None:
        sections.append(_LOGO_CONTEXT)

    sections.append(
        f"Output: Generate a photorealistic product {view} view that looks EXACTLY like the reference "
        f"image except for the specific change requested."
    )

    return "\n\n".join(sections)
