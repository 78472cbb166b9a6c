"""
Core Business Logic Package.

Contains business logic that operates on pure data models.
Separated from models to maintain clean architecture.

Exports:
    State transitions: can_regeneration_transition, can_reservation_transition,
        is_regeneration_terminal, is_refundable_state
    Logo: resolve_logo, mentions_logo, logo_for_generation
    Prompts: compose_edit_prompt, preserved_attributes
    Revisions: make_batch_id, make_initial_batch_id, next_revision_number,
        group_batch, build_next_batch, build_initial_batch
"""

from .transitions import (
    can_regeneration_transition,
    can_reservation_transition,
    get_regeneration_terminal_states,
    is_regeneration_terminal,
    is_refundable_state,
)

from .logo import (
    LOGO_REFERENCE_PATTERN,
    is_valid_logo,
    resolve_logo,
    mentions_logo,
    logo_for_generation,
)

from .prompts import (
    PRESERVED_ATTRIBUTES,
    preserved_attributes,
    compose_edit_prompt,
)

from .revision_builder import (
    make_batch_id,
    make_initial_batch_id,
    next_revision_number,
    group_batch,
    build_next_batch,
    build_initial_batch,
)

__all__ = [
    'can_regeneration_transition',
    'can_reservation_transition',
    'get_regeneration_terminal_states',
    'is_regeneration_terminal',
    'is_refundable_state',
    'LOGO_REFERENCE_PATTERN',
    'is_valid_logo',
    'resolve_logo',
    'mentions_logo',
    'logo_for_generation',
    'PRESERVED_ATTRIBUTES',
    'preserved_attributes',
    'compose_edit_prompt',
    'make_batch_id',
    'make_initial_batch_id',
    'next_revision_number',
    'group_batch',
    'build_next_batch',
    'build_initial_batch',
]
