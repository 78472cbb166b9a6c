"""
Pure Enumeration Types for Core Framework.

Defines views, model tiers, revision edit types, credit reservation states
and the regeneration state machine. No business logic - pure type
definitions only.

Exports:
    ViewType: Camera angle of a product image
    ViewClass: Hero / detail grouping that drives model tier selection
    ModelTier: Pro / Flash generation tiers
    EditType: How a view record was produced
    ReservationStatus: Credit reservation lifecycle
    PlanType: Credit source kinds
    LogoSource: Where the effective logo came from
    RegenerationState: Single-view regeneration state machine
"""

from enum import Enum


class ViewClass(str, Enum):
    """
    Grouping of views for model tier selection.

    HERO views are the ones customers look at first and get the
    higher-capability model.
    """

    HERO = "hero"
    DETAIL = "detail"


class ViewType(str, Enum):
    """
    One camera angle of a product.

    Every revision batch carries the same set of view types as its
    predecessor.
    """

    FRONT = "front"
    BACK = "back"
    SIDE = "side"
    TOP = "top"
    BOTTOM = "bottom"

    @property
    def view_class(self) -> ViewClass:
        if self in (ViewType.FRONT, ViewType.BACK):
            return ViewClass.HERO
        return ViewClass.DETAIL


class ModelTier(str, Enum):
    """Generation model tiers. Fallback only ever goes PRO -> FLASH."""

    PRO = "pro"
    FLASH = "flash"


class EditType(str, Enum):
    """How a view record was produced."""

    INITIAL = "initial"  # Revision 0 seeded from the first generation
    AI_EDIT = "ai_edit"  # Regenerated by the single-view pipeline
    MANUAL = "manual"  # Uploaded or edited by the user directly


class ReservationStatus(str, Enum):
    """
    Credit reservation lifecycle.

    State transitions:
    - RESERVED -> COMMITTED (regeneration succeeded)
    - RESERVED -> REFUNDED (any failure after reservation)

    COMMITTED and REFUNDED are terminal.
    """

    RESERVED = "reserved"
    COMMITTED = "committed"
    REFUNDED = "refunded"


class PlanType(str, Enum):
    """Credit source kinds, debited in CreditDefaults.PLAN_PRIORITY order."""

    SUBSCRIPTION = "subscription"
    TOP_UP = "top_up"
    ONE_TIME = "one_time"


class LogoSource(str, Enum):
    """Where the effective logo came from, highest priority first."""

    CHAT_UPLOAD = "chat_upload"
    PRODUCT_METADATA = "product_metadata"
    BRAND_PROFILE = "brand_profile"


class RegenerationState(str, Enum):
    """
    Single-view regeneration state machine.

    Happy path:
        START -> RESERVE_CREDIT -> RESOLVE_CONTEXT -> COMPOSE_PROMPT
              -> GENERATE -> UPLOAD -> COMMIT_REVISION -> DONE

    Compensation:
        any of RESOLVE_CONTEXT..COMMIT_REVISION -> REFUND_CREDIT -> FAILED
        RESERVE_CREDIT -> FAILED (nothing to refund)
    """

    START = "start"
    RESERVE_CREDIT = "reserve_credit"
    RESOLVE_CONTEXT = "resolve_context"
    COMPOSE_PROMPT = "compose_prompt"
    GENERATE = "generate"
    UPLOAD = "upload"
    COMMIT_REVISION = "commit_revision"
    DONE = "done"
    REFUND_CREDIT = "refund_credit"
    FAILED = "failed"
