"""
Core Data Models Package.

Contains pure data structures without business logic.
All business logic is in the core.logic package.

Exports:
    ViewType, ViewClass, ModelTier, EditType, ReservationStatus, PlanType,
    LogoSource, RegenerationState: Enums
    ViewRecord, RevisionBatch, CommitRequest, CommitResult, RevisionHistoryEntry: Revision models
    CreditAccount, CreditAllocation, CreditReservation: Ledger models
    LogoCandidates, ResolvedLogo, ProductContext: Product context
    ImagePayload, GenerationRequest, GeneratedImage, TierPlan: Gateway models
    RegenerationRequest, RegenerationResult, UploadedImage, AIOperationLog,
    InitialRevisionRequest: Pipeline contracts
"""

from .enums import (
    ViewType,
    ViewClass,
    ModelTier,
    EditType,
    ReservationStatus,
    PlanType,
    LogoSource,
    RegenerationState,
)

from .revision import (
    ViewRecord,
    RevisionBatch,
    CommitRequest,
    CommitResult,
    RevisionHistoryEntry,
)

from .credit import (
    CreditAccount,
    CreditAllocation,
    CreditReservation,
)

from .product import (
    LogoCandidates,
    ResolvedLogo,
    ProductContext,
)

from .generation import (
    ImagePayload,
    GenerationRequest,
    GeneratedImage,
    TierPlan,
)

from .results import (
    RegenerationRequest,
    RegenerationResult,
    UploadedImage,
    AIOperationLog,
    InitialRevisionRequest,
)

__all__ = [
    'ViewType', 'ViewClass', 'ModelTier', 'EditType', 'ReservationStatus',
    'PlanType', 'LogoSource', 'RegenerationState',
    'ViewRecord', 'RevisionBatch', 'CommitRequest', 'CommitResult', 'RevisionHistoryEntry',
    'CreditAccount', 'CreditAllocation', 'CreditReservation',
    'LogoCandidates', 'ResolvedLogo', 'ProductContext',
    'ImagePayload', 'GenerationRequest', 'GeneratedImage', 'TierPlan',
    'RegenerationRequest', 'RegenerationResult', 'UploadedImage', 'AIOperationLog',
    'InitialRevisionRequest',
]
