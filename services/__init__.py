"""
Service Layer - Business Orchestration.

Services sit between HTTP triggers and infrastructure. Each takes its
collaborators through the constructor and falls back to RepositoryFactory,
so tests pass in-memory fakes and production passes nothing.

Services:
    CreditLedger: Reserve / refund / commit with a scoped refund guard
    GenerationGateway: Model tier policy, retry, Pro -> Flash fallback
    ViewImageUploader: Generated image -> blob storage
    SingleViewRegenerationService: The regenerateSingleView coordinator
    RevisionHistoryService: Revision 0 seeding and history listing
"""

from .credit_ledger import CreditLedger, ReservationGuard
from .generation_gateway import GenerationGateway, ModelTierPolicy, compute_backoff
from .view_upload import ViewImageUploader
from .single_view_regeneration import SingleViewRegenerationService, RegenerationAttempt
from .initial_revision import RevisionHistoryService

__all__ = [
    'CreditLedger',
    'ReservationGuard',
    'GenerationGateway',
    'ModelTierPolicy',
    'compute_backoff',
    'ViewImageUploader',
    'SingleViewRegenerationService',
    'RegenerationAttempt',
    'RevisionHistoryService',
]
