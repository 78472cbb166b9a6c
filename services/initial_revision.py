# ============================================================================
# INITIAL REVISION SERVICE
# ============================================================================
# STATUS: Service - Revision 0 seeding and history listing
# PURPOSE: Give a product its first active batch; read revision history
# EXPORTS: RevisionHistoryService
# DEPENDENCIES: infrastructure.revision_repository, infrastructure.product_repository
# ============================================================================
"""
Revision History Service.

A product must own an active batch before any single-view regeneration is
possible. seed_initial() writes revision 0 from the views produced by the
first multiview generation. list_history() returns batches newest first.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from util_logger import LoggerFactory, ComponentType
from config import get_config
from core.models.results import InitialRevisionRequest
from core.models.revision import CommitResult, RevisionHistoryEntry
from exceptions import ValidationError

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "RevisionHistoryService")


class RevisionHistoryService:
    """
    Seed and list revision batches.

    Usage:
        service = RevisionHistoryService()
        result = service.seed_initial(user_id, {"product_id": pid, "views": {"front": url}})
    """

    def __init__(self, revision_repo=None, product_repo=None):
        if revision_repo is None or product_repo is None:
            from infrastructure.factory import RepositoryFactory
            repos = RepositoryFactory.create_repositories()
            revision_repo = revision_repo or repos['revision_repo']
            product_repo = product_repo or repos['product_repo']
        self.revision_repo = revision_repo
        self.product_repo = product_repo

    def seed_initial(
        self,
        user_id: str,
        request: Union[InitialRevisionRequest, Dict[str, Any]]
    ) -> CommitResult:
        """
        Write revision 0 for a product owned by user_id.

        Raises:
            ValidationError: Malformed request, or product already has revisions
            ContextResolutionError: Product missing or owned by another user
        """
        if not isinstance(request, InitialRevisionRequest):
            try:
                request = InitialRevisionRequest.model_validate(request or {})
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid initial revision request: {e.errors()[0].get('msg')}") from e

        self.product_repo.get_product_context(request.product_id, user_id)
        result = self.revision_repo.seed_initial_revision(
            request.product_id,
            user_id,
            request.views,
            model=request.model,
            thumbnails=request.thumbnails,
        )
        logger.info(f"🌱 Product {request.product_id} seeded with {len(result.records)} views")
        return result

    def list_history(self, user_id: str, product_id: str, limit: Optional[int] = None) -> List[RevisionHistoryEntry]:
        """
        Revision batches for a product, newest first.

        Raises:
            ContextResolutionError: Product missing or owned by another user
        """
        self.product_repo.get_product_context(product_id, user_id)
        limit = limit or get_config().revision_history_limit
        return self.revision_repo.list_history(product_id, limit=limit)


__all__ = ['RevisionHistoryService']
