# ============================================================================
# REPOSITORY FACTORY
# ============================================================================
# STATUS: Infrastructure - Central factory for repository and adapter instances
# PURPOSE: Single creation point for PostgreSQL repositories, blob and Gemini
# EXPORTS: RepositoryFactory
# ============================================================================
"""
Repository Factory - Central Creation Point.

Services receive their collaborators from here (or from tests, which pass
fakes directly to the service constructors).

Usage:
    repos = RepositoryFactory.create_repositories()
    revision_repo = repos['revision_repo']
"""

from typing import Dict, Any, Optional

from util_logger import LoggerFactory, ComponentType
from .ai_log_repository import AIOperationLogRepository
from .credit_repository import CreditRepository
from .product_repository import ProductRepository
from .revision_repository import RevisionRepository

logger = LoggerFactory.create_logger(ComponentType.FACTORY, "RepositoryFactory")


class RepositoryFactory:
    """Factory for creating repository instances."""

    @staticmethod
    def create_repositories(
        connection_string: Optional[str] = None,
        schema_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create every PostgreSQL repository the regeneration pipeline needs.

        Returns:
            Dictionary with revision_repo, credit_repo, product_repo, ai_log_repo
        """
        logger.info("🏭 Creating PostgreSQL repositories")
        kwargs = {'connection_string': connection_string, 'schema_name': schema_name}
        repos = {
            'revision_repo': RevisionRepository(**kwargs),
            'credit_repo': CreditRepository(**kwargs),
            'product_repo': ProductRepository(**kwargs),
            'ai_log_repo': AIOperationLogRepository(**kwargs),
        }
        logger.info("✅ All repositories created successfully")
        return repos

    @staticmethod
    def create_credit_repository(
        connection_string: Optional[str] = None,
        schema_name: Optional[str] = None
    ) -> CreditRepository:
        return CreditRepository(connection_string=connection_string, schema_name=schema_name)

    @staticmethod
    def create_blob_repository() -> 'BlobRepository':
        """
        Blob repository singleton.

        This is the centralized authentication point for blob operations.
        """
        from .blob import BlobRepository

        logger.info("🏭 Creating Blob repository")
        return BlobRepository.instance()

    @staticmethod
    def create_gemini_client() -> 'GeminiImageClient':
        """Gemini adapter configured from config.generation."""
        from .gemini_client import GeminiImageClient

        logger.info("🏭 Creating Gemini image client")
        return GeminiImageClient()

    @staticmethod
    def create_reference_loader() -> 'ReferenceImageLoader':
        from config import get_config
        from .gemini_client import ReferenceImageLoader

        return ReferenceImageLoader(
            timeout_seconds=get_config().generation.reference_fetch_timeout_seconds
        )


__all__ = ['RepositoryFactory']
