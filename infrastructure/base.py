# ============================================================================
# BASE REPOSITORY - PURE ABSTRACT CLASS
# ============================================================================
# STATUS: Infrastructure - Repository hierarchy root
# PURPOSE: Common error handling and logging for all repositories
# EXPORTS: BaseRepository
# ============================================================================
"""
Base Repository - Pure Abstract Class.

Abstract base repository class that all storage-specific repositories inherit
from. Contains NO storage implementation details, only the error context
and operation logging shared by every repository.

Architecture:
    BaseRepository (this file - pure abstract)
        |
    Storage-specific bases (PostgreSQLRepository)
        |
    Domain repositories (RevisionRepository, CreditRepository, ...)

Exports:
    BaseRepository: Abstract base class for repositories
"""

from abc import ABC
from contextlib import contextmanager
from typing import Optional, Dict, Any

from exceptions import BusinessLogicError
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "BaseRepository")


class BaseRepository(ABC):
    """
    Pure abstract base repository.

    Responsibilities:
    ----------------
    - Consistent error logging with operation and entity context
    - Operation result logging

    Storage-specific subclasses add connection management and query
    execution.
    """

    def __init__(self):
        self.logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, self.__class__.__name__)

    @contextmanager
    def _error_context(self, operation: str, entity_id: Optional[str] = None):
        """
        Log failures of a repository operation, then re-raise.

        Domain errors (BusinessLogicError) are expected outcomes and are
        logged at WARNING unless they carry an operator alert. Everything else
        is logged at ERROR. The original exception always propagates.

        Usage:
            with self._error_context("revision commit", product_id):
                ...
        """
        target = f" for {entity_id}" if entity_id else ""
        try:
            yield
        except BusinessLogicError as e:
            if e.operator_alert:
                self.logger.error(f"❌ {operation} failed{target}: {e}")
            else:
                self.logger.warning(f"⚠️ {operation} rejected{target}: {e}")
            raise
        except Exception as e:
            self.logger.error(f"❌ {operation} failed{target}: {type(e).__name__}: {e}")
            raise

    def _log_operation_result(
        self,
        operation: str,
        entity_id: str,
        success: bool,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log the outcome of a completed operation."""
        suffix = f" {details}" if details else ""
        if success:
            self.logger.info(f"✅ {operation} succeeded for {entity_id}{suffix}")
        else:
            self.logger.warning(f"⚠️ {operation} did not apply for {entity_id}{suffix}")


__all__ = ['BaseRepository']
