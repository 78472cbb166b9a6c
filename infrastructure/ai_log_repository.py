# ============================================================================
# AI OPERATION LOG REPOSITORY
# ============================================================================
# STATUS: Infrastructure - Append-only generation audit log
# PURPOSE: Database operations for app.ai_operation_logs
# EXPORTS: AIOperationLogRepository
# DEPENDENCIES: psycopg, core.models.results
# ============================================================================
"""
AI Operation Log Repository.

One row per generation attempt: model, duration, retry count, fallback
use, outcome. Append-only; rows are never updated.
"""

import json

from psycopg import sql

from util_logger import LoggerFactory, ComponentType
from core.models.results import AIOperationLog
from .postgresql import PostgreSQLRepository

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "AIOperationLogRepository")


class AIOperationLogRepository(PostgreSQLRepository):
    """
    Repository for AI operation logs.

    Table: app.ai_operation_logs
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.table = "ai_operation_logs"
        self.schema = self.schema_name

    # =========================================================================
    # CREATE
    # =========================================================================

    def create(self, entry: AIOperationLog) -> None:
        """
        Append one log row.

        Raises:
            RuntimeError: Database failure (callers treat this as non-fatal)
        """
        query = sql.SQL("""
            INSERT INTO {}.{} (
                operation_id, function_name, model, provider, operation_type,
                status, duration_ms, retry_count, fallback_used,
                user_id, product_id, input, output, error
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """).format(
            sql.Identifier(self.schema),
            sql.Identifier(self.table)
        )
        self._execute_query(query, (
            entry.operation_id,
            entry.function_name,
            entry.model,
            entry.provider,
            entry.operation_type,
            entry.status,
            entry.duration_ms,
            entry.retry_count,
            entry.fallback_used,
            entry.user_id,
            entry.product_id,
            json.dumps(entry.input, default=str),
            json.dumps(entry.output, default=str),
            entry.error,
        ))
        logger.debug(f"📝 AI operation {entry.operation_id} logged ({entry.status})")


__all__ = ['AIOperationLogRepository']
