# ============================================================================
# SCHEMA DEPLOYMENT TRIGGER
# ============================================================================
# STATUS: Trigger layer - POST /api/db/schema/deploy
# PURPOSE: Create the app schema and any missing tables
# EXPORTS: SchemaDeployTrigger, schema_deploy_trigger
# DEPENDENCIES: core.schema.deployer
# ============================================================================
"""
Schema Deployment Trigger.

    GET  /api/db/schema/deploy              - report missing tables, change nothing
    POST /api/db/schema/deploy?confirm=yes  - create schema and missing tables

All DDL is CREATE ... IF NOT EXISTS, so deploying twice is harmless.
Registered with function-level auth in function_app.py.

Exports:
    SchemaDeployTrigger: HTTP trigger class for schema deployment
    schema_deploy_trigger: Singleton instance
"""

from typing import List

import azure.functions as func

from core.schema import SchemaManagementError, InsufficientPrivilegesError
from .http_base import BaseHttpTrigger, ResponseData


class SchemaDeployTrigger(BaseHttpTrigger):
    """Idempotent app schema deployment."""

    def __init__(self, schema_manager=None):
        super().__init__("schema_deploy")
        self._schema_manager = schema_manager

    @property
    def schema_manager(self):
        if self._schema_manager is None:
            from core.schema import SchemaManagerFactory
            self._schema_manager = SchemaManagerFactory.create_schema_manager()
        return self._schema_manager

    def get_allowed_methods(self) -> List[str]:
        return ["GET", "POST"]

    def process_request(self, req: func.HttpRequest, request_id: str) -> ResponseData:
        if req.method == "GET":
            return {
                "success": True,
                "schema": self.schema_manager.app_schema,
                "missing_tables": self.schema_manager.list_missing_tables(),
                "deployment": "Use POST /api/db/schema/deploy?confirm=yes to deploy",
            }

        if req.params.get("confirm") != "yes":
            raise ValueError("Add ?confirm=yes to deploy the schema")

        try:
            results = self.schema_manager.validate_and_initialize_schema()
        except InsufficientPrivilegesError as e:
            raise PermissionError(str(e)) from e
        except SchemaManagementError as e:
            self.logger.error(f"❌ Schema deployment failed: {e}")
            return {"success": False, "error": "Schema deployment failed", "message": str(e)}, 500

        return {"success": results['validation_successful'], **results}


# Create singleton instance for use in function_app.py
schema_deploy_trigger = SchemaDeployTrigger()
