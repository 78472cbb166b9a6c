"""
Azure Functions entry point for the Multiview Revision Pipeline.

Exposes single-view regeneration of product images with credit-accounted
generation and versioned revision batches.

Architecture:
    HTTP -> Trigger -> SingleViewRegenerationService
                          |-- CreditLedger (reserve / refund / commit)
                          |-- ProductRepository + logo resolution
                          |-- Prompt composition
                          |-- GenerationGateway (Pro -> Flash fallback)
                          |-- ViewImageUploader (Blob Storage)
                          |-- RevisionRepository (atomic batch commit)

Exports:
    app: Azure Function App instance

Dependencies:
    azure.functions: Azure Functions SDK
    triggers/*: HTTP trigger implementations

Endpoints:
    Regeneration:
        POST /api/products/{product_id}/views/{view_type}/regenerate - regenerateSingleView

    Revisions:
        POST /api/products/{product_id}/revisions/initial - Seed revision 0
        GET  /api/products/{product_id}/revisions?limit=N - Revision history

    System:
        GET  /api/livez - Liveness probe, no dependencies checked
        GET|POST /api/db/schema/deploy?confirm=yes - Idempotent schema deployment (function key)

Environment Variables:
    POSTGIS_HOST, POSTGIS_DATABASE, POSTGIS_USER, POSTGIS_PASSWORD: PostgreSQL
    STORAGE_ACCOUNT_NAME or STORAGE_CONNECTION_STRING: Blob storage for generated views
    GEMINI_API_KEY: Image generation
    See config/ for the full list.
"""

# ========================================================================
# IMPORTS - Categorized by source for maintainability
# ========================================================================

# Native Python modules
import json
import logging
from datetime import datetime, timezone

# Azure SDK modules (3rd party - Microsoft)
import azure.functions as func

# Suppress Azure Identity and Azure SDK authentication/HTTP logging
logging.getLogger("azure.identity").setLevel(logging.WARNING)
logging.getLogger("azure.core.pipeline.policies.http_logging_policy").setLevel(logging.WARNING)
logging.getLogger("azure.storage").setLevel(logging.WARNING)
logging.getLogger("azure.core").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("google_genai").setLevel(logging.WARNING)

# Application modules (our code)
from util_logger import LoggerFactory, ComponentType
from triggers.regenerate_view import regenerate_view_trigger
from triggers.revisions import initial_revision_trigger, revision_history_trigger
from triggers.schema_deploy import schema_deploy_trigger

logger = LoggerFactory.create_logger(ComponentType.TRIGGER, "function_app")

# Initialize function app with HTTP auth level
app = func.FunctionApp(http_auth_level=func.AuthLevel.ANONYMOUS)


@app.route(route="livez", methods=["GET"])
def livez(req: func.HttpRequest) -> func.HttpResponse:
    """Liveness probe - is the app alive? No dependencies checked."""
    return func.HttpResponse(
        json.dumps({"status": "alive", "timestamp": datetime.now(timezone.utc).isoformat()}),
        status_code=200,
        mimetype="application/json"
    )


# ============================================================================
# REGENERATION ENDPOINTS
# ============================================================================

@app.route(route="products/{product_id}/views/{view_type}/regenerate", methods=["POST"])
def regenerate_view(req: func.HttpRequest) -> func.HttpResponse:
    """
    Regenerate one view and commit the next revision batch.

    Body: {"revisionId": ..., "editPrompt": ..., "referenceViews": {...}}
    """
    return regenerate_view_trigger.handle_request(req)


# ============================================================================
# REVISION ENDPOINTS
# ============================================================================

@app.route(route="products/{product_id}/revisions/initial", methods=["POST"])
def seed_initial_revision(req: func.HttpRequest) -> func.HttpResponse:
    """Seed revision 0. Body: {"views": {"front": url, ...}, "model": ...}"""
    return initial_revision_trigger.handle_request(req)


@app.route(route="products/{product_id}/revisions", methods=["GET"])
def list_revisions(req: func.HttpRequest) -> func.HttpResponse:
    """Revision history grouped by batch, newest first."""
    return revision_history_trigger.handle_request(req)


# ============================================================================
# SCHEMA MANAGEMENT
# ============================================================================

@app.route(route="db/schema/deploy", methods=["GET", "POST"], auth_level=func.AuthLevel.FUNCTION)
def schema_deploy(req: func.HttpRequest) -> func.HttpResponse:
    """Create the app schema and any missing tables (idempotent)."""
    return schema_deploy_trigger.handle_request(req)


logger.info("✅ Function app routes registered")
