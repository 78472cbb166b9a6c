"""
HTTP trigger tests.

Triggers are built with stub services and driven with real
azure.functions.HttpRequest objects; assertions are on status code and
JSON body only.
"""

import json

import azure.functions as func
import pytest

from core.errors import ErrorCode
from core.models.enums import RegenerationState, ViewType
from core.models.results import RegenerationResult
from core.models.revision import CommitResult, RevisionHistoryEntry, ViewRecord
from core.schema import InsufficientPrivilegesError
from exceptions import ContextResolutionError
from triggers.http_base import USER_ID_HEADER
from triggers.regenerate_view import RegenerateViewTrigger
from triggers.revisions import InitialRevisionTrigger, RevisionHistoryTrigger
from triggers.schema_deploy import SchemaDeployTrigger


def _request(method="POST", body=None, user="user-1", route=None, params=None, url="/api/test"):
    headers = {USER_ID_HEADER: user} if user else {}
    raw = body if isinstance(body, bytes) else (json.dumps(body).encode() if body is not None else b"")
    return func.HttpRequest(
        method=method,
        url=url,
        headers=headers,
        params=params or {},
        route_params=route or {},
        body=raw,
    )


def _json(response):
    return json.loads(response.get_body())


class StubRegenerationService:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def regenerate_single_view(self, user_id, request, request_id=None):
        self.calls.append((user_id, request, request_id))
        return self.result


class StubHistoryService:
    def __init__(self, history=None, error=None):
        self.history = history or []
        self.error = error
        self.seeded = []
        self.limits = []

    def list_history(self, user_id, product_id, limit=None):
        if self.error:
            raise self.error
        self.limits.append(limit)
        return self.history

    def seed_initial(self, user_id, request):
        self.seeded.append((user_id, request))
        record = ViewRecord(
            id="row-1", product_id=request["product_id"], user_id=user_id, revision_number=0,
            batch_id="initial_p_1", view_type=ViewType.FRONT, image_url=request["views"]["front"],
        )
        return CommitResult(
            batch_id="initial_p_1", revision_number=0, target_record_id="row-1",
            parent_batch_id="initial_p_1", parent_revision_number=0, records=[record],
        )


SUCCESS = RegenerationResult(
    success=True,
    new_view_url="https://blob.test/new.png",
    new_revision_id="row-9",
    new_revision_number=4,
    new_batch_id="single_view_edit_4_1",
    credits_used=1,
    model_used="flash-model",
    state_reached=RegenerationState.DONE,
)

REGEN_ROUTE = {"product_id": "prod-1", "view_type": "Side"}
REGEN_BODY = {
    "revisionId": "single_view_edit_3_1",
    "editPrompt": "make it gold",
    "referenceViews": {"side": "https://images.test/s.png", "diagonal": "https://images.test/x.png"},
}


# ============================================================================
# REGENERATE VIEW
# ============================================================================

class TestRegenerateViewTrigger:

    def test_success(self):
        service = StubRegenerationService(SUCCESS)
        trigger = RegenerateViewTrigger(regeneration_service=service)

        response = trigger.handle_request(_request(body=REGEN_BODY, route=REGEN_ROUTE))

        assert response.status_code == 200
        body = _json(response)
        assert body["newRevisionNumber"] == 4
        assert body["creditsUsed"] == 1
        assert body["request_id"]

        user_id, payload, _ = service.calls[0]
        assert user_id == "user-1"
        assert payload == {
            "product_id": "prod-1",
            "view_type": "side",
            "revision_id": "single_view_edit_3_1",
            "edit_prompt": "make it gold",
            "reference_views": {"side": "https://images.test/s.png"},
        }

    def test_request_id_header_propagated(self):
        service = StubRegenerationService(SUCCESS)
        trigger = RegenerateViewTrigger(regeneration_service=service)
        req = func.HttpRequest(
            method="POST", url="/api/x", body=json.dumps(REGEN_BODY).encode(),
            headers={USER_ID_HEADER: "u", "X-Request-ID": "req-77"}, route_params=REGEN_ROUTE,
        )
        response = trigger.handle_request(req)
        assert response.headers["X-Request-ID"] == "req-77"
        assert service.calls[0][2] == "req-77"

    @pytest.mark.parametrize(
        "code,status",
        [
            (ErrorCode.INSUFFICIENT_CREDIT, 402),
            (ErrorCode.GENERATION_REJECTED, 422),
            (ErrorCode.GENERATION_UNAVAILABLE, 503),
            (ErrorCode.REVISION_NOT_FOUND, 404),
            (ErrorCode.PARTIAL_INSERT_FAILURE, 500),
        ],
        ids=lambda v: v.value if isinstance(v, ErrorCode) else str(v),
    )
    def test_failed_result_status(self, code, status):
        failed = RegenerationResult(success=False, error="nope", error_code=code, state_reached=RegenerationState.FAILED)
        trigger = RegenerateViewTrigger(regeneration_service=StubRegenerationService(failed))

        response = trigger.handle_request(_request(body=REGEN_BODY, route=REGEN_ROUTE))

        assert response.status_code == status
        body = _json(response)
        assert body["success"] is False
        assert body["errorCode"] == code.value
        assert body["creditsUsed"] == 0

    def test_missing_identity(self):
        service = StubRegenerationService(SUCCESS)
        trigger = RegenerateViewTrigger(regeneration_service=service)
        response = trigger.handle_request(_request(body=REGEN_BODY, route=REGEN_ROUTE, user=None))
        assert response.status_code == 401
        assert service.calls == []

    def test_wrong_method(self):
        trigger = RegenerateViewTrigger(regeneration_service=StubRegenerationService(SUCCESS))
        response = trigger.handle_request(_request(method="GET", route=REGEN_ROUTE))
        assert response.status_code == 405

    @pytest.mark.parametrize(
        "body",
        [b"not json", b"[1, 2]", {"revisionId": "r", "editPrompt": "e", "referenceViews": ["side"]}],
        ids=["invalid-json", "array", "reference-list"],
    )
    def test_bad_body(self, body):
        trigger = RegenerateViewTrigger(regeneration_service=StubRegenerationService(SUCCESS))
        response = trigger.handle_request(_request(body=body, route=REGEN_ROUTE))
        assert response.status_code == 400

    def test_unexpected_service_error(self):
        class Exploding:
            def regenerate_single_view(self, *args, **kwargs):
                raise RuntimeError("boom")

        trigger = RegenerateViewTrigger(regeneration_service=Exploding())
        response = trigger.handle_request(_request(body=REGEN_BODY, route=REGEN_ROUTE))
        assert response.status_code == 500
        assert _json(response)["message"] == "An unexpected error occurred"


# ============================================================================
# REVISIONS
# ============================================================================

class TestRevisionTriggers:

    def test_history(self):
        entry = RevisionHistoryEntry(
            batch_id="single_view_edit_2_1", revision_number=2, is_active=True,
            views={ViewType.FRONT: "https://images.test/f.png"},
        )
        service = StubHistoryService(history=[entry])
        trigger = RevisionHistoryTrigger(history_service=service)

        response = trigger.handle_request(_request(method="GET", route={"product_id": "prod-1"}, params={"limit": "5"}))

        assert response.status_code == 200
        body = _json(response)
        assert body["count"] == 1
        assert body["revisions"][0]["views"] == {"front": "https://images.test/f.png"}
        assert service.limits == [5]

    @pytest.mark.parametrize("limit", ["0", "501", "ten"])
    def test_history_limit_validated(self, limit):
        trigger = RevisionHistoryTrigger(history_service=StubHistoryService())
        response = trigger.handle_request(_request(method="GET", route={"product_id": "p"}, params={"limit": limit}))
        assert response.status_code == 400

    def test_history_of_foreign_product(self):
        error = ContextResolutionError("Product p not found", error_code=ErrorCode.PRODUCT_NOT_FOUND)
        trigger = RevisionHistoryTrigger(history_service=StubHistoryService(error=error))
        response = trigger.handle_request(_request(method="GET", route={"product_id": "p"}))
        assert response.status_code == 404
        assert _json(response)["error"] == "PRODUCT_NOT_FOUND"

    def test_seed_initial(self):
        service = StubHistoryService()
        trigger = InitialRevisionTrigger(history_service=service)
        body = {"views": {"front": "https://images.test/f.png"}, "model": "pro-model"}

        response = trigger.handle_request(_request(body=body, route={"product_id": "prod-1"}))

        assert response.status_code == 201
        assert _json(response)["revisionNumber"] == 0
        assert service.seeded[0][1]["model"] == "pro-model"

    def test_seed_requires_views(self):
        trigger = InitialRevisionTrigger(history_service=StubHistoryService())
        response = trigger.handle_request(_request(body={"views": {}}, route={"product_id": "prod-1"}))
        assert response.status_code == 400


# ============================================================================
# SCHEMA DEPLOY
# ============================================================================

class StubSchemaManager:
    app_schema = "app"

    def __init__(self, error=None):
        self.error = error
        self.deployed = 0

    def list_missing_tables(self):
        return ["ai_operation_logs"]

    def validate_and_initialize_schema(self):
        if self.error:
            raise self.error
        self.deployed += 1
        return {"validation_successful": True, "tables_created": 1}


class TestSchemaDeployTrigger:

    def test_get_reports_missing(self):
        trigger = SchemaDeployTrigger(schema_manager=StubSchemaManager())
        response = trigger.handle_request(_request(method="GET", user=None))
        assert response.status_code == 200
        assert _json(response)["missing_tables"] == ["ai_operation_logs"]

    def test_post_requires_confirm(self):
        manager = StubSchemaManager()
        response = SchemaDeployTrigger(schema_manager=manager).handle_request(_request(user=None))
        assert response.status_code == 400
        assert manager.deployed == 0

    def test_post_with_confirm(self):
        manager = StubSchemaManager()
        response = SchemaDeployTrigger(schema_manager=manager).handle_request(
            _request(user=None, params={"confirm": "yes"})
        )
        assert response.status_code == 200
        assert _json(response)["tables_created"] == 1

    def test_insufficient_privileges(self):
        manager = StubSchemaManager(error=InsufficientPrivilegesError("no CREATE on database"))
        response = SchemaDeployTrigger(schema_manager=manager).handle_request(
            _request(user=None, params={"confirm": "yes"})
        )
        assert response.status_code == 403
