"""
Single-view regeneration end-to-end tests.

Runs the real orchestrator, ledger, gateway and uploader against in-memory
repositories and a scripted model client. Each scenario checks the three
things a user can observe: the result, their balance, and which revision
batch is active afterwards.
"""

import threading
from types import SimpleNamespace

import psycopg
import pytest

from core.errors import ErrorCode
from core.models.enums import LogoSource, RegenerationState, ViewType
from core.models.results import RegenerationRequest
from exceptions import ContractViolationError, DatabaseError
from services.credit_ledger import CreditLedger
from services.generation_gateway import GenerationGateway
from services.single_view_regeneration import RegenerationAttempt, SingleViewRegenerationService
from services.view_upload import ViewImageUploader
from tests.factories.fakes import (
    FakeAILogRepository,
    FakeBlobRepository,
    FakeCreditRepository,
    FakeGeminiClient,
    FakeProductRepository,
    FakeReferenceLoader,
    FakeRevisionRepository,
)
from tests.factories.model_factories import make_batch_records, make_product_context


USER = "user-42"
PRODUCT = "prod-7"
PRODUCT_LOGO = "https://logos.test/product.png"


class _APIError(Exception):
    def __init__(self, code, status):
        super().__init__(f"{code} {status}")
        self.code = code
        self.status = status


def _build(app_config, balance=5, outcomes=None, barrier=None, logos=None,
           ai_log_fails=False, blob_fails=False, views=None):
    revisions = FakeRevisionRepository()
    batches = {}
    for number in range(4):
        kwargs = {"views": views} if views else {}
        batches[number] = revisions.add_batch(
            make_batch_records(PRODUCT, USER, revision_number=number, is_active=(number == 3), **kwargs)
        )

    credits = FakeCreditRepository({USER: balance})
    client = FakeGeminiClient(outcomes, barrier=barrier)
    loader = FakeReferenceLoader()
    blobs = FakeBlobRepository(fail=blob_fails)
    products = FakeProductRepository(make_product_context(PRODUCT, USER, **(logos or {})))
    ai_logs = FakeAILogRepository(fail=ai_log_fails)

    service = SingleViewRegenerationService(
        ledger=CreditLedger(repository=credits),
        gateway=GenerationGateway(
            client=client, loader=loader, config=app_config.generation, sleep=lambda _: None
        ),
        uploader=ViewImageUploader(blob_repository=blobs, config=app_config.storage),
        revision_repo=revisions,
        product_repo=products,
        ai_log_repo=ai_logs,
        config=app_config,
    )
    return SimpleNamespace(
        service=service, revisions=revisions, batches=batches, credits=credits,
        client=client, loader=loader, blobs=blobs, products=products, ai_logs=ai_logs,
    )


def _request(batch_records, view=ViewType.SIDE, edit="make the strap gold", **overrides):
    base = dict(
        product_id=PRODUCT,
        view_type=view,
        revision_id=batch_records[0].batch_id,
        edit_prompt=edit,
    )
    base.update(overrides)
    return RegenerationRequest(**base)


def _image_urls(records):
    return {r.view_type: r.image_url for r in records}


@pytest.fixture
def pipeline(app_config):
    return _build(app_config)


# ============================================================================
# SUCCESS
# ============================================================================

class TestSuccessfulRegeneration:

    def test_revision_three_to_four(self, pipeline):
        parent = pipeline.batches[3]

        result = pipeline.service.regenerate_single_view(USER, _request(parent, ViewType.SIDE))

        assert result.success is True
        assert result.new_revision_number == 4
        assert result.credits_used == 1
        assert result.model_used == "flash-model"
        assert result.state_reached == RegenerationState.DONE
        assert pipeline.credits.get_balance(USER) == 4

        active = pipeline.revisions.get_active_batch(PRODUCT)
        assert active.revision_number == 4
        assert active.batch_id == result.new_batch_id
        assert active.views[ViewType.SIDE].image_url == result.new_view_url
        assert active.views[ViewType.SIDE].id == result.new_revision_id
        parent_urls = _image_urls(parent)
        for view, record in active.views.items():
            if view != ViewType.SIDE:
                assert record.image_url == parent_urls[view]
        assert all(not r.is_active for r in pipeline.revisions.rows if r.revision_number == 3)

    def test_credit_commit_failure_after_revision_commit(self, pipeline):
        # The revision is live and the credit was debited at reserve time
        pipeline.credits.commit_error = psycopg.OperationalError("server closed the connection")

        result = pipeline.service.regenerate_single_view(USER, _request(pipeline.batches[3]))

        assert result.success is True
        assert result.new_revision_number == 4
        assert result.credits_used == 1
        assert pipeline.revisions.get_active_batch(PRODUCT).revision_number == 4
        assert pipeline.credits.refund_calls == 0
        assert pipeline.credits.get_balance(USER) == 4

    def test_uploaded_image_is_committed(self, pipeline):
        result = pipeline.service.regenerate_single_view(USER, _request(pipeline.batches[3]))
        assert len(pipeline.blobs.blobs) == 1
        assert result.new_view_url.startswith("https://blob.test/product-images/uploads/prod-7/")

    def test_edit_older_revision_numbers_from_history(self, pipeline):
        result = pipeline.service.regenerate_single_view(USER, _request(pipeline.batches[1], ViewType.TOP))

        assert result.new_revision_number == 4
        active = pipeline.revisions.get_active_batch(PRODUCT)
        older = _image_urls(pipeline.batches[1])
        assert active.views[ViewType.FRONT].image_url == older[ViewType.FRONT]
        assert active.views[ViewType.TOP].metadata["parent_revision_number"] == 1

    def test_revision_referenced_by_row_id(self, pipeline):
        row_id = pipeline.batches[3][2].id
        result = pipeline.service.regenerate_single_view(
            USER, _request(pipeline.batches[3], revision_id=row_id)
        )
        assert result.success is True
        assert result.new_revision_number == 4

    def test_hero_view_uses_pro(self, pipeline):
        result = pipeline.service.regenerate_single_view(USER, _request(pipeline.batches[3], ViewType.FRONT))
        assert result.model_used == "pro-model"

    def test_hero_view_falls_back_to_flash(self, app_config):
        p = _build(app_config, outcomes={"pro-model": [_APIError(503, "UNAVAILABLE")] * 3})
        result = p.service.regenerate_single_view(USER, _request(p.batches[3], ViewType.BACK))

        assert result.success is True
        assert result.model_used == "flash-model"
        entry = p.ai_logs.entries[0]
        assert entry.fallback_used is True
        assert entry.retry_count == 3
        assert entry.model == "flash-model"

    def test_reference_view_from_request(self, pipeline):
        reference = "data:image/png;base64,iVBORw0KGgo="
        pipeline.service.regenerate_single_view(
            USER, _request(pipeline.batches[3], reference_views={ViewType.SIDE: reference})
        )
        assert pipeline.loader.loaded[0] == reference

    def test_reference_defaults_to_parent_image(self, pipeline):
        parent = pipeline.batches[3]
        pipeline.service.regenerate_single_view(USER, _request(parent, ViewType.BOTTOM))
        assert pipeline.loader.loaded[0] == _image_urls(parent)[ViewType.BOTTOM]

    def test_dict_request_accepted(self, pipeline):
        result = pipeline.service.regenerate_single_view(USER, {
            "product_id": PRODUCT,
            "view_type": "side",
            "revision_id": pipeline.batches[3][0].batch_id,
            "edit_prompt": "make it gold",
        })
        assert result.success is True

    def test_operation_logged(self, pipeline):
        result = pipeline.service.regenerate_single_view(USER, _request(pipeline.batches[3]), request_id="req-1")
        entry = pipeline.ai_logs.entries[0]
        assert entry.operation_id == "req-1"
        assert entry.status == "success"
        assert entry.output["new_batch_id"] == result.new_batch_id
        assert entry.input["view_type"] == "side"

    def test_ai_log_failure_does_not_change_result(self, app_config):
        p = _build(app_config, ai_log_fails=True)
        result = p.service.regenerate_single_view(USER, _request(p.batches[3]))
        assert result.success is True
        assert p.credits.get_balance(USER) == 4

    def test_ai_logging_disabled(self, app_config):
        app_config.ai_operation_logging = False
        p = _build(app_config)
        p.service.regenerate_single_view(USER, _request(p.batches[3]))
        assert p.ai_logs.entries == []


# ============================================================================
# LOGO GATING
# ============================================================================

class TestLogoGating:

    def test_logo_withheld_without_mention(self, app_config):
        p = _build(app_config, logos={"product_logo": PRODUCT_LOGO})
        p.service.regenerate_single_view(USER, _request(p.batches[3], edit="make the strap red"))

        call = p.client.calls[0]
        assert call['logo'] is None
        assert "Logo context" not in call['prompt']
        assert PRODUCT_LOGO not in p.loader.loaded
        assert p.ai_logs.entries[0].input["logo_source"] is None

    def test_logo_forwarded_on_mention(self, app_config):
        p = _build(app_config, logos={"product_logo": PRODUCT_LOGO})
        p.service.regenerate_single_view(USER, _request(p.batches[3], edit="add our logo to the strap"))

        call = p.client.calls[0]
        assert call['logo'] is not None
        assert "Logo context" in call['prompt']
        assert PRODUCT_LOGO in p.loader.loaded
        assert p.ai_logs.entries[0].input["logo_source"] == LogoSource.PRODUCT_METADATA.value

    def test_chat_logo_beats_product_logo(self, app_config):
        chat_logo = "https://logos.test/chat.png"
        p = _build(app_config, logos={
            "product_logo": PRODUCT_LOGO,
            "chat_uploaded_logo": chat_logo,
            "chat_image_tool_type": "logo",
        })
        p.service.regenerate_single_view(USER, _request(p.batches[3], edit="put the brand mark here"))
        assert chat_logo in p.loader.loaded
        assert PRODUCT_LOGO not in p.loader.loaded


# ============================================================================
# FAILURES - CREDIT REFUNDED, ACTIVE BATCH UNCHANGED
# ============================================================================

class TestFailedRegeneration:

    def _assert_untouched(self, p, balance=5):
        assert p.credits.get_balance(USER) == balance
        active = p.revisions.get_active_batch(PRODUCT)
        assert active.revision_number == 3
        assert active.batch_id == p.batches[3][0].batch_id

    def test_generation_rejected(self, app_config):
        p = _build(app_config, outcomes={"flash-model": [RuntimeError("blocked by safety filters")]})
        result = p.service.regenerate_single_view(USER, _request(p.batches[3], ViewType.SIDE))

        assert result.success is False
        assert result.error_code == ErrorCode.GENERATION_REJECTED
        assert result.credits_used == 0
        assert result.state_reached == RegenerationState.FAILED
        assert result.http_status == 422
        assert p.blobs.blobs == {}
        assert p.revisions.commit_calls == 0
        assert p.credits.refund_calls == 1
        self._assert_untouched(p)
        assert p.ai_logs.entries[0].status == "failed"

    def test_generation_unavailable(self, app_config):
        p = _build(app_config, outcomes={"flash-model": [_APIError(503, "UNAVAILABLE")] * 3})
        result = p.service.regenerate_single_view(USER, _request(p.batches[3], ViewType.TOP))

        assert result.error_code == ErrorCode.GENERATION_UNAVAILABLE
        assert result.http_status == 503
        self._assert_untouched(p)

    def test_insufficient_credit(self, app_config):
        p = _build(app_config, balance=0)
        result = p.service.regenerate_single_view(USER, _request(p.batches[3]))

        assert result.success is False
        assert result.error_code == ErrorCode.INSUFFICIENT_CREDIT
        assert result.http_status == 402
        assert result.credits_used == 0
        assert p.client.calls == []
        assert p.credits.refund_calls == 0
        self._assert_untouched(p, balance=0)

    def test_product_owned_by_another_user(self, pipeline):
        result = pipeline.service.regenerate_single_view("someone-else", _request(pipeline.batches[3]))
        assert result.error_code == ErrorCode.PRODUCT_NOT_FOUND
        assert result.http_status == 404

    def test_unknown_revision(self, pipeline):
        result = pipeline.service.regenerate_single_view(
            USER, _request(pipeline.batches[3], revision_id="single_view_edit_99_1")
        )
        assert result.error_code == ErrorCode.REVISION_NOT_FOUND
        assert pipeline.client.calls == []
        self._assert_untouched(pipeline)

    def test_view_not_in_revision(self, app_config):
        p = _build(app_config, views=("front", "back"))
        result = p.service.regenerate_single_view(USER, _request(p.batches[3], ViewType.SIDE))

        assert result.error_code == ErrorCode.VIEW_NOT_IN_REVISION
        assert p.client.calls == []
        assert p.credits.get_balance(USER) == 5

    def test_upload_failure(self, app_config):
        p = _build(app_config, blob_fails=True)
        result = p.service.regenerate_single_view(USER, _request(p.batches[3]))

        assert result.error_code == ErrorCode.UPLOAD_FAILED
        assert p.revisions.commit_calls == 0
        self._assert_untouched(p)

    def test_partial_insert(self, pipeline):
        pipeline.revisions.fail_insert = True
        result = pipeline.service.regenerate_single_view(USER, _request(pipeline.batches[3]))

        assert result.error_code == ErrorCode.PARTIAL_INSERT_FAILURE
        assert result.operator_alert is True
        assert result.state_reached == RegenerationState.FAILED
        assert pipeline.blobs.blobs == {}
        self._assert_untouched(pipeline)

    def test_orphan_cleanup_failure_keeps_commit_error(self, pipeline):
        pipeline.revisions.fail_insert = True
        pipeline.blobs.fail_delete = True
        result = pipeline.service.regenerate_single_view(USER, _request(pipeline.batches[3]))

        assert result.error_code == ErrorCode.PARTIAL_INSERT_FAILURE
        assert len(pipeline.blobs.blobs) == 1
        self._assert_untouched(pipeline)

    def test_orphan_cleanup_crash_keeps_commit_error(self, pipeline):
        pipeline.revisions.fail_insert = True
        pipeline.blobs.delete_error = RuntimeError("credential unavailable")
        result = pipeline.service.regenerate_single_view(USER, _request(pipeline.batches[3]))

        assert result.error_code == ErrorCode.PARTIAL_INSERT_FAILURE
        assert result.credits_used == 0
        self._assert_untouched(pipeline)

    def test_refund_failure_reports_debit(self, app_config):
        p = _build(app_config, outcomes={"flash-model": [RuntimeError("blocked by safety filters")]})
        p.credits.refund_error = DatabaseError("connection lost")
        result = p.service.regenerate_single_view(USER, _request(p.batches[3]))

        assert result.success is False
        assert result.error_code == ErrorCode.GENERATION_REJECTED
        assert result.credits_used == 1
        assert result.operator_alert is True
        assert p.credits.get_balance(USER) == 4

    def test_unexpected_error(self, pipeline):
        def explode(product_id, user_id):
            raise KeyError("metadata")

        pipeline.products.get_product_context = explode
        result = pipeline.service.regenerate_single_view(USER, _request(pipeline.batches[3]))

        assert result.error_code == ErrorCode.UNEXPECTED_ERROR
        assert result.http_status == 500
        assert result.credits_used == 0
        self._assert_untouched(pipeline)


# ============================================================================
# VALIDATION - NOTHING RESERVED
# ============================================================================

class TestRequestValidation:

    @pytest.mark.parametrize(
        "overrides,code",
        [
            ({"view_type": "diagonal"}, ErrorCode.INVALID_VIEW_TYPE),
            ({"edit_prompt": "   "}, ErrorCode.VALIDATION_ERROR),
            ({"revision_id": ""}, ErrorCode.VALIDATION_ERROR),
            ({"product_id": None}, ErrorCode.VALIDATION_ERROR),
        ],
        ids=["bad-view", "blank-prompt", "blank-revision", "missing-product"],
    )
    def test_invalid_request(self, pipeline, overrides, code):
        payload = {
            "product_id": PRODUCT,
            "view_type": "side",
            "revision_id": pipeline.batches[3][0].batch_id,
            "edit_prompt": "make it gold",
            **overrides,
        }
        result = pipeline.service.regenerate_single_view(USER, payload)

        assert result.success is False
        assert result.error_code == code
        assert result.http_status == 400
        assert pipeline.credits.reservations == {}
        assert pipeline.ai_logs.entries == []

    @pytest.mark.parametrize("user_id", ["", "   ", None], ids=["empty", "blank", "none"])
    def test_unauthenticated(self, pipeline, user_id):
        result = pipeline.service.regenerate_single_view(user_id, _request(pipeline.batches[3]))
        assert result.error_code == ErrorCode.UNAUTHENTICATED
        assert result.http_status == 401
        assert pipeline.credits.reservations == {}


# ============================================================================
# CONCURRENCY
# ============================================================================

class TestConcurrentRegeneration:

    def test_two_edits_of_same_parent(self, app_config):
        p = _build(app_config, balance=5, barrier=threading.Barrier(2))
        parent = p.batches[3]
        results = {}

        def run(view):
            results[view] = p.service.regenerate_single_view(USER, _request(parent, view))

        threads = [threading.Thread(target=run, args=(v,)) for v in (ViewType.SIDE, ViewType.TOP)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert all(r.success for r in results.values())
        assert sorted(r.new_revision_number for r in results.values()) == [4, 5]
        assert p.credits.get_balance(USER) == 3

        active_rows = p.revisions.active_rows(PRODUCT)
        assert len({r.batch_id for r in active_rows}) == 1
        assert len(active_rows) == len(ViewType)
        active = p.revisions.get_active_batch(PRODUCT)
        assert active.revision_number == 5

        for number in (4, 5):
            rows = [r for r in p.revisions.rows if r.revision_number == number]
            assert {r.view_type for r in rows} == set(ViewType)


# ============================================================================
# ATTEMPT STATE
# ============================================================================

class TestRegenerationAttempt:

    def test_linear_advance(self):
        attempt = RegenerationAttempt("op")
        for state in (
            RegenerationState.RESERVE_CREDIT, RegenerationState.RESOLVE_CONTEXT,
            RegenerationState.COMPOSE_PROMPT, RegenerationState.GENERATE,
            RegenerationState.UPLOAD, RegenerationState.COMMIT_REVISION, RegenerationState.DONE,
        ):
            attempt.advance(state)
        assert attempt.state == RegenerationState.DONE

    def test_skipping_a_step_is_a_bug(self):
        attempt = RegenerationAttempt("op")
        attempt.advance(RegenerationState.RESERVE_CREDIT)
        with pytest.raises(ContractViolationError):
            attempt.advance(RegenerationState.GENERATE)
