"""
Revision history service tests - revision 0 seeding and history listing.
"""

import pytest

from core.errors import ErrorCode
from core.models.enums import EditType, ViewType
from core.models.revision import CommitRequest
from exceptions import ContextResolutionError, ValidationError
from services.initial_revision import RevisionHistoryService
from tests.factories.fakes import FakeProductRepository, FakeRevisionRepository
from tests.factories.model_factories import make_batch_records, make_product_context


USER = "user-seed"
PRODUCT = "prod-seed"

VIEWS = {
    "front": "https://images.test/front.png",
    "back": "https://images.test/back.png",
    "side": "https://images.test/side.png",
}


@pytest.fixture
def revisions():
    return FakeRevisionRepository()


@pytest.fixture
def service(revisions):
    return RevisionHistoryService(
        revision_repo=revisions,
        product_repo=FakeProductRepository(make_product_context(PRODUCT, USER)),
    )


# ============================================================================
# SEEDING
# ============================================================================

class TestSeedInitial:

    def test_seed_creates_active_revision_zero(self, service, revisions):
        result = service.seed_initial(USER, {"product_id": PRODUCT, "views": VIEWS, "model": "pro-model"})

        assert result.revision_number == 0
        assert result.batch_id.startswith(f"initial_{PRODUCT}_")
        assert len(result.records) == len(VIEWS)

        active = revisions.get_active_batch(PRODUCT)
        assert active.revision_number == 0
        assert {v: r.image_url for v, r in active.views.items()} == {ViewType(k): u for k, u in VIEWS.items()}
        assert all(r.edit_type == EditType.INITIAL for r in active.views.values())

    def test_seed_twice_rejected(self, service):
        service.seed_initial(USER, {"product_id": PRODUCT, "views": VIEWS})
        with pytest.raises(ValidationError) as exc_info:
            service.seed_initial(USER, {"product_id": PRODUCT, "views": VIEWS})
        assert exc_info.value.error_code == ErrorCode.REVISION_ALREADY_SEEDED

    def test_foreign_product_rejected(self, service, revisions):
        with pytest.raises(ContextResolutionError) as exc_info:
            service.seed_initial("intruder", {"product_id": PRODUCT, "views": VIEWS})
        assert exc_info.value.error_code == ErrorCode.PRODUCT_NOT_FOUND
        assert revisions.rows == []

    @pytest.mark.parametrize(
        "payload",
        [
            {"product_id": PRODUCT, "views": {}},
            {"product_id": PRODUCT, "views": {"diagonal": "https://images.test/x.png"}},
            {"views": VIEWS},
            None,
        ],
        ids=["no-views", "unknown-view", "no-product", "empty"],
    )
    def test_malformed_request(self, service, payload):
        with pytest.raises(ValidationError):
            service.seed_initial(USER, payload)

    def test_seeded_product_can_then_be_edited(self, service, revisions):
        seeded = service.seed_initial(USER, {"product_id": PRODUCT, "views": VIEWS})
        result = revisions.commit_revision(CommitRequest(
            product_id=PRODUCT,
            user_id=USER,
            target_view=ViewType.SIDE,
            new_image_url="https://blob.test/new-side.png",
            edit_prompt="prompt",
            user_edit_instructions="make it gold",
            model_used="flash-model",
            parent_revision_id=seeded.batch_id,
        ))
        assert result.revision_number == 1
        assert result.parent_batch_id == seeded.batch_id


# ============================================================================
# HISTORY
# ============================================================================

class TestListHistory:

    def _populate(self, revisions, count):
        for number in range(count):
            revisions.add_batch(
                make_batch_records(PRODUCT, USER, revision_number=number, is_active=(number == count - 1))
            )

    def test_newest_first(self, service, revisions):
        self._populate(revisions, 4)
        history = service.list_history(USER, PRODUCT)

        assert [h.revision_number for h in history] == [3, 2, 1, 0]
        assert history[0].is_active is True
        assert not any(h.is_active for h in history[1:])

    def test_explicit_limit(self, service, revisions):
        self._populate(revisions, 5)
        assert len(service.list_history(USER, PRODUCT, limit=2)) == 2

    def test_default_limit_from_config(self, service, revisions, monkeypatch):
        monkeypatch.setenv("REVISION_HISTORY_LIMIT", "3")
        self._populate(revisions, 5)
        assert len(service.list_history(USER, PRODUCT)) == 3

    def test_foreign_product_hidden(self, service, revisions):
        self._populate(revisions, 2)
        with pytest.raises(ContextResolutionError):
            service.list_history("intruder", PRODUCT)
