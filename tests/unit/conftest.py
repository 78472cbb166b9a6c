"""
Unit test fixtures - factory-built models.
"""

import pytest

from tests.factories.model_factories import (
    make_batch_records,
    make_credit_reservation,
    make_product_context,
)


@pytest.fixture
def product_context_data():
    """Return randomized product context data dict with no logos."""
    return make_product_context()


@pytest.fixture
def parent_batch():
    """A complete active batch at revision 3."""
    from core.logic.revision_builder import group_batch
    from core.models.revision import ViewRecord

    records = make_batch_records("prod-parent", "user-parent", revision_number=3)
    return group_batch(ViewRecord(**r) for r in records)


@pytest.fixture
def reservation_data():
    """Return randomized credit reservation data dict."""
    return make_credit_reservation()
