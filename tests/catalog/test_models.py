"""
Test cases for request, query and response models.
"""

import pytest
from pydantic import ValidationError

from catalog.models import (
    BookQueryParams, BulkDeleteRequest, DeletionReport, PageParams, PaginatedResponse,
    RegisterRequest, UserResponse
)


class TestPageParams:
    """Test cases for pagination parameters."""

    def test_defaults(self):
        params = PageParams()
        assert params.page == 1
        assert params.limit == 10
        assert params.skip == 0

    def test_skip(self):
        assert PageParams(page=3, limit=20).skip == 40

    def test_capped_clamps_large_limits(self):
        params = BookQueryParams(limit=1000, title="dune").capped(100)
        assert params.limit == 100
        assert params.title == "dune"

    def test_capped_keeps_small_limits(self):
        params = PageParams(limit=5)
        assert params.capped(100) is params

    @pytest.mark.parametrize("values", [{"page": 0}, {"limit": 0}, {"page": -1}])
    def test_non_positive_rejected(self, values):
        with pytest.raises(ValidationError):
            PageParams(**values)


class TestPaginatedResponse:
    """Test cases for the pagination envelope."""

    def test_envelope_middle_page(self):
        envelope = PaginatedResponse.envelope(25, PageParams(page=2, limit=10))
        assert envelope == {
            "total": 25, "page": 2, "limit": 10, "total_pages": 3, "has_next": True, "has_prev": True
        }

    def test_envelope_empty(self):
        envelope = PaginatedResponse.envelope(0, PageParams())
        assert envelope["total_pages"] == 0
        assert not envelope["has_next"]
        assert not envelope["has_prev"]


class TestPayloads:
    """Test cases for request payload validation."""

    def test_short_password_rejected(self):
        with pytest.raises(ValidationError):
            RegisterRequest(email="a@example.com", password="12345", first_name="A", last_name="B")

    def test_bulk_delete_needs_ids(self):
        with pytest.raises(ValidationError):
            BulkDeleteRequest(ids=[])


def test_deletion_report_counts():
    report = DeletionReport.build("books", ["a", "b"], ["c"])
    assert report.deleted_count == 2
    assert report.failed_count == 1
    assert report.message == "Deleted 2 books, 1 failed"


def test_user_response_omits_password(alice):
    assert "password_hash" not in UserResponse.from_user(alice).model_dump()
