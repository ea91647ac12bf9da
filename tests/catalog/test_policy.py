"""
Test cases for the authorization policy.
"""

import pytest

from catalog.exceptions import ForbiddenError, UnauthenticatedError
from catalog.models import FeedbackStatus, Identity, UserRole
from catalog.policy import ADMIN_ONLY, Operation, authorize, decide

ADMIN = Identity(user_id="admin-1", role=UserRole.ADMIN)
USER = Identity(user_id="user-1", role=UserRole.USER)


class TestDecide:
    """Test cases for role and ownership decisions."""

    @pytest.mark.parametrize("operation", list(Operation))
    def test_admin_allowed_everything(self, operation):
        """Admins pass every check, owned by someone else or not."""
        assert decide(ADMIN, operation, owner_id="someone-else", status=FeedbackStatus.HIDDEN).allowed

    @pytest.mark.parametrize("operation", [Operation.UPDATE, Operation.DELETE])
    def test_owner_allowed(self, operation):
        assert decide(USER, operation, owner_id="user-1").allowed

    @pytest.mark.parametrize("operation", [Operation.UPDATE, Operation.DELETE])
    def test_non_owner_denied(self, operation):
        decision = decide(USER, operation, owner_id="user-2")
        assert not decision.allowed
        assert decision.authenticated

    def test_detached_resource_only_editable_by_admin(self):
        """Books whose creator was deleted have no owner."""
        assert not decide(USER, Operation.UPDATE, owner_id=None).allowed
        assert decide(ADMIN, Operation.UPDATE, owner_id=None).allowed

    @pytest.mark.parametrize("operation", sorted(ADMIN_ONLY, key=lambda op: op.value))
    def test_admin_only_operations_denied_to_users(self, operation):
        assert not decide(USER, operation).allowed

    def test_create_needs_an_actor(self):
        assert decide(USER, Operation.CREATE).allowed
        decision = decide(None, Operation.CREATE)
        assert not decision.allowed
        assert not decision.authenticated

    def test_anonymous_read_allowed(self):
        assert decide(None, Operation.READ).allowed
        assert decide(None, Operation.READ, status=FeedbackStatus.VISIBLE).allowed

    def test_hidden_feedback_readable_by_admin_only(self):
        assert not decide(None, Operation.READ, status=FeedbackStatus.HIDDEN).allowed
        assert not decide(USER, Operation.READ, status=FeedbackStatus.HIDDEN).allowed
        assert decide(ADMIN, Operation.READ, status=FeedbackStatus.HIDDEN).allowed

    def test_decision_is_truthy_when_allowed(self):
        assert decide(USER, Operation.CREATE)
        assert not decide(USER, Operation.MODERATE)


class TestAuthorize:
    """Test cases for the raising wrapper."""

    def test_allowed_returns_none(self):
        assert authorize(USER, Operation.UPDATE, owner_id="user-1") is None

    def test_missing_actor_raises_unauthenticated(self):
        with pytest.raises(UnauthenticatedError):
            authorize(None, Operation.DELETE, owner_id="user-1")

    def test_denied_raises_forbidden_with_custom_message(self):
        with pytest.raises(ForbiddenError) as exc_info:
            authorize(USER, Operation.DELETE, owner_id="user-2", message="You can only delete your own books")
        assert exc_info.value.message == "You can only delete your own books"
        assert exc_info.value.status_code == 403

    def test_moderation_by_user_forbidden(self):
        with pytest.raises(ForbiddenError):
            authorize(USER, Operation.MODERATE)
