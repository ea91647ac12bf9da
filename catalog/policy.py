"""
Authorization policy for books, feedback and user administration.

Every role decision in the service layer goes through `decide` / `authorize`:
- admins may do everything
- update and delete of a book or feedback need the actor to own it
- creation needs an authenticated actor
- reads are open to anyone, except hidden feedback which only admins see
- moderation and user administration are admin only

The functions here perform no I/O.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from catalog.exceptions import ForbiddenError, UnauthenticatedError
from catalog.models import FeedbackStatus, Identity, UserRole


class Operation(str, Enum):
    """Operations subject to authorization."""
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    MODERATE = "moderate"
    LIST_ALL_FEEDBACK = "list_all_feedback"
    MANAGE_USERS = "manage_users"
    DELETE_USERS = "delete_users"


OWNER_SCOPED = frozenset({Operation.UPDATE, Operation.DELETE})
ADMIN_ONLY = frozenset({
    Operation.MODERATE,
    Operation.LIST_ALL_FEEDBACK,
    Operation.MANAGE_USERS,
    Operation.DELETE_USERS,
})


@dataclass(frozen=True)
class Decision:
    """Result of a policy evaluation."""
    allowed: bool
    reason: str = ""
    authenticated: bool = True

    def __bool__(self) -> bool:
        return self.allowed


def decide(
    actor: Optional[Identity],
    operation: Operation,
    owner_id: Optional[str] = None,
    status: Optional[FeedbackStatus] = None,
) -> Decision:
    """
    Decide whether `actor` may perform `operation` on a resource.

    Args:
        actor: Authenticated caller, or None for anonymous reads
        operation: Operation being attempted
        owner_id: User id stored on the target resource, if any
        status: Visibility of the target when it is feedback

    Returns:
        Decision describing the outcome
    """
    if operation == Operation.READ:
        if status == FeedbackStatus.HIDDEN and (actor is None or actor.role != UserRole.ADMIN):
            return Decision(False, "Hidden feedback is only visible to administrators", actor is not None)
        return Decision(True)

    if actor is None:
        return Decision(False, "Authentication required", authenticated=False)

    if actor.role == UserRole.ADMIN:
        return Decision(True)

    if operation in ADMIN_ONLY:
        return Decision(False, "Administrator role required")

    if operation in OWNER_SCOPED:
        if owner_id is not None and actor.user_id == owner_id:
            return Decision(True)
        return Decision(False, f"You can only {operation.value} your own resources")

    # Creation has no owner yet
    return Decision(True)


def authorize(
    actor: Optional[Identity],
    operation: Operation,
    owner_id: Optional[str] = None,
    status: Optional[FeedbackStatus] = None,
    message: Optional[str] = None,
) -> None:
    """
    Raise when `decide` denies the operation.

    Raises:
        UnauthenticatedError: No actor for an operation that needs one
        ForbiddenError: Actor is known but not allowed
    """
    decision = decide(actor, operation, owner_id=owner_id, status=status)
    if decision.allowed:
        return
    if not decision.authenticated:
        raise UnauthenticatedError(decision.reason)
    raise ForbiddenError(message or decision.reason)
