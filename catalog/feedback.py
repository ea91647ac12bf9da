"""
Feedback service: rate-limited creation, owner-or-admin edits and admin moderation.

Visibility state machine:
    visible --(admin moderate: hidden)--> hidden
    hidden --(admin moderate: visible)--> visible
New feedback always starts visible. Moderating to the current status is a
no-op that succeeds.
"""

from typing import Dict, FrozenSet, List, Optional

import structlog
from pymongo.errors import DuplicateKeyError

from catalog.database import CatalogDatabase
from catalog.exceptions import CatalogError, ConflictError, NotFoundError, ValidationFailure
from catalog.models import (
    BookSummary, Feedback, FeedbackCreate, FeedbackListResponse, FeedbackQueryParams,
    FeedbackResponse, FeedbackStatus, FeedbackUpdate, Identity, PaginatedResponse, UserSummary
)
from catalog.policy import Operation, authorize, decide
from catalog.rate_limiter import FeedbackRateLimiter, tracker_key
from utilities.logger import AuditLogger

logger = structlog.get_logger(__name__)

DUPLICATE_FEEDBACK = "You have already left feedback for this book"

TRANSITIONS: Dict[FeedbackStatus, FrozenSet[FeedbackStatus]] = {
    FeedbackStatus.VISIBLE: frozenset({FeedbackStatus.HIDDEN}),
    FeedbackStatus.HIDDEN: frozenset({FeedbackStatus.VISIBLE}),
}


def next_status(current: FeedbackStatus, requested: FeedbackStatus) -> FeedbackStatus:
    """Apply a moderation request to the current status."""
    if requested == current:
        return current
    if requested not in TRANSITIONS[current]:
        raise ValidationFailure(f"Cannot move feedback from {current.value} to {requested.value}")
    return requested


class FeedbackService:
    """Feedback CRUD with visibility rules and the creation rate limit."""

    def __init__(
        self,
        db: CatalogDatabase,
        rate_limiter: Optional[FeedbackRateLimiter] = None,
        max_page_size: int = 100,
        audit: Optional[AuditLogger] = None
    ):
        self.db = db
        self.rate_limiter = rate_limiter
        self.max_page_size = max_page_size
        self.audit = audit or AuditLogger()
        self.logger = logger.bind(component="feedback_service")

    async def create(self, actor: Identity, data: FeedbackCreate, origin: Optional[str] = None) -> FeedbackResponse:
        """
        Leave feedback on a book.

        The rate limit is consulted first, before any lookup.

        Raises:
            RateLimitedError: Actor created feedback less than a window ago
            NotFoundError: Book or acting user does not exist
            ConflictError: Actor already left feedback on this book
        """
        if self.rate_limiter is not None:
            self.rate_limiter.check(tracker_key(actor.user_id if actor else None, origin))

        authorize(actor, Operation.CREATE)

        if await self.db.get_feedback_for_user_and_book(actor.user_id, data.book_id):
            raise ConflictError(DUPLICATE_FEEDBACK)

        try:
            async with self.db.transaction() as session:
                if await self.db.get_book_by_id(data.book_id, session=session) is None:
                    raise NotFoundError(f"Book with ID {data.book_id} not found")
                if await self.db.get_user_by_id(actor.user_id, session=session) is None:
                    raise NotFoundError(f"User with ID {actor.user_id} not found")
                feedback = await self.db.insert_feedback({
                    "rating": data.rating,
                    "comment": data.comment,
                    "status": FeedbackStatus.VISIBLE,
                    "user_id": actor.user_id,
                    "book_id": data.book_id,
                }, session=session)
        except DuplicateKeyError:
            raise ConflictError(DUPLICATE_FEEDBACK)

        self.logger.info("Feedback created", feedback_id=feedback.id, book_id=feedback.book_id, user_id=actor.user_id)
        return (await self._to_responses([feedback]))[0]

    async def get(self, actor: Optional[Identity], feedback_id: str) -> FeedbackResponse:
        """Hidden feedback is reported as missing to non-admins."""
        feedback = await self._load(feedback_id)
        if not decide(actor, Operation.READ, status=feedback.status):
            raise NotFoundError(f"Feedback with ID {feedback_id} not found")
        return (await self._to_responses([feedback]))[0]

    async def find_all(
        self,
        actor: Optional[Identity],
        params: FeedbackQueryParams,
        admin_scope: bool = False
    ) -> FeedbackListResponse:
        """
        List feedback newest first.

        Only an admin-scoped call honours the status filter; every other
        listing sees visible feedback only.
        """
        if admin_scope:
            authorize(actor, Operation.LIST_ALL_FEEDBACK)
            status = params.status
        else:
            status = FeedbackStatus.VISIBLE

        params = params.capped(self.max_page_size)
        items, total = await self.db.find_feedback(params, status=status)
        return FeedbackListResponse(data=await self._to_responses(items), **PaginatedResponse.envelope(total, params))

    async def find_by_book(self, actor: Optional[Identity], book_id: str, params: FeedbackQueryParams) -> FeedbackListResponse:
        if await self.db.get_book_by_id(book_id) is None:
            raise NotFoundError(f"Book with ID {book_id} not found")
        return await self.find_all(actor, params.model_copy(update={"book_id": book_id}))

    async def find_by_user(self, actor: Identity, params: FeedbackQueryParams) -> FeedbackListResponse:
        """The actor's own visible feedback."""
        return await self.find_all(actor, params.model_copy(update={"user_id": actor.user_id}))

    async def moderate(self, actor: Identity, feedback_id: str, status: FeedbackStatus) -> FeedbackResponse:
        """
        Set the visibility of a feedback entry.

        Raises:
            ForbiddenError: Actor is not an admin
            NotFoundError: No such feedback
        """
        authorize(actor, Operation.MODERATE)
        feedback = await self._load(feedback_id)

        new_status = next_status(feedback.status, status)
        self.audit.log_moderation(actor.user_id, feedback.id, feedback.status.value, new_status.value)
        if new_status == feedback.status:
            return (await self._to_responses([feedback]))[0]

        updated = await self.db.update_feedback(feedback.id, {"status": new_status})
        if updated is None:
            raise NotFoundError(f"Feedback with ID {feedback_id} not found")
        return (await self._to_responses([updated]))[0]

    async def update(self, actor: Identity, feedback_id: str, changes: FeedbackUpdate) -> FeedbackResponse:
        """
        Change rating or comment of the actor's own feedback, or any for admins.

        Raises:
            NotFoundError: No such feedback
            ForbiddenError: Actor is neither the author nor an admin
        """
        feedback = await self._load(feedback_id)
        self._authorize(actor, Operation.UPDATE, feedback)

        fields = changes.model_dump(exclude_unset=True, exclude_none=True)
        if not fields:
            return (await self._to_responses([feedback]))[0]

        updated = await self.db.update_feedback(feedback.id, fields)
        if updated is None:
            raise NotFoundError(f"Feedback with ID {feedback_id} not found")
        return (await self._to_responses([updated]))[0]

    async def delete(self, actor: Identity, feedback_id: str) -> None:
        """
        Raises:
            NotFoundError: No such feedback
            ForbiddenError: Actor is neither the author nor an admin
        """
        feedback = await self._load(feedback_id)
        self._authorize(actor, Operation.DELETE, feedback)
        if not await self.db.delete_feedback(feedback.id):
            raise NotFoundError(f"Feedback with ID {feedback_id} not found")
        self.audit.log_deletion(actor.user_id, "feedback", [feedback.id])

    async def _load(self, feedback_id: str) -> Feedback:
        feedback = await self.db.get_feedback_by_id(feedback_id)
        if feedback is None:
            raise NotFoundError(f"Feedback with ID {feedback_id} not found")
        return feedback

    def _authorize(self, actor: Identity, operation: Operation, feedback: Feedback) -> None:
        try:
            authorize(
                actor,
                operation,
                owner_id=feedback.user_id,
                message=f"You can only {operation.value} your own feedback",
            )
        except CatalogError:
            self.audit.log_access_denied(actor.user_id if actor else None, operation.value, feedback.id)
            raise

    async def _to_responses(self, items: List[Feedback]) -> List[FeedbackResponse]:
        users = await self.db.get_users_by_ids(item.user_id for item in items)
        books = await self.db.get_books_by_ids(item.book_id for item in items)
        responses = []
        for item in items:
            user = users.get(item.user_id)
            book = books.get(item.book_id)
            responses.append(FeedbackResponse(
                **item.model_dump(),
                user=UserSummary(
                    id=user.id, first_name=user.first_name, last_name=user.last_name, email=user.email
                ) if user else None,
                book=BookSummary(
                    id=book.id, title=book.title, author=book.author, isbn=book.isbn
                ) if book else None,
            ))
        return responses
