"""
Cascading deletion of user accounts.

Deleting a user removes their feedback and detaches their books
(created_by set to null). Wiping a user's data also removes the books they
created, with the feedback left on those books. Each deletion unit runs in its
own transaction.
"""

from typing import List, Optional

import structlog
from pymongo.errors import PyMongoError

from catalog.database import CatalogDatabase
from catalog.exceptions import CatalogError, NotFoundError
from catalog.models import DeletionReport, Identity
from catalog.policy import Operation, authorize
from utilities.logger import AuditLogger

logger = structlog.get_logger(__name__)


class DeletionOrchestrator:
    """Admin-only user deletion with all-or-nothing effects per user."""

    def __init__(self, db: CatalogDatabase, audit: Optional[AuditLogger] = None):
        self.db = db
        self.audit = audit or AuditLogger()
        self.logger = logger.bind(component="deletion_orchestrator")

    async def delete_user(self, actor: Identity, user_id: str) -> DeletionReport:
        """
        Delete one account, its feedback, and detach its books.

        Raises:
            ForbiddenError: Actor is not an admin
            NotFoundError: No such user
        """
        authorize(actor, Operation.DELETE_USERS)
        await self._delete_user(user_id)
        self.audit.log_deletion(actor.user_id, "users", [user_id])
        return DeletionReport.build("users", [user_id], [])

    async def bulk_delete_users(self, actor: Identity, user_ids: List[str]) -> DeletionReport:
        """
        Delete several accounts, each in its own transaction.

        A failure rolls back that user only and lands the id in failed_ids;
        users already deleted stay deleted.
        """
        authorize(actor, Operation.DELETE_USERS)

        deleted: List[str] = []
        failed: List[str] = []
        for user_id in dict.fromkeys(user_ids):
            try:
                await self._delete_user(user_id)
                deleted.append(user_id)
            except (CatalogError, PyMongoError) as e:
                self.logger.warning("Bulk user delete item failed", user_id=user_id, error=str(e))
                failed.append(user_id)

        self.audit.log_deletion(actor.user_id, "users", deleted, failed)
        return DeletionReport.build("users", deleted, failed)

    async def wipe_user_data(self, actor: Identity, user_id: str) -> DeletionReport:
        """
        Delete an account together with every book and feedback it created.

        Runs as one transaction; any failure rolls everything back and propagates.

        Raises:
            ForbiddenError: Actor is not an admin
            NotFoundError: No such user
        """
        authorize(actor, Operation.DELETE_USERS)

        async with self.db.transaction() as session:
            if await self.db.get_user_by_id(user_id, session=session) is None:
                raise NotFoundError(f"User with ID {user_id} not found")

            book_ids = await self.db.find_book_ids_by_creator(user_id, session=session)
            feedback_on_books = await self.db.delete_feedback_by_books(book_ids, session=session)
            books_deleted = await self.db.delete_books_by_ids(book_ids, session=session)
            feedback_deleted = await self.db.delete_feedback_by_user(user_id, session=session)
            if not await self.db.delete_user(user_id, session=session):
                raise NotFoundError(f"User with ID {user_id} not found")

        self.logger.info(
            "User data wiped",
            user_id=user_id,
            books_deleted=books_deleted,
            feedback_deleted=feedback_deleted + feedback_on_books
        )
        self.audit.log_deletion(actor.user_id, "users", [user_id])
        return DeletionReport.build("users", [user_id], [])

    async def _delete_user(self, user_id: str) -> None:
        async with self.db.transaction() as session:
            if await self.db.get_user_by_id(user_id, session=session) is None:
                raise NotFoundError(f"User with ID {user_id} not found")

            feedback_deleted = await self.db.delete_feedback_by_user(user_id, session=session)
            books_detached = await self.db.clear_book_creator(user_id, session=session)
            if not await self.db.delete_user(user_id, session=session):
                raise NotFoundError(f"User with ID {user_id} not found")

        self.logger.info(
            "User deleted",
            user_id=user_id,
            feedback_deleted=feedback_deleted,
            books_detached=books_detached
        )
