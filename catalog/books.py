"""
Book service: ownership-enforcing CRUD over book records.
"""

from typing import List, Optional

import structlog
from pymongo.errors import DuplicateKeyError, PyMongoError

from catalog.database import CatalogDatabase
from catalog.exceptions import CatalogError, ConflictError, NotFoundError
from catalog.models import (
    Book, BookCreate, BookListResponse, BookQueryParams, BookResponse, BookUpdate,
    DeletionReport, Identity, PaginatedResponse, UserSummary
)
from catalog.policy import Operation, authorize
from utilities.logger import AuditLogger

logger = structlog.get_logger(__name__)

DUPLICATE_ISBN = "A book with this ISBN already exists"


class BookService:
    """Create, read, update and delete books with owner-or-admin checks."""

    def __init__(self, db: CatalogDatabase, max_page_size: int = 100, audit: Optional[AuditLogger] = None):
        self.db = db
        self.max_page_size = max_page_size
        self.audit = audit or AuditLogger()
        self.logger = logger.bind(component="book_service")

    async def create(self, actor: Identity, data: BookCreate) -> BookResponse:
        """
        Create a book owned by `actor`.

        Raises:
            ConflictError: ISBN already used
        """
        authorize(actor, Operation.CREATE)

        if await self.db.get_book_by_isbn(data.isbn):
            raise ConflictError(DUPLICATE_ISBN)

        try:
            book = await self.db.insert_book({**data.model_dump(), "created_by": actor.user_id})
        except DuplicateKeyError:
            raise ConflictError(DUPLICATE_ISBN)

        self.logger.info("Book created", book_id=book.id, isbn=book.isbn, created_by=actor.user_id)
        return (await self._to_responses([book]))[0]

    async def get(self, book_id: str) -> BookResponse:
        book = await self._load(book_id)
        return (await self._to_responses([book]))[0]

    async def find_all(self, params: BookQueryParams) -> BookListResponse:
        """List books newest first with title/author/isbn filters."""
        params = params.capped(self.max_page_size)
        books, total = await self.db.find_books(params)
        return BookListResponse(data=await self._to_responses(books), **PaginatedResponse.envelope(total, params))

    async def find_by_user(self, user_id: str, params: BookQueryParams) -> BookListResponse:
        """List books created by one user."""
        params = params.capped(self.max_page_size)
        books, total = await self.db.find_books(params, created_by=user_id)
        return BookListResponse(data=await self._to_responses(books), **PaginatedResponse.envelope(total, params))

    async def update(self, actor: Identity, book_id: str, changes: BookUpdate) -> BookResponse:
        """
        Update a book the actor owns, or any book for admins.

        Raises:
            NotFoundError: No such book
            ForbiddenError: Actor is neither the creator nor an admin
            ConflictError: New ISBN belongs to another book
        """
        book = await self._load(book_id)
        self._authorize(actor, Operation.UPDATE, book)

        fields = changes.model_dump(exclude_unset=True, exclude_none=True)
        if "isbn" in fields and fields["isbn"] != book.isbn:
            existing = await self.db.get_book_by_isbn(fields["isbn"])
            if existing and existing.id != book.id:
                raise ConflictError(DUPLICATE_ISBN)

        if not fields:
            return (await self._to_responses([book]))[0]

        try:
            updated = await self.db.update_book(book.id, fields)
        except DuplicateKeyError:
            raise ConflictError(DUPLICATE_ISBN)
        if updated is None:
            raise NotFoundError(f"Book with ID {book_id} not found")

        self.logger.info("Book updated", book_id=book.id, fields=sorted(fields))
        return (await self._to_responses([updated]))[0]

    async def delete(self, actor: Identity, book_id: str) -> None:
        """
        Delete a book and its feedback in one transaction.

        Raises:
            NotFoundError: No such book
            ForbiddenError: Actor is neither the creator nor an admin
        """
        book = await self._load(book_id)
        self._authorize(actor, Operation.DELETE, book)
        await self._delete_with_feedback(book.id)
        self.audit.log_deletion(actor.user_id, "books", [book.id])

    async def bulk_delete(self, actor: Identity, book_ids: List[str]) -> DeletionReport:
        """
        Delete several books; each id succeeds or fails on its own.

        Missing ids and books the actor may not delete are reported in failed_ids.
        """
        deleted: List[str] = []
        failed: List[str] = []

        for book_id in dict.fromkeys(book_ids):
            try:
                book = await self._load(book_id)
                self._authorize(actor, Operation.DELETE, book)
                await self._delete_with_feedback(book.id)
                deleted.append(book_id)
            except (CatalogError, PyMongoError) as e:
                self.logger.warning("Bulk book delete item failed", book_id=book_id, error=str(e))
                failed.append(book_id)

        self.audit.log_deletion(actor.user_id, "books", deleted, failed)
        return DeletionReport.build("books", deleted, failed)

    async def _delete_with_feedback(self, book_id: str) -> None:
        async with self.db.transaction() as session:
            await self.db.delete_feedback_by_books([book_id], session=session)
            if not await self.db.delete_book(book_id, session=session):
                raise NotFoundError(f"Book with ID {book_id} not found")

    async def _load(self, book_id: str) -> Book:
        book = await self.db.get_book_by_id(book_id)
        if book is None:
            raise NotFoundError(f"Book with ID {book_id} not found")
        return book

    def _authorize(self, actor: Identity, operation: Operation, book: Book) -> None:
        try:
            authorize(
                actor,
                operation,
                owner_id=book.created_by,
                message=f"You can only {operation.value} your own books",
            )
        except CatalogError:
            self.audit.log_access_denied(actor.user_id if actor else None, operation.value, book.id)
            raise

    async def _to_responses(self, books: List[Book]) -> List[BookResponse]:
        creators = await self.db.get_users_by_ids(book.created_by for book in books)
        responses = []
        for book in books:
            creator = creators.get(book.created_by)
            responses.append(BookResponse(
                **book.model_dump(),
                creator=UserSummary(
                    id=creator.id,
                    first_name=creator.first_name,
                    last_name=creator.last_name,
                    email=creator.email,
                ) if creator else None,
            ))
        return responses
