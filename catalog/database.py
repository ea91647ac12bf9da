"""
MongoDB database utilities for async operations.
Handles connection, unique indexes, transactions and CRUD operations for users, books and feedback.
"""

import re
from contextlib import asynccontextmanager
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Tuple

import structlog
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorClientSession, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import ConnectionFailure

from catalog.models import (
    Book, BookQueryParams, Feedback, FeedbackQueryParams, FeedbackStatus,
    User, UserQueryParams
)

logger = structlog.get_logger(__name__)

NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


def new_id() -> str:
    """Generate a document identifier."""
    return str(ObjectId())


def _to_storage(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Convert enum members to their values for BSON."""
    return {key: value.value if isinstance(value, Enum) else value for key, value in fields.items()}


def _from_storage(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc = dict(doc)
    doc["id"] = doc.pop("_id")
    return doc


class CatalogDatabase:
    """
    Async MongoDB manager for the book portal.

    Uniqueness of user emails, book ISBNs and (user, book) feedback pairs is
    enforced by unique indexes; callers translate DuplicateKeyError.
    Methods that take part in cascading deletion accept a client session.
    """

    def __init__(self, connection_url: str, database_name: str, use_transactions: bool = True):
        """
        Initialize the database manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            use_transactions: Run units of work in multi-document transactions
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.use_transactions = use_transactions
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None

    @property
    def users(self):
        return self.database.users

    @property
    def books(self):
        return self.database.books

    @property
    def feedback(self):
        return self.database.feedback

    async def connect(self) -> None:
        """Establish connection to MongoDB and create indexes."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]

            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB",
                        database=self.database_name,
                        transactions=self.use_transactions)

            await self._create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        """Create unique constraints and the indexes used by listings."""
        try:
            await self.users.create_index("email", unique=True)
            await self.users.create_index([("created_at", DESCENDING)])

            await self.books.create_index("isbn", unique=True)
            await self.books.create_index("created_by")
            await self.books.create_index([("created_at", DESCENDING)])

            await self.feedback.create_index([("user_id", ASCENDING), ("book_id", ASCENDING)], unique=True)
            await self.feedback.create_index("book_id")
            await self.feedback.create_index([("status", ASCENDING), ("created_at", DESCENDING)])

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Optional[AsyncIOMotorClientSession]]:
        """
        Unit of work: commits when the block exits normally, aborts when it raises.

        Yields the session to pass to store calls, or None when transactions
        are disabled.
        """
        if not self.use_transactions:
            yield None
            return

        async with await self.client.start_session() as session:
            async with session.start_transaction():
                yield session

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            return {
                "status": "healthy",
                "users_count": await self.users.count_documents({}),
                "books_count": await self.books.count_documents({}),
                "feedback_count": await self.feedback.count_documents({}),
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }

    async def _insert(self, collection, fields: Dict[str, Any], session=None) -> Dict[str, Any]:
        now = datetime.utcnow()
        doc = {"_id": new_id(), "created_at": now, "updated_at": now, **_to_storage(fields)}
        await collection.insert_one(doc, session=session)
        return _from_storage(doc)

    async def _update(self, collection, doc_id: str, fields: Dict[str, Any], session=None) -> Optional[Dict[str, Any]]:
        update = {**_to_storage(fields), "updated_at": datetime.utcnow()}
        doc = await collection.find_one_and_update(
            {"_id": doc_id},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
            session=session
        )
        return _from_storage(doc) if doc else None

    async def _find_page(self, collection, filter_query: Dict[str, Any], skip: int, limit: int) -> Tuple[List[Dict], int]:
        total = await collection.count_documents(filter_query)
        cursor = collection.find(filter_query).sort(NEWEST_FIRST).skip(skip).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [_from_storage(doc) for doc in docs], total

    # --- Users ---

    async def insert_user(self, fields: Dict[str, Any], session=None) -> User:
        """Insert a user; raises DuplicateKeyError when the email is taken."""
        doc = await self._insert(self.users, fields, session=session)
        logger.debug("Inserted user", user_id=doc["id"])
        return User(**doc)

    async def get_user_by_id(self, user_id: str, session=None) -> Optional[User]:
        doc = await self.users.find_one({"_id": user_id}, session=session)
        return User(**_from_storage(doc)) if doc else None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        doc = await self.users.find_one({"email": email})
        return User(**_from_storage(doc)) if doc else None

    async def get_users_by_ids(self, user_ids: Iterable[str]) -> Dict[str, User]:
        ids = list({user_id for user_id in user_ids if user_id})
        if not ids:
            return {}
        cursor = self.users.find({"_id": {"$in": ids}})
        return {doc["_id"]: User(**_from_storage(doc)) async for doc in cursor}

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        """Update a user; raises DuplicateKeyError when the new email is taken."""
        doc = await self._update(self.users, user_id, fields)
        return User(**doc) if doc else None

    async def delete_user(self, user_id: str, session=None) -> bool:
        result = await self.users.delete_one({"_id": user_id}, session=session)
        return result.deleted_count > 0

    async def find_users(self, params: UserQueryParams) -> Tuple[List[User], int]:
        filter_query: Dict[str, Any] = {}
        if params.role is not None:
            filter_query["role"] = params.role.value
        if params.is_active is not None:
            filter_query["is_active"] = params.is_active

        docs, total = await self._find_page(self.users, filter_query, params.skip, params.limit)
        return [User(**doc) for doc in docs], total

    # --- Books ---

    async def insert_book(self, fields: Dict[str, Any], session=None) -> Book:
        """Insert a book; raises DuplicateKeyError when the ISBN is taken."""
        doc = await self._insert(self.books, fields, session=session)
        logger.debug("Inserted book", book_id=doc["id"], isbn=doc["isbn"])
        return Book(**doc)

    async def get_book_by_id(self, book_id: str, session=None) -> Optional[Book]:
        doc = await self.books.find_one({"_id": book_id}, session=session)
        return Book(**_from_storage(doc)) if doc else None

    async def get_book_by_isbn(self, isbn: str) -> Optional[Book]:
        doc = await self.books.find_one({"isbn": isbn})
        return Book(**_from_storage(doc)) if doc else None

    async def get_books_by_ids(self, book_ids: Iterable[str]) -> Dict[str, Book]:
        ids = list({book_id for book_id in book_ids if book_id})
        if not ids:
            return {}
        cursor = self.books.find({"_id": {"$in": ids}})
        return {doc["_id"]: Book(**_from_storage(doc)) async for doc in cursor}

    async def update_book(self, book_id: str, fields: Dict[str, Any]) -> Optional[Book]:
        """Update a book; raises DuplicateKeyError when the new ISBN is taken."""
        doc = await self._update(self.books, book_id, fields)
        return Book(**doc) if doc else None

    async def delete_book(self, book_id: str, session=None) -> bool:
        result = await self.books.delete_one({"_id": book_id}, session=session)
        return result.deleted_count > 0

    async def find_books(self, params: BookQueryParams, created_by: Optional[str] = None) -> Tuple[List[Book], int]:
        filter_query: Dict[str, Any] = {}
        if params.title:
            filter_query["title"] = {"$regex": re.escape(params.title), "$options": "i"}
        if params.author:
            filter_query["author"] = {"$regex": re.escape(params.author), "$options": "i"}
        if params.isbn:
            filter_query["isbn"] = params.isbn
        if created_by is not None:
            filter_query["created_by"] = created_by

        docs, total = await self._find_page(self.books, filter_query, params.skip, params.limit)
        return [Book(**doc) for doc in docs], total

    async def find_book_ids_by_creator(self, user_id: str, session=None) -> List[str]:
        cursor = self.books.find({"created_by": user_id}, {"_id": 1}, session=session)
        return [doc["_id"] async for doc in cursor]

    async def clear_book_creator(self, user_id: str, session=None) -> int:
        """Set created_by to null on every book the user created."""
        result = await self.books.update_many(
            {"created_by": user_id},
            {"$set": {"created_by": None, "updated_at": datetime.utcnow()}},
            session=session
        )
        return result.modified_count

    async def delete_books_by_ids(self, book_ids: List[str], session=None) -> int:
        if not book_ids:
            return 0
        result = await self.books.delete_many({"_id": {"$in": book_ids}}, session=session)
        return result.deleted_count

    # --- Feedback ---

    async def insert_feedback(self, fields: Dict[str, Any], session=None) -> Feedback:
        """Insert feedback; raises DuplicateKeyError for a second (user, book) pair."""
        doc = await self._insert(self.feedback, fields, session=session)
        logger.debug("Inserted feedback", feedback_id=doc["id"], book_id=doc["book_id"])
        return Feedback(**doc)

    async def get_feedback_by_id(self, feedback_id: str) -> Optional[Feedback]:
        doc = await self.feedback.find_one({"_id": feedback_id})
        return Feedback(**_from_storage(doc)) if doc else None

    async def get_feedback_for_user_and_book(self, user_id: str, book_id: str) -> Optional[Feedback]:
        doc = await self.feedback.find_one({"user_id": user_id, "book_id": book_id})
        return Feedback(**_from_storage(doc)) if doc else None

    async def update_feedback(self, feedback_id: str, fields: Dict[str, Any]) -> Optional[Feedback]:
        doc = await self._update(self.feedback, feedback_id, fields)
        return Feedback(**doc) if doc else None

    async def delete_feedback(self, feedback_id: str, session=None) -> bool:
        result = await self.feedback.delete_one({"_id": feedback_id}, session=session)
        return result.deleted_count > 0

    async def find_feedback(
        self,
        params: FeedbackQueryParams,
        status: Optional[FeedbackStatus] = None
    ) -> Tuple[List[Feedback], int]:
        """List feedback; `status` is the effective filter decided by the caller."""
        filter_query: Dict[str, Any] = {}
        if params.book_id:
            filter_query["book_id"] = params.book_id
        if params.user_id:
            filter_query["user_id"] = params.user_id
        if status is not None:
            filter_query["status"] = status.value

        docs, total = await self._find_page(self.feedback, filter_query, params.skip, params.limit)
        return [Feedback(**doc) for doc in docs], total

    async def delete_feedback_by_user(self, user_id: str, session=None) -> int:
        result = await self.feedback.delete_many({"user_id": user_id}, session=session)
        return result.deleted_count

    async def delete_feedback_by_books(self, book_ids: List[str], session=None) -> int:
        if not book_ids:
            return 0
        result = await self.feedback.delete_many({"book_id": {"$in": book_ids}}, session=session)
        return result.deleted_count
