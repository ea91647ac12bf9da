"""
Pytest configuration and shared fixtures.
"""

import os

# Cheap hashing and no throttling for the application built at import time
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("TEST_MODE", "true")

from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pytest
from pymongo.errors import DuplicateKeyError

from catalog.database import new_id
from catalog.models import (
    Book, BookQueryParams, Feedback, FeedbackQueryParams, FeedbackStatus, Identity,
    User, UserQueryParams, UserRole
)
from catalog.rate_limiter import FeedbackRateLimiter
from catalog.security import PasswordHasher, TokenService

TEST_PASSWORD = "password123"
TEST_SECRET = "test-secret-key"


class InMemoryCatalogDatabase:
    """
    Dictionary-backed stand-in for CatalogDatabase.

    Mirrors the unique indexes (email, isbn, user+book) by raising
    DuplicateKeyError, snapshots every collection on `transaction()` and
    restores it when the block raises. `fail_on` maps a method name to an
    exception that method raises on its next call.
    """

    def __init__(self):
        self.users: Dict[str, User] = {}
        self.books: Dict[str, Book] = {}
        self.feedback: Dict[str, Feedback] = {}
        self.fail_on: Dict[str, Exception] = {}
        self.transactions_started = 0
        self.transactions_rolled_back = 0
        self._now = datetime(2024, 1, 1)

    # --- Harness helpers ---

    def _tick(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now

    def _maybe_fail(self, name: str) -> None:
        error = self.fail_on.pop(name, None)
        if error is not None:
            raise error

    def add_user(
        self,
        email: str,
        role: UserRole = UserRole.USER,
        is_active: bool = True,
        password_hash: str = "not-a-real-hash",
        first_name: str = "Test",
        last_name: str = "User"
    ) -> User:
        now = self._tick()
        user = User(
            id=new_id(), email=email, password_hash=password_hash, first_name=first_name,
            last_name=last_name, role=role, is_active=is_active, created_at=now, updated_at=now
        )
        self.users[user.id] = user
        return user

    def add_book(self, title: str, isbn: str, created_by: Optional[str], author: str = "Some Author") -> Book:
        now = self._tick()
        book = Book(
            id=new_id(), title=title, author=author, isbn=isbn, created_by=created_by,
            created_at=now, updated_at=now
        )
        self.books[book.id] = book
        return book

    def add_feedback(
        self,
        user_id: str,
        book_id: str,
        rating: int = 4,
        comment: str = "Good read",
        status: FeedbackStatus = FeedbackStatus.VISIBLE
    ) -> Feedback:
        now = self._tick()
        feedback = Feedback(
            id=new_id(), rating=rating, comment=comment, status=status, user_id=user_id,
            book_id=book_id, created_at=now, updated_at=now
        )
        self.feedback[feedback.id] = feedback
        return feedback

    @staticmethod
    def _page(items: List[Any], params) -> Tuple[List[Any], int]:
        ordered = sorted(items, key=lambda item: (item.created_at, item.id), reverse=True)
        return ordered[params.skip:params.skip + params.limit], len(ordered)

    # --- Lifecycle ---

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    async def health_check(self) -> Dict:
        return {
            "status": "healthy",
            "users_count": len(self.users),
            "books_count": len(self.books),
            "feedback_count": len(self.feedback),
        }

    @asynccontextmanager
    async def transaction(self):
        self.transactions_started += 1
        snapshot = (dict(self.users), dict(self.books), dict(self.feedback))
        try:
            yield None
        except BaseException:
            self.users, self.books, self.feedback = snapshot
            self.transactions_rolled_back += 1
            raise

    # --- Users ---

    async def insert_user(self, fields: Dict[str, Any], session=None) -> User:
        self._maybe_fail("insert_user")
        if any(user.email == fields["email"] for user in self.users.values()):
            raise DuplicateKeyError("E11000 duplicate key error: users.email")
        now = self._tick()
        user = User(id=new_id(), created_at=now, updated_at=now, **fields)
        self.users[user.id] = user
        return user

    async def get_user_by_id(self, user_id: str, session=None) -> Optional[User]:
        return self.users.get(user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return next((user for user in self.users.values() if user.email == email), None)

    async def get_users_by_ids(self, user_ids: Iterable[str]) -> Dict[str, User]:
        return {user_id: self.users[user_id] for user_id in user_ids if user_id in self.users}

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        user = self.users.get(user_id)
        if user is None:
            return None
        if "email" in fields and any(
            other.email == fields["email"] and other.id != user_id for other in self.users.values()
        ):
            raise DuplicateKeyError("E11000 duplicate key error: users.email")
        self.users[user_id] = user.model_copy(update={**fields, "updated_at": self._tick()})
        return self.users[user_id]

    async def delete_user(self, user_id: str, session=None) -> bool:
        self._maybe_fail("delete_user")
        return self.users.pop(user_id, None) is not None

    async def find_users(self, params: UserQueryParams) -> Tuple[List[User], int]:
        users = [
            user for user in self.users.values()
            if (params.role is None or user.role == params.role)
            and (params.is_active is None or user.is_active == params.is_active)
        ]
        return self._page(users, params)

    # --- Books ---

    async def insert_book(self, fields: Dict[str, Any], session=None) -> Book:
        self._maybe_fail("insert_book")
        if any(book.isbn == fields["isbn"] for book in self.books.values()):
            raise DuplicateKeyError("E11000 duplicate key error: books.isbn")
        now = self._tick()
        book = Book(id=new_id(), created_at=now, updated_at=now, **fields)
        self.books[book.id] = book
        return book

    async def get_book_by_id(self, book_id: str, session=None) -> Optional[Book]:
        return self.books.get(book_id)

    async def get_book_by_isbn(self, isbn: str) -> Optional[Book]:
        return next((book for book in self.books.values() if book.isbn == isbn), None)

    async def get_books_by_ids(self, book_ids: Iterable[str]) -> Dict[str, Book]:
        return {book_id: self.books[book_id] for book_id in book_ids if book_id in self.books}

    async def update_book(self, book_id: str, fields: Dict[str, Any]) -> Optional[Book]:
        book = self.books.get(book_id)
        if book is None:
            return None
        if "isbn" in fields and any(
            other.isbn == fields["isbn"] and other.id != book_id for other in self.books.values()
        ):
            raise DuplicateKeyError("E11000 duplicate key error: books.isbn")
        self.books[book_id] = book.model_copy(update={**fields, "updated_at": self._tick()})
        return self.books[book_id]

    async def delete_book(self, book_id: str, session=None) -> bool:
        self._maybe_fail("delete_book")
        return self.books.pop(book_id, None) is not None

    async def find_books(self, params: BookQueryParams, created_by: Optional[str] = None) -> Tuple[List[Book], int]:
        books = [
            book for book in self.books.values()
            if (not params.title or params.title.lower() in book.title.lower())
            and (not params.author or params.author.lower() in book.author.lower())
            and (not params.isbn or book.isbn == params.isbn)
            and (created_by is None or book.created_by == created_by)
        ]
        return self._page(books, params)

    async def find_book_ids_by_creator(self, user_id: str, session=None) -> List[str]:
        return [book.id for book in self.books.values() if book.created_by == user_id]

    async def clear_book_creator(self, user_id: str, session=None) -> int:
        self._maybe_fail("clear_book_creator")
        owned = [book for book in self.books.values() if book.created_by == user_id]
        for book in owned:
            self.books[book.id] = book.model_copy(update={"created_by": None, "updated_at": self._tick()})
        return len(owned)

    async def delete_books_by_ids(self, book_ids: List[str], session=None) -> int:
        self._maybe_fail("delete_books_by_ids")
        return sum(1 for book_id in book_ids if self.books.pop(book_id, None) is not None)

    # --- Feedback ---

    async def insert_feedback(self, fields: Dict[str, Any], session=None) -> Feedback:
        self._maybe_fail("insert_feedback")
        if any(
            item.user_id == fields["user_id"] and item.book_id == fields["book_id"]
            for item in self.feedback.values()
        ):
            raise DuplicateKeyError("E11000 duplicate key error: feedback.user_id_book_id")
        now = self._tick()
        feedback = Feedback(id=new_id(), created_at=now, updated_at=now, **fields)
        self.feedback[feedback.id] = feedback
        return feedback

    async def get_feedback_by_id(self, feedback_id: str) -> Optional[Feedback]:
        return self.feedback.get(feedback_id)

    async def get_feedback_for_user_and_book(self, user_id: str, book_id: str) -> Optional[Feedback]:
        return next(
            (item for item in self.feedback.values() if item.user_id == user_id and item.book_id == book_id),
            None
        )

    async def update_feedback(self, feedback_id: str, fields: Dict[str, Any]) -> Optional[Feedback]:
        self._maybe_fail("update_feedback")
        item = self.feedback.get(feedback_id)
        if item is None:
            return None
        self.feedback[feedback_id] = item.model_copy(update={**fields, "updated_at": self._tick()})
        return self.feedback[feedback_id]

    async def delete_feedback(self, feedback_id: str, session=None) -> bool:
        return self.feedback.pop(feedback_id, None) is not None

    async def find_feedback(
        self,
        params: FeedbackQueryParams,
        status: Optional[FeedbackStatus] = None
    ) -> Tuple[List[Feedback], int]:
        items = [
            item for item in self.feedback.values()
            if (not params.book_id or item.book_id == params.book_id)
            and (not params.user_id or item.user_id == params.user_id)
            and (status is None or item.status == status)
        ]
        return self._page(items, params)

    async def delete_feedback_by_user(self, user_id: str, session=None) -> int:
        self._maybe_fail("delete_feedback_by_user")
        doomed = [item.id for item in self.feedback.values() if item.user_id == user_id]
        for feedback_id in doomed:
            del self.feedback[feedback_id]
        return len(doomed)

    async def delete_feedback_by_books(self, book_ids: List[str], session=None) -> int:
        self._maybe_fail("delete_feedback_by_books")
        doomed = [item.id for item in self.feedback.values() if item.book_id in book_ids]
        for feedback_id in doomed:
            del self.feedback[feedback_id]
        return len(doomed)


class FakeClock:
    """Manually advanced time source for the rate limiter."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def db():
    """Empty in-memory store."""
    return InMemoryCatalogDatabase()


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def token_service():
    return TokenService(TEST_SECRET, expire_minutes=60)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(clock):
    return FeedbackRateLimiter(window_seconds=60, clock=clock)


@pytest.fixture
def admin(db, hasher):
    return db.add_user("admin@bookportal.com", role=UserRole.ADMIN, password_hash=hasher.hash(TEST_PASSWORD),
                       first_name="Admin", last_name="User")


@pytest.fixture
def alice(db, hasher):
    return db.add_user("alice@example.com", password_hash=hasher.hash(TEST_PASSWORD),
                       first_name="Alice", last_name="Reader")


@pytest.fixture
def bob(db, hasher):
    return db.add_user("bob@example.com", password_hash=hasher.hash(TEST_PASSWORD),
                       first_name="Bob", last_name="Reader")


@pytest.fixture
def admin_identity(admin) -> Identity:
    return admin.identity()


@pytest.fixture
def alice_identity(alice) -> Identity:
    return alice.identity()


@pytest.fixture
def bob_identity(bob) -> Identity:
    return bob.identity()
