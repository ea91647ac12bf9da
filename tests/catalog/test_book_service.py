"""
Test cases for the book service.
"""

import pytest
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from catalog.books import BookService
from catalog.exceptions import ConflictError, ForbiddenError, NotFoundError
from catalog.models import BookCreate, BookQueryParams, BookUpdate


@pytest.fixture
def books(db):
    return BookService(db)


@pytest.fixture
def alice_book(db, alice):
    return db.add_book("Dune", "978-0-441-17271-9", created_by=alice.id, author="Frank Herbert")


class TestBookCreate:
    """Test cases for book creation."""

    @pytest.mark.asyncio
    async def test_create_sets_creator(self, books, alice, alice_identity):
        book = await books.create(alice_identity, BookCreate(title="Emma", author="Jane Austen", isbn="111"))

        assert book.created_by == alice.id
        assert book.creator.email == alice.email

    @pytest.mark.asyncio
    async def test_duplicate_isbn_conflicts(self, books, bob_identity, alice_book):
        with pytest.raises(ConflictError):
            await books.create(bob_identity, BookCreate(title="Copy", author="Someone", isbn=alice_book.isbn))

    @pytest.mark.asyncio
    async def test_unique_index_race_conflicts(self, books, db, alice_identity, monkeypatch):
        """The store's unique index is the final guard when the pre-check misses."""
        async def no_precheck(isbn):
            return None

        db.add_book("Existing", "222", created_by=None)
        monkeypatch.setattr(db, "get_book_by_isbn", no_precheck)

        with pytest.raises(ConflictError):
            await books.create(alice_identity, BookCreate(title="Racer", author="Someone", isbn="222"))

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError):
            BookCreate(title="   ", author="Someone", isbn="333")


class TestBookRead:
    """Test cases for reading and listing books."""

    @pytest.mark.asyncio
    async def test_get_missing_book(self, books):
        with pytest.raises(NotFoundError):
            await books.get("missing")

    @pytest.mark.asyncio
    async def test_list_newest_first_with_pagination(self, books, db, alice):
        for number in range(5):
            db.add_book(f"Book {number}", f"isbn-{number}", created_by=alice.id)

        page = await books.find_all(BookQueryParams(page=1, limit=2))

        assert page.total == 5
        assert page.total_pages == 3
        assert page.has_next and not page.has_prev
        assert [book.title for book in page.data] == ["Book 4", "Book 3"]

    @pytest.mark.asyncio
    async def test_limit_capped(self, db, alice):
        service = BookService(db, max_page_size=3)
        for number in range(5):
            db.add_book(f"Book {number}", f"isbn-{number}", created_by=alice.id)

        page = await service.find_all(BookQueryParams(limit=500))

        assert page.limit == 3
        assert len(page.data) == 3

    @pytest.mark.asyncio
    async def test_filters(self, books, db, alice):
        db.add_book("The Hobbit", "h-1", created_by=alice.id, author="J.R.R. Tolkien")
        db.add_book("Emma", "e-1", created_by=alice.id, author="Jane Austen")

        assert [b.title for b in (await books.find_all(BookQueryParams(title="hobb"))).data] == ["The Hobbit"]
        assert [b.title for b in (await books.find_all(BookQueryParams(author="AUSTEN"))).data] == ["Emma"]
        assert (await books.find_all(BookQueryParams(isbn="h-1"))).total == 1

    @pytest.mark.asyncio
    async def test_find_by_user(self, books, db, alice, bob, alice_book):
        db.add_book("Bob's book", "b-1", created_by=bob.id)

        page = await books.find_by_user(alice.id, BookQueryParams())

        assert [book.id for book in page.data] == [alice_book.id]


class TestBookUpdate:
    """Test cases for owner-or-admin updates."""

    @pytest.mark.asyncio
    async def test_owner_updates(self, books, alice_identity, alice_book):
        book = await books.update(alice_identity, alice_book.id, BookUpdate(title="Dune Messiah"))
        assert book.title == "Dune Messiah"
        assert book.isbn == alice_book.isbn

    @pytest.mark.asyncio
    async def test_admin_updates_any_book(self, books, admin_identity, alice_book):
        book = await books.update(admin_identity, alice_book.id, BookUpdate(author="F. Herbert"))
        assert book.author == "F. Herbert"

    @pytest.mark.asyncio
    async def test_non_owner_forbidden(self, books, bob_identity, alice_book, db):
        with pytest.raises(ForbiddenError, match="your own books"):
            await books.update(bob_identity, alice_book.id, BookUpdate(title="Hijacked"))
        assert db.books[alice_book.id].title == "Dune"

    @pytest.mark.asyncio
    async def test_isbn_of_other_book_conflicts(self, books, db, alice, alice_identity, alice_book):
        other = db.add_book("Other", "other-isbn", created_by=alice.id)
        with pytest.raises(ConflictError):
            await books.update(alice_identity, alice_book.id, BookUpdate(isbn=other.isbn))

    @pytest.mark.asyncio
    async def test_keeping_own_isbn_is_fine(self, books, alice_identity, alice_book):
        book = await books.update(alice_identity, alice_book.id, BookUpdate(isbn=alice_book.isbn, title="Dune!"))
        assert book.title == "Dune!"

    @pytest.mark.asyncio
    async def test_padded_isbn_of_other_book_conflicts(self, books, db, alice, bob_identity, bob):
        db.add_book("Emma", "111", created_by=alice.id)
        own = db.add_book("Persuasion", "222", created_by=bob.id)

        with pytest.raises(ConflictError):
            await books.update(bob_identity, own.id, BookUpdate(isbn=" 111 "))
        assert db.books[own.id].isbn == "222"

    @pytest.mark.asyncio
    async def test_update_strips_whitespace(self, books, alice_identity, alice_book):
        book = await books.update(alice_identity, alice_book.id, BookUpdate(title="  Dune Messiah ", isbn=" 333 "))
        assert book.title == "Dune Messiah"
        assert book.isbn == "333"

    @pytest.mark.parametrize("field", ["title", "author", "isbn"])
    def test_blank_update_fields_rejected(self, field):
        with pytest.raises(ValidationError):
            BookUpdate(**{field: "   "})

    def test_omitted_update_fields_allowed(self):
        assert BookUpdate().model_dump(exclude_unset=True) == {}

    @pytest.mark.asyncio
    async def test_update_missing_book(self, books, admin_identity):
        with pytest.raises(NotFoundError):
            await books.update(admin_identity, "missing", BookUpdate(title="x"))


class TestBookDelete:
    """Test cases for single and bulk deletion."""

    @pytest.mark.asyncio
    async def test_owner_deletes_book_and_its_feedback(self, books, db, alice_identity, alice_book, bob):
        db.add_feedback(bob.id, alice_book.id)

        await books.delete(alice_identity, alice_book.id)

        assert alice_book.id not in db.books
        assert not db.feedback

    @pytest.mark.asyncio
    async def test_non_owner_cannot_delete(self, books, db, bob_identity, alice_book):
        with pytest.raises(ForbiddenError):
            await books.delete(bob_identity, alice_book.id)
        assert alice_book.id in db.books

    @pytest.mark.asyncio
    async def test_failed_delete_rolls_back_feedback(self, books, db, alice_identity, alice_book, bob):
        db.add_feedback(bob.id, alice_book.id)
        db.fail_on["delete_book"] = PyMongoError("connection reset")

        with pytest.raises(PyMongoError):
            await books.delete(alice_identity, alice_book.id)

        assert alice_book.id in db.books
        assert len(db.feedback) == 1
        assert db.transactions_rolled_back == 1

    @pytest.mark.asyncio
    async def test_bulk_delete_partial_success(self, books, db, alice, bob, alice_identity, alice_book):
        bobs_book = db.add_book("Bob's", "b-2", created_by=bob.id)

        report = await books.bulk_delete(alice_identity, [alice_book.id, bobs_book.id, "missing", alice_book.id])

        assert report.deleted_ids == [alice_book.id]
        assert report.failed_ids == [bobs_book.id, "missing"]
        assert report.deleted_count == 1
        assert report.failed_count == 2
        assert bobs_book.id in db.books

    @pytest.mark.asyncio
    async def test_admin_bulk_delete(self, books, db, admin_identity, alice, bob):
        ids = [db.add_book("A", "a", created_by=alice.id).id, db.add_book("B", "b", created_by=bob.id).id]

        report = await books.bulk_delete(admin_identity, ids)

        assert report.deleted_ids == ids
        assert not db.books
