"""Book routes."""
from typing import Optional

from fastapi import APIRouter, Depends, status

from api.auth import get_current_identity
from api.dependencies import build_params, get_book_service
from catalog.books import BookService
from catalog.models import (
    BookCreate, BookListResponse, BookQueryParams, BookResponse, BookUpdate,
    BulkDeleteRequest, DeletionReport, Identity, MessageResponse
)

router = APIRouter(prefix="/books", tags=["Books"])


@router.post("", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
async def create_book(
    data: BookCreate,
    identity: Identity = Depends(get_current_identity),
    books: BookService = Depends(get_book_service)
):
    """Create a book owned by the caller."""
    return await books.create(identity, data)


@router.get("", response_model=BookListResponse)
async def list_books(
    page: int = 1,
    limit: int = 10,
    title: Optional[str] = None,
    author: Optional[str] = None,
    isbn: Optional[str] = None,
    books: BookService = Depends(get_book_service)
):
    """
    List books, newest first.

    - **title**: Case-insensitive title substring
    - **author**: Case-insensitive author substring
    - **isbn**: Exact ISBN
    - **page**: Page number (starts from 1)
    - **limit**: Items per page (capped at 100)
    """
    params = build_params(BookQueryParams, page=page, limit=limit, title=title, author=author, isbn=isbn)
    return await books.find_all(params)


@router.get("/my-books", response_model=BookListResponse)
async def list_my_books(
    page: int = 1,
    limit: int = 10,
    title: Optional[str] = None,
    author: Optional[str] = None,
    isbn: Optional[str] = None,
    identity: Identity = Depends(get_current_identity),
    books: BookService = Depends(get_book_service)
):
    """List books created by the caller."""
    params = build_params(BookQueryParams, page=page, limit=limit, title=title, author=author, isbn=isbn)
    return await books.find_by_user(identity.user_id, params)


@router.get("/{book_id}", response_model=BookResponse)
async def get_book(book_id: str, books: BookService = Depends(get_book_service)):
    return await books.get(book_id)


@router.patch("/{book_id}", response_model=BookResponse)
async def update_book(
    book_id: str,
    changes: BookUpdate,
    identity: Identity = Depends(get_current_identity),
    books: BookService = Depends(get_book_service)
):
    """Update a book; only its creator or an admin may do so."""
    return await books.update(identity, book_id, changes)


@router.delete("/bulk", response_model=DeletionReport)
async def bulk_delete_books(
    request: BulkDeleteRequest,
    identity: Identity = Depends(get_current_identity),
    books: BookService = Depends(get_book_service)
):
    """Delete several books; ids the caller may not delete are reported as failed."""
    return await books.bulk_delete(identity, request.ids)


@router.delete("/{book_id}", response_model=MessageResponse)
async def delete_book(
    book_id: str,
    identity: Identity = Depends(get_current_identity),
    books: BookService = Depends(get_book_service)
):
    """Delete a book and its feedback; only its creator or an admin may do so."""
    await books.delete(identity, book_id)
    return MessageResponse(message="Book deleted successfully")
