"""
Pydantic models for users, books and feedback.
Covers stored documents, request payloads, query parameters and API responses.
"""

import math
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, validator


class UserRole(str, Enum):
    """Roles an account can hold."""
    ADMIN = "admin"
    USER = "user"


class FeedbackStatus(str, Enum):
    """Visibility of a feedback entry."""
    VISIBLE = "visible"
    HIDDEN = "hidden"


class Identity(BaseModel):
    """Resolved (user id, role) pair of an authenticated caller."""
    user_id: str = Field(..., description="Authenticated user identifier")
    role: UserRole = Field(..., description="Role of the authenticated user")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


# --- Stored documents ---

class User(BaseModel):
    """User account as stored."""
    id: str = Field(..., description="Unique user identifier")
    email: EmailStr = Field(..., description="Unique email address")
    password_hash: str = Field(..., description="Opaque password digest")
    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., description="Last name")
    role: UserRole = Field(default=UserRole.USER, description="Account role")
    is_active: bool = Field(default=True, description="False when the account is suspended")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def identity(self) -> Identity:
        return Identity(user_id=self.id, role=self.role)


class Book(BaseModel):
    """Book record as stored."""
    id: str = Field(..., description="Unique book identifier")
    title: str = Field(..., description="Book title")
    author: str = Field(..., description="Book author")
    isbn: str = Field(..., description="Globally unique ISBN")
    created_by: Optional[str] = Field(None, description="Creator user id, null once the creator is deleted")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Feedback(BaseModel):
    """Feedback entry as stored."""
    id: str = Field(..., description="Unique feedback identifier")
    rating: int = Field(..., ge=1, le=5, description="Rating from 1 to 5 stars")
    comment: str = Field(..., description="Feedback comment")
    status: FeedbackStatus = Field(default=FeedbackStatus.VISIBLE, description="Visibility status")
    user_id: str = Field(..., description="Author of the feedback")
    book_id: str = Field(..., description="Book the feedback is about")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


# --- Auth payloads ---

class RegisterRequest(BaseModel):
    """Self-registration payload."""
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=6, description="User password (minimum 6 characters)")
    first_name: str = Field(..., min_length=1, max_length=100, description="User first name")
    last_name: str = Field(..., min_length=1, max_length=100, description="User last name")
    role: Optional[UserRole] = Field(None, description="User role (defaults to user)")


class LoginRequest(BaseModel):
    """Login payload."""
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., description="User password")


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None


class AdminCreateUser(BaseModel):
    """Account creation by an administrator."""
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=6, description="Initial password (minimum 6 characters)")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: UserRole = Field(default=UserRole.USER)
    is_active: bool = Field(default=True)


class AdminUpdateUser(BaseModel):
    """Account changes an administrator may apply."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


# --- Book and feedback payloads ---

class BookCreate(BaseModel):
    """Book creation payload."""
    title: str = Field(..., min_length=1, max_length=255, description="Book title")
    author: str = Field(..., min_length=1, max_length=255, description="Book author")
    isbn: str = Field(..., min_length=1, max_length=32, description="ISBN")

    @validator('title', 'author', 'isbn')
    def strip_whitespace(cls, v):
        """Reject values that are only whitespace."""
        v = v.strip()
        if not v:
            raise ValueError('must not be blank')
        return v


class BookUpdate(BaseModel):
    """Partial book update."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    author: Optional[str] = Field(None, min_length=1, max_length=255)
    isbn: Optional[str] = Field(None, min_length=1, max_length=32)

    @validator('title', 'author', 'isbn')
    def strip_whitespace(cls, v):
        """Apply the same normalization as creation to supplied fields."""
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError('must not be blank')
        return v


class FeedbackCreate(BaseModel):
    """Feedback creation payload."""
    book_id: str = Field(..., min_length=1, description="ID of the book to leave feedback for")
    rating: int = Field(..., ge=1, le=5, description="Rating from 1 to 5 stars")
    comment: str = Field(..., min_length=1, max_length=1000, description="Feedback comment")

    @validator('comment')
    def validate_comment(cls, v):
        """Ensure the comment is not blank."""
        if not v.strip():
            raise ValueError('comment must not be blank')
        return v


class FeedbackUpdate(BaseModel):
    """Partial feedback content update."""
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, min_length=1, max_length=1000)

    @validator('comment')
    def validate_comment(cls, v):
        """Ensure a supplied comment is not blank."""
        if v is not None and not v.strip():
            raise ValueError('comment must not be blank')
        return v


class FeedbackModerate(BaseModel):
    """Moderation decision."""
    status: FeedbackStatus = Field(..., description="Feedback status (visible or hidden)")


class BulkDeleteRequest(BaseModel):
    """Ids to delete in one request."""
    ids: List[str] = Field(..., min_length=1, max_length=100, description="Identifiers to delete")


# --- Query parameters ---

class PageParams(BaseModel):
    """Pagination shared by every listing; limit above the cap is clamped."""
    page: int = Field(1, ge=1, description="Page number")
    limit: int = Field(10, ge=1, description="Items per page")

    def capped(self, max_limit: int = 100) -> 'PageParams':
        if self.limit <= max_limit:
            return self
        return self.model_copy(update={"limit": max_limit})

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class BookQueryParams(PageParams):
    """Book listing filters."""
    title: Optional[str] = Field(None, description="Case-insensitive title substring")
    author: Optional[str] = Field(None, description="Case-insensitive author substring")
    isbn: Optional[str] = Field(None, description="Exact ISBN")


class FeedbackQueryParams(PageParams):
    """Feedback listing filters."""
    book_id: Optional[str] = Field(None, description="Filter by book ID")
    user_id: Optional[str] = Field(None, description="Filter by user ID")
    status: Optional[FeedbackStatus] = Field(None, description="Filter by status (admin only)")


class UserQueryParams(PageParams):
    """User listing filters."""
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


# --- Responses ---

class UserSummary(BaseModel):
    """Related user embedded in other responses."""
    id: str
    first_name: str
    last_name: str
    email: str


class BookSummary(BaseModel):
    """Related book embedded in feedback responses."""
    id: str
    title: str
    author: str
    isbn: str


class UserResponse(BaseModel):
    """User as returned by the API, without the password digest."""
    id: str
    email: str
    first_name: str
    last_name: str
    role: UserRole
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> 'UserResponse':
        return cls(**user.model_dump(exclude={"password_hash"}))


class BookResponse(BaseModel):
    """Book with its creator summary."""
    id: str
    title: str
    author: str
    isbn: str
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime
    creator: Optional[UserSummary] = None


class FeedbackResponse(BaseModel):
    """Feedback with its author and book summaries."""
    id: str
    rating: int
    comment: str
    status: FeedbackStatus
    user_id: str
    book_id: str
    created_at: datetime
    updated_at: datetime
    user: Optional[UserSummary] = None
    book: Optional[BookSummary] = None


class PaginatedResponse(BaseModel):
    """Pagination envelope fields."""
    total: int = Field(..., description="Total number of matching items")
    page: int = Field(..., description="Current page number")
    limit: int = Field(..., description="Number of items per page")
    total_pages: int = Field(..., description="Total number of pages")
    has_next: bool = Field(..., description="Whether there is a next page")
    has_prev: bool = Field(..., description="Whether there is a previous page")

    @staticmethod
    def envelope(total: int, params: PageParams) -> dict:
        total_pages = math.ceil(total / params.limit)
        return {
            "total": total,
            "page": params.page,
            "limit": params.limit,
            "total_pages": total_pages,
            "has_next": params.page < total_pages,
            "has_prev": params.page > 1,
        }


class BookListResponse(PaginatedResponse):
    data: List[BookResponse] = Field(..., description="Books on this page")


class FeedbackListResponse(PaginatedResponse):
    data: List[FeedbackResponse] = Field(..., description="Feedback on this page")


class UserListResponse(PaginatedResponse):
    data: List[UserResponse] = Field(..., description="Users on this page")


class AuthResponse(BaseModel):
    """Token plus the authenticated user."""
    access_token: str
    token_type: str = "bearer"
    message: str
    user: UserResponse


class DeletionReport(BaseModel):
    """Outcome of a single or bulk deletion."""
    deleted_ids: List[str] = Field(default_factory=list)
    failed_ids: List[str] = Field(default_factory=list)
    deleted_count: int = 0
    failed_count: int = 0
    message: str = ""

    @classmethod
    def build(cls, resource: str, deleted_ids: List[str], failed_ids: List[str]) -> 'DeletionReport':
        return cls(
            deleted_ids=deleted_ids,
            failed_ids=failed_ids,
            deleted_count=len(deleted_ids),
            failed_count=len(failed_ids),
            message=f"Deleted {len(deleted_ids)} {resource}, {len(failed_ids)} failed",
        )


class MessageResponse(BaseModel):
    """Acknowledgement without a resource body."""
    message: str


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")
    retry_after: Optional[int] = Field(None, description="Seconds until the request may be retried")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
