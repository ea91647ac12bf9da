"""
Dependency providers wiring the catalog services into FastAPI.

Shared components (database, rate limiter, hasher, token service) live on
`app.state` and are created by `api.main.create_app`.
"""

from typing import Type, TypeVar

from fastapi import Depends, Request
from pydantic import BaseModel, ValidationError

from catalog.auth import AuthService
from catalog.books import BookService
from catalog.database import CatalogDatabase
from catalog.deletion import DeletionOrchestrator
from catalog.exceptions import ValidationFailure
from catalog.feedback import FeedbackService
from catalog.rate_limiter import FeedbackRateLimiter
from catalog.users import UserAdminService

ModelT = TypeVar("ModelT", bound=BaseModel)


def get_database(request: Request) -> CatalogDatabase:
    return request.app.state.db


def get_rate_limiter(request: Request) -> FeedbackRateLimiter:
    return request.app.state.rate_limiter


def get_max_page_size(request: Request) -> int:
    return request.app.state.config.max_page_size


def get_auth_service(request: Request, db: CatalogDatabase = Depends(get_database)) -> AuthService:
    return AuthService(db, request.app.state.password_hasher, request.app.state.token_service)


def get_book_service(
    db: CatalogDatabase = Depends(get_database),
    max_page_size: int = Depends(get_max_page_size)
) -> BookService:
    return BookService(db, max_page_size=max_page_size)


def get_feedback_service(
    db: CatalogDatabase = Depends(get_database),
    rate_limiter: FeedbackRateLimiter = Depends(get_rate_limiter),
    max_page_size: int = Depends(get_max_page_size)
) -> FeedbackService:
    return FeedbackService(db, rate_limiter=rate_limiter, max_page_size=max_page_size)


def get_user_admin_service(
    db: CatalogDatabase = Depends(get_database),
    auth: AuthService = Depends(get_auth_service),
    max_page_size: int = Depends(get_max_page_size)
) -> UserAdminService:
    return UserAdminService(db, auth, max_page_size=max_page_size)


def get_deletion_orchestrator(db: CatalogDatabase = Depends(get_database)) -> DeletionOrchestrator:
    return DeletionOrchestrator(db)


def build_params(model: Type[ModelT], **values) -> ModelT:
    """Build query parameters, turning pydantic errors into a 400 failure."""
    try:
        return model(**{key: value for key, value in values.items() if value is not None})
    except ValidationError as e:
        raise ValidationFailure(str(e))


def client_origin(request: Request) -> str:
    return request.client.host if request.client else "unknown"
