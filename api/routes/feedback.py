"""Feedback routes."""
from typing import Optional

from fastapi import APIRouter, Depends, Request, status

from api.auth import get_current_identity, get_optional_identity
from api.dependencies import build_params, client_origin, get_feedback_service
from catalog.feedback import FeedbackService
from catalog.models import (
    FeedbackCreate, FeedbackListResponse, FeedbackModerate, FeedbackQueryParams,
    FeedbackResponse, FeedbackStatus, FeedbackUpdate, Identity, MessageResponse
)

router = APIRouter(prefix="/feedback", tags=["Feedback"])


@router.post("", response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
async def create_feedback(
    data: FeedbackCreate,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    feedback: FeedbackService = Depends(get_feedback_service)
):
    """
    Create feedback for a book.

    Rate limited: one feedback per minute per user. Throttled requests get
    429 with a Retry-After header.
    """
    return await feedback.create(identity, data, origin=client_origin(request))


@router.get("/all-reviews", response_model=FeedbackListResponse)
async def list_reviews(
    page: int = 1,
    limit: int = 10,
    book_id: Optional[str] = None,
    user_id: Optional[str] = None,
    identity: Optional[Identity] = Depends(get_optional_identity),
    feedback: FeedbackService = Depends(get_feedback_service)
):
    """List visible feedback with pagination and filtering."""
    params = build_params(FeedbackQueryParams, page=page, limit=limit, book_id=book_id, user_id=user_id)
    return await feedback.find_all(identity, params)


@router.get("/admin", response_model=FeedbackListResponse)
async def list_feedback_for_admin(
    page: int = 1,
    limit: int = 10,
    book_id: Optional[str] = None,
    user_id: Optional[str] = None,
    status: Optional[FeedbackStatus] = None,
    identity: Identity = Depends(get_current_identity),
    feedback: FeedbackService = Depends(get_feedback_service)
):
    """List all feedback, hidden included, optionally filtered by status (admin only)."""
    params = build_params(
        FeedbackQueryParams, page=page, limit=limit, book_id=book_id, user_id=user_id, status=status
    )
    return await feedback.find_all(identity, params, admin_scope=True)


@router.get("/my-reviews", response_model=FeedbackListResponse)
async def list_my_reviews(
    page: int = 1,
    limit: int = 10,
    book_id: Optional[str] = None,
    identity: Identity = Depends(get_current_identity),
    feedback: FeedbackService = Depends(get_feedback_service)
):
    """List the caller's own visible feedback."""
    params = build_params(FeedbackQueryParams, page=page, limit=limit, book_id=book_id)
    return await feedback.find_by_user(identity, params)


@router.get("/book/{book_id}", response_model=FeedbackListResponse)
async def list_book_feedback(
    book_id: str,
    page: int = 1,
    limit: int = 10,
    identity: Optional[Identity] = Depends(get_optional_identity),
    feedback: FeedbackService = Depends(get_feedback_service)
):
    """List visible feedback for one book."""
    params = build_params(FeedbackQueryParams, page=page, limit=limit)
    return await feedback.find_by_book(identity, book_id, params)


@router.get("/{feedback_id}", response_model=FeedbackResponse)
async def get_feedback(
    feedback_id: str,
    identity: Optional[Identity] = Depends(get_optional_identity),
    feedback: FeedbackService = Depends(get_feedback_service)
):
    return await feedback.get(identity, feedback_id)


@router.patch("/{feedback_id}/moderate", response_model=FeedbackResponse)
async def moderate_feedback(
    feedback_id: str,
    decision: FeedbackModerate,
    identity: Identity = Depends(get_current_identity),
    feedback: FeedbackService = Depends(get_feedback_service)
):
    """Show or hide feedback (admin only)."""
    return await feedback.moderate(identity, feedback_id, decision.status)


@router.patch("/{feedback_id}", response_model=FeedbackResponse)
async def update_feedback(
    feedback_id: str,
    changes: FeedbackUpdate,
    identity: Identity = Depends(get_current_identity),
    feedback: FeedbackService = Depends(get_feedback_service)
):
    """Update rating or comment; only the author or an admin may do so."""
    return await feedback.update(identity, feedback_id, changes)


@router.delete("/{feedback_id}", response_model=MessageResponse)
async def delete_feedback(
    feedback_id: str,
    identity: Identity = Depends(get_current_identity),
    feedback: FeedbackService = Depends(get_feedback_service)
):
    """Delete feedback; only the author or an admin may do so."""
    await feedback.delete(identity, feedback_id)
    return MessageResponse(message="Feedback deleted successfully")
