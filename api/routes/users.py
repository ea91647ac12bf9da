"""User administration routes (admin only)."""
from typing import Optional

from fastapi import APIRouter, Depends, status

from api.auth import get_current_identity
from api.dependencies import build_params, get_deletion_orchestrator, get_user_admin_service
from catalog.deletion import DeletionOrchestrator
from catalog.models import (
    AdminCreateUser, AdminUpdateUser, BulkDeleteRequest, DeletionReport, Identity,
    UserListResponse, UserQueryParams, UserResponse, UserRole
)
from catalog.users import UserAdminService

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: AdminCreateUser,
    identity: Identity = Depends(get_current_identity),
    users: UserAdminService = Depends(get_user_admin_service)
):
    return await users.create(identity, data)


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = 1,
    limit: int = 10,
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    identity: Identity = Depends(get_current_identity),
    users: UserAdminService = Depends(get_user_admin_service)
):
    params = build_params(UserQueryParams, page=page, limit=limit, role=role, is_active=is_active)
    return await users.find_all(identity, params)


@router.delete("/bulk", response_model=DeletionReport)
async def bulk_delete_users(
    request: BulkDeleteRequest,
    identity: Identity = Depends(get_current_identity),
    orchestrator: DeletionOrchestrator = Depends(get_deletion_orchestrator)
):
    """
    Delete several users. Each user is deleted in its own transaction:
    their feedback is removed and their books lose the creator reference.
    """
    return await orchestrator.bulk_delete_users(identity, request.ids)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    identity: Identity = Depends(get_current_identity),
    users: UserAdminService = Depends(get_user_admin_service)
):
    return await users.get(identity, user_id)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    changes: AdminUpdateUser,
    identity: Identity = Depends(get_current_identity),
    users: UserAdminService = Depends(get_user_admin_service)
):
    """Change names, role or active status of an account."""
    return await users.update(identity, user_id, changes)


@router.delete("/{user_id}/data", response_model=DeletionReport)
async def wipe_user_data(
    user_id: str,
    identity: Identity = Depends(get_current_identity),
    orchestrator: DeletionOrchestrator = Depends(get_deletion_orchestrator)
):
    """Delete a user with every book and feedback they created, atomically."""
    return await orchestrator.wipe_user_data(identity, user_id)


@router.delete("/{user_id}", response_model=DeletionReport)
async def delete_user(
    user_id: str,
    identity: Identity = Depends(get_current_identity),
    orchestrator: DeletionOrchestrator = Depends(get_deletion_orchestrator)
):
    """Delete a user, their feedback, and detach their books."""
    return await orchestrator.delete_user(identity, user_id)
